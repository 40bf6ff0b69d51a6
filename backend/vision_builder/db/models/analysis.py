"""VisionAnalysis model: generated vision pair plus normalized metadata."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Text, Uuid

from vision_builder.db.base import Base


class VisionAnalysis(Base):
    __tablename__ = "vision_analyses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("interview_sessions.id", ondelete="CASCADE"), nullable=False, index=True)

    # Mirrors the newest version_history entry
    vision_inspirational = Column(Text, nullable=False)
    vision_measurable = Column(Text, nullable=False)

    # AnalysisMeta as dict: keywords, insights, notes, processing_time_ms, version_history
    meta = Column(JSON, nullable=False, default=dict)

    # Bumped on every UPDATE; a write against a stale read raises StaleDataError
    row_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": row_version}
