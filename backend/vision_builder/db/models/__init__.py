"""Re-export all models so Base.metadata sees them."""

from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.db.models.answer import InterviewAnswer
from vision_builder.db.models.interview_session import InterviewSession

__all__ = [
    "InterviewAnswer",
    "InterviewSession",
    "VisionAnalysis",
]
