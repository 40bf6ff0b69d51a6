"""SessionStateTracker: owns the interview stage of each session.

Responsibilities:
- Session lifecycle: load-or-create, create, list with analysis status
- Stage transitions: set (stepper jump), advance ("next"), retreat ("previous")
- Per-question answered status
- User isolation via user_id filtering

Stage writes are strict: a new stage is only returned after the commit
succeeds. A failed write raises PersistenceError and the caller keeps the old
stage.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vision_builder.core.exceptions import SessionNotFoundError
from vision_builder.db.errors import translate_store_errors
from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.db.models.answer import InterviewAnswer
from vision_builder.db.models.interview_session import InterviewSession
from vision_builder.domain.context import SessionContext
from vision_builder.domain.questions import QUESTIONS
from vision_builder.domain.stages import (
    FIRST_STAGE,
    AdvanceResult,
    Continue,
    next_stage,
    previous_stage,
    validate_stage,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionSummary:
    """Dashboard row: a session and whether it has an analysis."""

    session: InterviewSession
    has_analysis: bool


class SessionStateTracker:
    """Service layer for session stage progression."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load_or_create(self, user_id: str) -> InterviewSession:
        """Return the user's most recent session, creating one at stage 1 if none exists."""
        with translate_store_errors("load_or_create_session", user_id=user_id):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(InterviewSession)
                    .where(InterviewSession.user_id == user_id)
                    .order_by(InterviewSession.created_at.desc())
                    .limit(1)
                )
                existing = result.scalar_one_or_none()
                if existing is not None:
                    return existing

                return await self._insert(session, user_id)

    async def create_session(self, user_id: str) -> InterviewSession:
        """Start a fresh session at stage 1 regardless of existing ones."""
        with translate_store_errors("create_session", user_id=user_id):
            async with self.session_factory() as session:
                return await self._insert(session, user_id)

    async def get_session(self, ctx: SessionContext) -> InterviewSession:
        """Get a specific session (with user isolation).

        Raises:
            SessionNotFoundError: If session not found or owned by another user
        """
        with translate_store_errors("read_session", session_id=str(ctx.session_id)):
            async with self.session_factory() as session:
                return await self._load_owned(session, ctx)

    async def list_sessions(self, user_id: str) -> list[SessionSummary]:
        """All sessions for a user, most recently updated first."""
        with translate_store_errors("list_sessions", user_id=user_id):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(InterviewSession)
                    .where(InterviewSession.user_id == user_id)
                    .order_by(InterviewSession.updated_at.desc())
                )
                sessions = list(result.scalars().all())
                if not sessions:
                    return []

                analysed = await session.execute(
                    select(VisionAnalysis.session_id)
                    .where(VisionAnalysis.session_id.in_([s.id for s in sessions]))
                    .distinct()
                )
                with_analysis = set(analysed.scalars().all())

        return [SessionSummary(session=s, has_analysis=s.id in with_analysis) for s in sessions]

    async def set_stage(self, ctx: SessionContext, stage: int) -> InterviewSession:
        """Jump to ``stage`` (1..10) and persist immediately.

        Prior stages are not required to be answered.

        Raises:
            InvalidStageError: If stage is outside 1..10 (never clamped)
            SessionNotFoundError: If session not found or user mismatch
            PersistenceError: If the write fails
        """
        validate_stage(stage)
        return await self._write_stage(ctx, lambda current: stage)

    async def advance(self, ctx: SessionContext) -> AdvanceResult:
        """Handle an explicit "next".

        Returns:
            Continue(s + 1) after persisting, or Complete when already at stage 10
        """
        with translate_store_errors("advance_stage", session_id=str(ctx.session_id)):
            async with self.session_factory() as session:
                interview = await self._load_owned(session, ctx)
                result = next_stage(interview.stage)
                if isinstance(result, Continue):
                    interview.stage = result.stage
                    await session.commit()
                    logger.info("stage_advanced", session_id=str(ctx.session_id), stage=result.stage)
                else:
                    logger.info("interview_complete", session_id=str(ctx.session_id))
                return result

    async def retreat(self, ctx: SessionContext) -> InterviewSession:
        """Handle "previous"; stays at stage 1."""
        return await self._write_stage(ctx, previous_stage)

    async def answered_status(self, ctx: SessionContext) -> dict[int, bool]:
        """{question_number: has a non-blank stored answer} for questions 1..10."""
        with translate_store_errors("answered_status", session_id=str(ctx.session_id)):
            async with self.session_factory() as session:
                await self._load_owned(session, ctx)
                result = await session.execute(
                    select(InterviewAnswer.question_number, InterviewAnswer.answer_text).where(
                        InterviewAnswer.session_id == ctx.session_id
                    )
                )
                answered = {number for number, text in result.all() if text and text.strip()}

        return {question.number: question.number in answered for question in QUESTIONS}

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    async def _write_stage(self, ctx: SessionContext, compute) -> InterviewSession:
        with translate_store_errors("update_stage", session_id=str(ctx.session_id)):
            async with self.session_factory() as session:
                interview = await self._load_owned(session, ctx)
                new_stage = compute(interview.stage)
                if new_stage != interview.stage:
                    interview.stage = new_stage
                    await session.commit()
                    await session.refresh(interview)
                    logger.info("stage_updated", session_id=str(ctx.session_id), stage=new_stage)
                return interview

    async def _insert(self, session: AsyncSession, user_id: str) -> InterviewSession:
        interview = InterviewSession(user_id=user_id, stage=FIRST_STAGE)
        session.add(interview)
        await session.commit()
        await session.refresh(interview)
        logger.info("session_created", session_id=str(interview.id), user_id=user_id)
        return interview

    async def _load_owned(self, session: AsyncSession, ctx: SessionContext) -> InterviewSession:
        result = await session.execute(
            select(InterviewSession).where(
                InterviewSession.id == ctx.session_id,
                InterviewSession.user_id == ctx.user_id,
            )
        )
        interview = result.scalar_one_or_none()
        if interview is None:
            raise SessionNotFoundError(ctx.session_id)
        return interview
