"""AnswerStore: typed access to per-question answers keyed by (session, question_number)."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vision_builder.db.errors import translate_store_errors
from vision_builder.db.models.answer import InterviewAnswer
from vision_builder.db.models.interview_session import InterviewSession
from vision_builder.domain.questions import validate_question_number

logger = structlog.get_logger(__name__)


class AnswerStore:
    """Answer persistence with upsert semantics.

    At most one row exists per (session_id, question_number); writes are
    last-writer-wins with no merge. Text is stored exactly as given.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_all(self, session_id: UUID) -> list[InterviewAnswer]:
        """All answers for a session ordered by question_number."""
        with translate_store_errors("read_answers", session_id=str(session_id)):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(InterviewAnswer)
                    .where(InterviewAnswer.session_id == session_id)
                    .order_by(InterviewAnswer.question_number)
                )
                return list(result.scalars().all())

    async def get_answers_map(self, session_id: UUID) -> dict[int, str]:
        """{question_number: answer_text} for a session."""
        return {answer.question_number: answer.answer_text for answer in await self.get_all(session_id)}

    async def upsert(self, session_id: UUID, question_number: int, answer_text: str) -> InterviewAnswer:
        """Insert or overwrite the answer for (session_id, question_number).

        Raises:
            InvalidQuestionError: If question_number is outside 1..10
            PersistenceError: If the write fails
        """
        validate_question_number(question_number)

        with translate_store_errors("upsert_answer", session_id=str(session_id), question_number=question_number):
            try:
                return await self._write(session_id, question_number, answer_text)
            except IntegrityError:
                # Lost an insert race on the unique key; the row exists now, so update it
                logger.info("answer_upsert_conflict_retry", session_id=str(session_id), question_number=question_number)
                return await self._write(session_id, question_number, answer_text)

    async def delete(self, session_id: UUID, question_number: int) -> bool:
        """Remove a stored answer. Returns True if a row was deleted."""
        validate_question_number(question_number)

        with translate_store_errors("delete_answer", session_id=str(session_id), question_number=question_number):
            async with self.session_factory() as session:
                await _touch_session(session, session_id)
                result = await session.execute(
                    delete(InterviewAnswer).where(
                        InterviewAnswer.session_id == session_id,
                        InterviewAnswer.question_number == question_number,
                    )
                )
                await session.commit()
                return result.rowcount > 0

    async def _write(self, session_id: UUID, question_number: int, answer_text: str) -> InterviewAnswer:
        async with self.session_factory() as session:
            result = await session.execute(
                select(InterviewAnswer).where(
                    InterviewAnswer.session_id == session_id,
                    InterviewAnswer.question_number == question_number,
                )
            )
            answer = result.scalar_one_or_none()

            if answer is None:
                answer = InterviewAnswer(
                    session_id=session_id,
                    question_number=question_number,
                    answer_text=answer_text,
                )
                session.add(answer)
            else:
                answer.answer_text = answer_text

            await _touch_session(session, session_id)
            await session.commit()
            await session.refresh(answer)
            return answer


async def _touch_session(session: AsyncSession, session_id: UUID) -> None:
    """Bump the parent session's updated_at so answer activity orders the dashboard."""
    await session.execute(
        update(InterviewSession).where(InterviewSession.id == session_id).values(updated_at=datetime.now(UTC))
    )
