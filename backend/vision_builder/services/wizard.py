"""InterviewWizard: in-process facade for the question-by-question UI.

UI events (typing, clear, stepper jumps, previous/next) call this object. It
threads one SessionContext through the tracker, the answer store and the
autosave scheduler. The local ``stage`` only changes after the tracker has
committed the new stage.
"""

from vision_builder.core.exceptions import EmptyAnswerError
from vision_builder.domain.context import SessionContext
from vision_builder.domain.questions import TOTAL_QUESTIONS, Question, get_question
from vision_builder.domain.stages import FIRST_STAGE, AdvanceResult, Continue
from vision_builder.services.answer_store import AnswerStore
from vision_builder.services.autosave import AutosaveScheduler
from vision_builder.services.session_tracker import SessionStateTracker


class InterviewWizard:
    """One user's view of one interview session."""

    def __init__(
        self,
        ctx: SessionContext,
        tracker: SessionStateTracker,
        answer_store: AnswerStore,
        scheduler: AutosaveScheduler | None = None,
        quiet_period: float | None = None,
    ):
        self.ctx = ctx
        self.tracker = tracker
        self.answer_store = answer_store
        if scheduler is None:
            if quiet_period is None:
                scheduler = AutosaveScheduler.from_settings(answer_store, ctx)
            else:
                scheduler = AutosaveScheduler(answer_store, ctx, quiet_period=quiet_period)
        self.scheduler = scheduler

        self.stage = FIRST_STAGE
        self.answers: dict[int, str] = {}

    async def open(self) -> "InterviewWizard":
        """Resume: load the persisted stage and every stored answer."""
        interview = await self.tracker.get_session(self.ctx)
        self.stage = interview.stage
        self.answers = await self.answer_store.get_answers_map(self.ctx.session_id)
        return self

    @property
    def question(self) -> Question:
        return get_question(self.stage)

    @property
    def current_answer(self) -> str:
        return self.answers.get(self.stage, "")

    @property
    def progress_percent(self) -> int:
        return int(self.stage / TOTAL_QUESTIONS * 100)

    def type(self, text: str) -> None:
        """Keystroke on the current question; never blocks."""
        self.answers[self.stage] = text
        self.scheduler.edit(self.stage, text)

    async def clear(self) -> None:
        """Explicit clear of the current answer (immediate, not debounced)."""
        self.answers[self.stage] = ""
        await self.scheduler.clear(self.stage)

    async def jump(self, stage: int) -> None:
        """Stepper navigation; earlier questions need not be answered."""
        await self.scheduler.flush()
        interview = await self.tracker.set_stage(self.ctx, stage)
        self.stage = interview.stage

    async def previous(self) -> None:
        await self.scheduler.flush()
        interview = await self.tracker.retreat(self.ctx)
        self.stage = interview.stage

    async def next(self) -> AdvanceResult:
        """Save the current answer durably, then advance.

        Returns:
            Continue(n) while questions remain, Complete after question 10

        Raises:
            EmptyAnswerError: If the current question has no answer
            PersistenceError: If saving the answer or the stage fails
        """
        text = self.current_answer
        if not text.strip():
            raise EmptyAnswerError(self.stage)

        await self.scheduler.flush()
        await self.answer_store.upsert(self.ctx.session_id, self.stage, text)

        result = await self.tracker.advance(self.ctx)
        if isinstance(result, Continue):
            self.stage = result.stage
        return result

    async def close(self) -> None:
        await self.scheduler.close()
