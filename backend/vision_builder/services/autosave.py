"""AutosaveScheduler: debounced, non-blocking answer commits.

- ``edit()`` never awaits: it records the newest text and re-arms a
  per-question quiet-period timer on the running event loop
- Only the newest text per question is committed; keystrokes are coalesced
- Blank (post-strip) text is never committed and cancels a pending commit
- ``clear()`` is immediate and removes the stored answer; a commit already
  settled but not yet written is dropped, so a cleared answer stays cleared
- Commits for one question run under a per-question lock, in settle order
- Commit failures are logged and kept on ``last_error``; they never reach the
  input path
"""

import asyncio
from collections.abc import Callable

import structlog

from vision_builder.core.config import Settings, get_settings
from vision_builder.core.exceptions import VisionBuilderError
from vision_builder.domain.context import SessionContext
from vision_builder.domain.questions import validate_question_number
from vision_builder.services.answer_store import AnswerStore

logger = structlog.get_logger(__name__)


class AutosaveScheduler:
    """Debounces answer edits for one session."""

    def __init__(
        self,
        answer_store: AnswerStore,
        ctx: SessionContext,
        *,
        quiet_period: float = 0.5,
        on_error: Callable[[int, Exception], None] | None = None,
    ):
        self.answer_store = answer_store
        self.ctx = ctx
        self.quiet_period = quiet_period
        self.on_error = on_error

        self.last_error: Exception | None = None
        self.commit_count = 0

        self._pending: dict[int, str] = {}
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._inflight: set[asyncio.Task] = set()
        # Bumped by every edit and clear; a commit settled under an older value is dropped
        self._generations: dict[int, int] = {}
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        answer_store: AnswerStore,
        ctx: SessionContext,
        settings: Settings | None = None,
        *,
        on_error: Callable[[int, Exception], None] | None = None,
    ) -> "AutosaveScheduler":
        settings = settings or get_settings()
        return cls(answer_store, ctx, quiet_period=settings.autosave_quiet_period_seconds, on_error=on_error)

    @property
    def pending(self) -> dict[int, str]:
        """Edits waiting for their quiet period to elapse."""
        return dict(self._pending)

    def edit(self, question_number: int, text: str) -> None:
        """Record an edit. Must be called from within the running event loop."""
        if self._closed:
            raise RuntimeError("Autosave scheduler is closed")
        validate_question_number(question_number)

        self._cancel_timer(question_number)
        self._bump(question_number)
        if not text.strip():
            self._pending.pop(question_number, None)
            return

        self._pending[question_number] = text
        loop = asyncio.get_running_loop()
        self._timers[question_number] = loop.call_later(self.quiet_period, self._settle, question_number)

    async def clear(self, question_number: int) -> None:
        """Immediately delete the stored answer and drop any pending edit.

        Raises:
            PersistenceError: If the delete fails
        """
        validate_question_number(question_number)
        self._cancel_timer(question_number)
        self._pending.pop(question_number, None)
        self._bump(question_number)

        # Wait for an in-flight commit of this question so the delete lands last
        async with self._lock_for(question_number):
            await self.answer_store.delete(self.ctx.session_id, question_number)
        logger.info("answer_cleared", session_id=str(self.ctx.session_id), question_number=question_number)

    async def flush(self) -> None:
        """Commit every pending edit now and wait for all in-flight commits."""
        for question_number in list(self._pending):
            self._cancel_timer(question_number)
            self._settle(question_number)

        if self._inflight:
            await asyncio.gather(*list(self._inflight))

    async def close(self) -> None:
        """Flush, then refuse further edits."""
        await self.flush()
        self._closed = True

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    def _settle(self, question_number: int) -> None:
        self._timers.pop(question_number, None)
        text = self._pending.pop(question_number, None)
        if text is None:
            return

        generation = self._generations.get(question_number, 0)
        task = asyncio.get_running_loop().create_task(self._commit(question_number, text, generation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _commit(self, question_number: int, text: str, generation: int) -> None:
        async with self._lock_for(question_number):
            if self._generations.get(question_number, 0) != generation:
                logger.debug(
                    "autosave_commit_superseded",
                    session_id=str(self.ctx.session_id),
                    question_number=question_number,
                )
                return
            try:
                await self.answer_store.upsert(self.ctx.session_id, question_number, text)
            except VisionBuilderError as exc:
                self.last_error = exc
                logger.warning(
                    "autosave_commit_failed",
                    session_id=str(self.ctx.session_id),
                    question_number=question_number,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if self.on_error is not None:
                    self.on_error(question_number, exc)
                return

        self.commit_count += 1
        logger.debug("autosave_committed", session_id=str(self.ctx.session_id), question_number=question_number)

    def _bump(self, question_number: int) -> None:
        self._generations[question_number] = self._generations.get(question_number, 0) + 1

    def _cancel_timer(self, question_number: int) -> None:
        timer = self._timers.pop(question_number, None)
        if timer is not None:
            timer.cancel()

    def _lock_for(self, question_number: int) -> asyncio.Lock:
        lock = self._locks.get(question_number)
        if lock is None:
            lock = self._locks[question_number] = asyncio.Lock()
        return lock
