"""AnalysisOrchestrator: one-shot vision analysis with timeout, retry and backoff.

Architecture:
- State machine: IDLE -> RUNNING -> {SUCCEEDED, FAILED}
- Refuses (IncompleteAnswersError) unless all ten answers are stored
- Each attempt races the TextGenerator call against a fixed timeout
- Timeout: cancel the pending call and retry immediately
- TransientServiceError: wait a fixed backoff, then retry
- tenacity AsyncRetrying drives the attempt loop (max_attempts total)
- Attempts are tagged with an increasing id; only the current id's response is accepted
- The Analysis row is written only after a fully parsed response
"""

import asyncio
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import UUID

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from vision_builder.core.config import Settings, get_settings
from vision_builder.core.exceptions import (
    AnalysisInProgressError,
    GenerationTimeoutError,
    IncompleteAnswersError,
    RetryLimitExceededError,
    TransientServiceError,
)
from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.domain.context import SessionContext
from vision_builder.domain.questions import QUESTIONS
from vision_builder.generation.payload import parse_payload
from vision_builder.generation.prompts import build_analysis_messages
from vision_builder.generation.protocol import TextGenerator
from vision_builder.schemas.vision import AnalysisMeta, AnalysisPayload, VersionHistoryEntry
from vision_builder.services.analysis_store import AnalysisStore
from vision_builder.services.answer_store import AnswerStore

logger = structlog.get_logger(__name__)


class AnalysisState(str, Enum):
    """Orchestrator lifecycle."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AnalysisNotice:
    """User-facing progress notice emitted through ``on_notice``."""

    kind: Literal["retrying", "failed"]
    attempt: int
    max_attempts: int
    message: str


@dataclass(frozen=True)
class _TaggedResponse:
    attempt_id: int
    content: str
    elapsed_ms: int


def vision_length_warnings(
    vision: str,
    min_words: int = 8,
    max_words: int = 14,
    max_lines: int = 2,
) -> list[str]:
    """Describe how ``vision`` breaks the length policy (empty list if it doesn't)."""
    problems = []
    word_count = len(vision.split())
    if word_count < min_words or word_count > max_words:
        problems.append(f"{word_count} words (ideal: {min_words}-{max_words})")
    line_count = len(vision.strip().splitlines())
    if line_count > max_lines:
        problems.append(f"{line_count} lines (max: {max_lines})")
    return problems


class RunningAnalyses:
    """Sessions with an analysis in flight in this process.

    Orchestrators are built per request, so their own RUNNING state cannot
    see a second request for the same session. The app keeps one of these
    on ``app.state`` and every analyze call claims its session here first.
    """

    def __init__(self) -> None:
        self._sessions: set[UUID] = set()

    def __contains__(self, session_id: UUID) -> bool:
        return session_id in self._sessions

    @contextmanager
    def claim(self, session_id: UUID) -> Iterator[None]:
        """Hold ``session_id`` for the duration of the block.

        Raises:
            AnalysisInProgressError: If the session is already claimed
        """
        if session_id in self._sessions:
            raise AnalysisInProgressError(f"Analysis already running for session {session_id}")
        self._sessions.add(session_id)
        try:
            yield
        finally:
            self._sessions.discard(session_id)


class AnalysisOrchestrator:
    """Drives the analyze request for one session.

    Create one per analysis request; ``state`` reflects the latest run.
    """

    def __init__(
        self,
        generator: TextGenerator,
        answer_store: AnswerStore,
        analysis_store: AnalysisStore,
        *,
        timeout_seconds: float = 60.0,
        backoff_seconds: float = 2.0,
        max_attempts: int = 3,
        temperature: float | None = 0.7,
        word_bounds: tuple[int, int] = (8, 14),
        max_lines: int = 2,
        on_notice: Callable[[AnalysisNotice], None] | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.generator = generator
        self.answer_store = answer_store
        self.analysis_store = analysis_store
        self.timeout_seconds = timeout_seconds
        self.backoff_seconds = backoff_seconds
        self.max_attempts = max_attempts
        self.temperature = temperature
        self.word_bounds = word_bounds
        self.max_lines = max_lines
        self.on_notice = on_notice

        self._state = AnalysisState.IDLE
        self._attempt_id = 0
        self._abandoned: set[asyncio.Future] = set()

    @classmethod
    def from_settings(
        cls,
        generator: TextGenerator,
        answer_store: AnswerStore,
        analysis_store: AnalysisStore,
        settings: Settings | None = None,
        on_notice: Callable[[AnalysisNotice], None] | None = None,
    ) -> "AnalysisOrchestrator":
        settings = settings or get_settings()
        return cls(
            generator,
            answer_store,
            analysis_store,
            timeout_seconds=settings.analysis_timeout_seconds,
            backoff_seconds=settings.analysis_backoff_seconds,
            max_attempts=settings.analysis_max_attempts,
            temperature=settings.analysis_temperature,
            word_bounds=(settings.vision_min_words, settings.vision_max_words),
            max_lines=settings.vision_max_lines,
            on_notice=on_notice,
        )

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def current_attempt_id(self) -> int:
        return self._attempt_id

    async def analyze(self, ctx: SessionContext) -> VisionAnalysis:
        """Generate and persist the session's vision analysis.

        Returns:
            The new VisionAnalysis row (history: exactly one ``original`` entry)

        Raises:
            AnalysisInProgressError: If a run is already RUNNING
            IncompleteAnswersError: If fewer than ten non-blank answers exist
            RetryLimitExceededError: If every attempt timed out or failed
            MalformedResponseError: If the accepted response has no usable payload
            PersistenceError: If reading answers or writing the row fails
        """
        if self._state is AnalysisState.RUNNING:
            raise AnalysisInProgressError(f"Analysis already running for session {ctx.session_id}")

        log = logger.bind(session_id=str(ctx.session_id), user_id=ctx.user_id)

        answers = await self.answer_store.get_answers_map(ctx.session_id)
        missing = [q.number for q in QUESTIONS if not (answers.get(q.number) or "").strip()]
        if missing:
            log.info("analysis_refused_incomplete", missing=missing)
            raise IncompleteAnswersError(missing)

        messages = build_analysis_messages(answers)
        self._state = AnalysisState.RUNNING
        log.info("analysis_started", max_attempts=self.max_attempts, timeout_seconds=self.timeout_seconds)

        try:
            response = await self._generate_with_retry(messages, log)
            payload = parse_payload(response.content, AnalysisPayload)
            self._warn_on_length(payload, log)

            original = VersionHistoryEntry(
                type="original",
                timestamp=datetime.now(UTC),
                vision_inspirational=payload.vision_inspirational,
                vision_measurable=payload.vision_measurable,
            )
            meta = AnalysisMeta(
                keywords=payload.keywords,
                insights=payload.insights,
                notes=payload.notes,
                processing_time_ms=response.elapsed_ms,
            )
            analysis = await self.analysis_store.create(ctx.session_id, original, meta)
        except BaseException as exc:
            self._state = AnalysisState.FAILED
            log.warning("analysis_failed", error=str(exc), error_type=type(exc).__name__)
            raise

        self._state = AnalysisState.SUCCEEDED
        log.info(
            "analysis_succeeded",
            analysis_id=str(analysis.id),
            attempt_id=response.attempt_id,
            processing_time_ms=response.elapsed_ms,
            keyword_count=len(payload.keywords),
        )
        return analysis

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    async def _generate_with_retry(self, messages: list[dict[str, str]], log) -> _TaggedResponse:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientServiceError),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait_before_retry,
            before_sleep=self._notify_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._run_attempt(messages)
        except TransientServiceError as exc:
            self._emit(
                AnalysisNotice(
                    kind="failed",
                    attempt=self.max_attempts,
                    max_attempts=self.max_attempts,
                    message="We could not analyze your answers. Please review them and try again.",
                )
            )
            log.error("analysis_attempts_exhausted", attempts=self.max_attempts, error_type=type(exc).__name__)
            raise RetryLimitExceededError("analyze", self.max_attempts) from exc
        raise RuntimeError("analysis_retry_loop_exited")  # pragma: no cover

    async def _run_attempt(self, messages: list[dict[str, str]]) -> _TaggedResponse:
        """One attempt: race the generator against the timeout."""
        self._attempt_id += 1
        attempt_id = self._attempt_id

        task = asyncio.ensure_future(self._call_generator(attempt_id, messages))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            task.cancel()
            self._abandoned.add(task)
            task.add_done_callback(self._abandoned.discard)
            raise GenerationTimeoutError(attempt_id, self.timeout_seconds)

        response = task.result()
        if response is None or response.attempt_id != self._attempt_id:
            raise TransientServiceError(f"Attempt {attempt_id} was superseded")
        return response

    async def _call_generator(self, attempt_id: int, messages: list[dict[str, str]]) -> _TaggedResponse | None:
        started = time.monotonic()
        content = await self.generator.complete(messages, temperature=self.temperature)
        if attempt_id != self._attempt_id:
            logger.info("analysis_stale_response_discarded", attempt_id=attempt_id, current_attempt_id=self._attempt_id)
            return None
        return _TaggedResponse(
            attempt_id=attempt_id,
            content=content,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )

    def _wait_before_retry(self, retry_state: RetryCallState) -> float:
        """No pause after a timeout; fixed backoff after a service error."""
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, GenerationTimeoutError):
            return 0.0
        return self.backoff_seconds

    def _notify_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "analysis_retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        self._emit(
            AnalysisNotice(
                kind="retrying",
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                message=f"Taking longer than expected, retrying ({retry_state.attempt_number + 1}/{self.max_attempts})...",
            )
        )

    def _emit(self, notice: AnalysisNotice) -> None:
        if self.on_notice is not None:
            self.on_notice(notice)

    def _warn_on_length(self, payload: AnalysisPayload, log) -> None:
        min_words, max_words = self.word_bounds
        for kind, vision in (
            ("inspirational", payload.vision_inspirational),
            ("measurable", payload.vision_measurable),
        ):
            problems = vision_length_warnings(vision, min_words, max_words, self.max_lines)
            if problems:
                log.warning("vision_length_out_of_policy", vision_type=kind, problems=problems)
