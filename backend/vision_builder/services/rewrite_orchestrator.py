"""RewriteOrchestrator: alternate phrasings appended to the analysis history.

A rewrite makes exactly one TextGenerator call (bounded by a timeout, never
retried) and appends the result to the latest analysis' version history.
Concurrent rewrites on the same analysis are unsupported: appends land in
completion order and nothing more is guaranteed.
"""

import asyncio
import time
from datetime import UTC, datetime

import structlog

from vision_builder.core.config import Settings, get_settings
from vision_builder.core.exceptions import (
    AnalysisNotFoundError,
    GenerationTimeoutError,
    MalformedResponseError,
    ValidationError,
)
from vision_builder.domain.context import SessionContext
from vision_builder.generation.payload import parse_payload
from vision_builder.generation.prompts import build_rewrite_messages
from vision_builder.generation.protocol import TextGenerator
from vision_builder.schemas.vision import REWRITE_MODES, RewritePayload, VersionHistoryEntry
from vision_builder.services.analysis_store import AnalysisStore

logger = structlog.get_logger(__name__)


class RewriteOrchestrator:
    """Service layer for vision rewrites."""

    def __init__(
        self,
        generator: TextGenerator,
        analysis_store: AnalysisStore,
        *,
        timeout_seconds: float = 60.0,
    ):
        self.generator = generator
        self.analysis_store = analysis_store
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(
        cls,
        generator: TextGenerator,
        analysis_store: AnalysisStore,
        settings: Settings | None = None,
    ) -> "RewriteOrchestrator":
        settings = settings or get_settings()
        return cls(generator, analysis_store, timeout_seconds=settings.rewrite_timeout_seconds)

    async def rewrite(self, ctx: SessionContext, mode: str) -> VersionHistoryEntry:
        """Rewrite the current vision pair and append the result.

        Args:
            ctx: Session context
            mode: "shorter", "more_options" or "shorter_term"

        Returns:
            The appended VersionHistoryEntry

        Raises:
            ValidationError: If mode is unknown
            AnalysisNotFoundError: If the session has no analysis yet
            TextGenerationError / GenerationTimeoutError: On service failure (not retried)
            MalformedResponseError: If the response has no usable payload
            PersistenceError: If reading or appending fails
        """
        if mode not in REWRITE_MODES:
            raise ValidationError(f"Unknown rewrite mode: {mode}. Valid modes: {', '.join(REWRITE_MODES)}")

        log = logger.bind(session_id=str(ctx.session_id), user_id=ctx.user_id, mode=mode)

        analysis = await self.analysis_store.latest(ctx.session_id)
        if analysis is None:
            raise AnalysisNotFoundError(ctx.session_id)

        messages = build_rewrite_messages(mode, analysis.vision_inspirational, analysis.vision_measurable)
        log.info("rewrite_started", analysis_id=str(analysis.id))

        started = time.monotonic()
        try:
            content = await asyncio.wait_for(self.generator.complete(messages), timeout=self.timeout_seconds)
        except TimeoutError as exc:
            log.warning("rewrite_timed_out", timeout_seconds=self.timeout_seconds)
            raise GenerationTimeoutError(1, self.timeout_seconds) from exc
        elapsed_ms = int((time.monotonic() - started) * 1000)

        payload = parse_payload(content, RewritePayload)
        if mode == "more_options" and (
            payload.variations is None
            or not payload.variations.inspirational
            or not payload.variations.measurable
        ):
            raise MalformedResponseError("more_options response is missing variations")

        entry = VersionHistoryEntry(
            type=mode,
            timestamp=datetime.now(UTC),
            vision_inspirational=payload.vision_inspirational,
            vision_measurable=payload.vision_measurable,
            variations=payload.variations,
            processing_time_ms=elapsed_ms,
        )
        stored = await self.analysis_store.append_version(analysis.id, entry)

        log.info("rewrite_completed", analysis_id=str(analysis.id), processing_time_ms=elapsed_ms)
        return stored
