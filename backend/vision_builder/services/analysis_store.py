"""AnalysisStore: VisionAnalysis rows and their append-only version history."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from vision_builder.core.exceptions import AnalysisNotFoundError
from vision_builder.db.errors import translate_store_errors
from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.domain.version_history import VersionHistory
from vision_builder.schemas.vision import AnalysisMeta, VersionHistoryEntry

logger = structlog.get_logger(__name__)

# Concurrent appends that lose the row_version check re-read and try again
APPEND_MAX_ATTEMPTS = 5


def normalized_meta(analysis: VisionAnalysis) -> AnalysisMeta:
    """Read ``analysis.meta`` into the canonical AnalysisMeta.

    The stored history is rebuilt through VersionHistory, so a row whose
    history breaks its invariants fails loudly here. Rows written before
    version history existed get an ``original`` entry seeded from the
    top-level vision fields.
    """
    raw = dict(analysis.meta or {})
    history = VersionHistory.from_meta(raw.pop("version_history", None))
    if not len(history):
        history = VersionHistory(
            [
                VersionHistoryEntry(
                    type="original",
                    timestamp=analysis.created_at,
                    vision_inspirational=analysis.vision_inspirational,
                    vision_measurable=analysis.vision_measurable,
                )
            ]
        )

    meta = AnalysisMeta.model_validate(raw)
    meta.version_history = list(history.entries)
    return meta


class AnalysisStore:
    """Persistence for VisionAnalysis rows.

    Rows are only ever created whole (after a fully parsed generation) and
    afterwards only their history grows.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        session_id: UUID,
        original: VersionHistoryEntry,
        meta: AnalysisMeta,
    ) -> VisionAnalysis:
        """Insert a new analysis whose history is exactly ``[original]``.

        Args:
            session_id: Interview session UUID
            original: The freshly generated ``original`` entry
            meta: Keywords/insights/notes/processing time (history is replaced)
        """
        history = VersionHistory([original])
        meta = meta.model_copy(update={"version_history": list(history.entries)})

        with translate_store_errors("create_analysis", session_id=str(session_id)):
            async with self.session_factory() as session:
                analysis = VisionAnalysis(
                    session_id=session_id,
                    vision_inspirational=original.vision_inspirational,
                    vision_measurable=original.vision_measurable,
                    meta=meta.to_json(),
                )
                session.add(analysis)
                await session.commit()
                await session.refresh(analysis)
                return analysis

    async def latest(self, session_id: UUID) -> VisionAnalysis | None:
        """Most recently created analysis for a session (the authoritative one)."""
        with translate_store_errors("read_latest_analysis", session_id=str(session_id)):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(VisionAnalysis)
                    .where(VisionAnalysis.session_id == session_id)
                    .order_by(VisionAnalysis.created_at.desc())
                    .limit(1)
                )
                return result.scalar_one_or_none()

    async def append_version(self, analysis_id: UUID, entry: VersionHistoryEntry) -> VersionHistoryEntry:
        """Append ``entry`` to the analysis history and mirror it at the top level.

        The row is re-read inside the write transaction under ``FOR UPDATE``,
        and the write is guarded by ``row_version``. A concurrent append that
        lost the race re-reads the grown history and appends again, so every
        append is kept and appends land in completion order. Returns the entry
        as stored (its timestamp may be moved forward to keep the history
        chronological).

        Raises:
            AnalysisNotFoundError: If the analysis row no longer exists
            PersistenceError: If the write fails or keeps losing the race
        """
        with translate_store_errors("append_version", analysis_id=str(analysis_id)):
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(StaleDataError),
                stop=stop_after_attempt(APPEND_MAX_ATTEMPTS),
                wait=wait_random(0, 0.05),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "version_append_conflict_retry",
                            analysis_id=str(analysis_id),
                            attempt=attempt.retry_state.attempt_number,
                        )
                    stamped, history_length = await self._append_once(analysis_id, entry)

        logger.info(
            "version_appended",
            analysis_id=str(analysis_id),
            entry_type=stamped.type,
            history_length=history_length,
        )
        return stamped

    async def _append_once(self, analysis_id: UUID, entry: VersionHistoryEntry) -> tuple[VersionHistoryEntry, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(VisionAnalysis).where(VisionAnalysis.id == analysis_id).with_for_update()
            )
            analysis = result.scalar_one_or_none()
            if analysis is None:
                raise AnalysisNotFoundError(analysis_id)

            meta = normalized_meta(analysis)
            history = VersionHistory(meta.version_history)

            stamped = entry.model_copy(update={"timestamp": history.next_timestamp(entry.timestamp)})
            history.append(stamped)

            meta.version_history = list(history.entries)
            analysis.meta = meta.to_json()
            flag_modified(analysis, "meta")
            analysis.vision_inspirational = stamped.vision_inspirational
            analysis.vision_measurable = stamped.vision_measurable

            await session.commit()
            return stamped, len(history)
