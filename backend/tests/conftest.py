"""Shared test fixtures for all test groups."""

import json

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vision_builder.db.base import Base
from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.domain.context import SessionContext
from vision_builder.generation.fake import HAPPY_ANALYSIS, FakeTextGenerator
from vision_builder.services.analysis_store import AnalysisStore
from vision_builder.services.answer_store import AnswerStore
from vision_builder.services.session_tracker import SessionStateTracker

USER_ID = "user-a"
OTHER_USER_ID = "user-b"

ALL_ANSWERS = {
    1: "Agricultural consulting",
    2: "We help family farms adopt sustainable practices",
    3: "A business of trust and long-term partnership",
    4: "Family-owned farms in the south of the country",
    5: "The reference partner for sustainable family farming",
    6: "Regenerative practices and farmer education",
    7: "Income growth of the farms we serve",
    8: "The consultancy that made small farms thrive",
    9: "A green valley full of prosperous family farms",
    10: "sustainable, family, trust, growth",
}

HAPPY_ANALYSIS_JSON = json.dumps(HAPPY_ANALYSIS)


@pytest.fixture
def all_answers() -> dict[int, str]:
    return dict(ALL_ANSWERS)


@pytest.fixture
def happy_analysis_json() -> str:
    return HAPPY_ANALYSIS_JSON


@pytest.fixture
async def engine(tmp_path) -> AsyncEngine:
    """File-backed SQLite engine with all tables created.

    A file (not :memory:) so concurrent sessions see the same database.
    """
    import vision_builder.db.models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def answer_store(session_factory):
    return AnswerStore(session_factory)


@pytest.fixture
def analysis_store(session_factory):
    return AnalysisStore(session_factory)


@pytest.fixture
def tracker(session_factory):
    return SessionStateTracker(session_factory)


@pytest.fixture
async def interview(tracker):
    """A fresh session at stage 1 owned by USER_ID."""
    return await tracker.create_session(USER_ID)


@pytest.fixture
def ctx(interview) -> SessionContext:
    return SessionContext(user_id=USER_ID, session_id=interview.id)


@pytest.fixture
async def answered_ctx(ctx, answer_store) -> SessionContext:
    """Context whose session has all ten answers stored."""
    for number, text in ALL_ANSWERS.items():
        await answer_store.upsert(ctx.session_id, number, text)
    return ctx


@pytest.fixture
def fake_generator():
    """Fresh FakeTextGenerator with happy_path scenario (default)."""
    return FakeTextGenerator(scenario="happy_path")


@pytest.fixture
def fake_generator_failing():
    """FakeTextGenerator with llm_failure scenario."""
    return FakeTextGenerator(scenario="llm_failure")


@pytest.fixture
def fake_generator_timeout():
    """FakeTextGenerator with timeout scenario."""
    return FakeTextGenerator(scenario="timeout")


@pytest.fixture
def count_analyses(session_factory):
    """Async callable returning the number of VisionAnalysis rows for a session."""

    async def _count(session_id) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(VisionAnalysis).where(VisionAnalysis.session_id == session_id)
            )
            return result.scalar_one()

    return _count
