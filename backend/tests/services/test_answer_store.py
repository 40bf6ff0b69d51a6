"""Tests for AnswerStore upsert/read/delete against SQLite."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from vision_builder.core.exceptions import InvalidQuestionError, PersistenceError
from vision_builder.db.models.answer import InterviewAnswer
from vision_builder.services.answer_store import AnswerStore

pytestmark = pytest.mark.integration


async def _row_count(session_factory, session_id) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(InterviewAnswer).where(InterviewAnswer.session_id == session_id)
        )
        return result.scalar_one()


async def test_upsert_is_idempotent(answer_store, session_factory, ctx):
    await answer_store.upsert(ctx.session_id, 3, "Same text")
    await answer_store.upsert(ctx.session_id, 3, "Same text")

    assert await _row_count(session_factory, ctx.session_id) == 1
    assert await answer_store.get_answers_map(ctx.session_id) == {3: "Same text"}


async def test_upsert_overwrites_last_writer_wins(answer_store, session_factory, ctx):
    await answer_store.upsert(ctx.session_id, 1, "first draft")
    await answer_store.upsert(ctx.session_id, 1, "final answer")

    assert await _row_count(session_factory, ctx.session_id) == 1
    assert await answer_store.get_answers_map(ctx.session_id) == {1: "final answer"}


async def test_text_round_trips_unchanged(answer_store, ctx):
    text = "  Café & açaí: multi-line\nanswer with trailing space "
    await answer_store.upsert(ctx.session_id, 7, text)

    (answer,) = await answer_store.get_all(ctx.session_id)
    assert answer.answer_text == text


async def test_get_all_ordered_by_question_number(answer_store, ctx):
    for number in (9, 2, 5):
        await answer_store.upsert(ctx.session_id, number, f"answer {number}")

    answers = await answer_store.get_all(ctx.session_id)
    assert [a.question_number for a in answers] == [2, 5, 9]


async def test_answers_are_scoped_to_their_session(answer_store, tracker, ctx):
    other = await tracker.create_session("user-a")
    await answer_store.upsert(ctx.session_id, 1, "mine")
    await answer_store.upsert(other.id, 1, "other session")

    assert await answer_store.get_answers_map(ctx.session_id) == {1: "mine"}


async def test_delete(answer_store, ctx):
    await answer_store.upsert(ctx.session_id, 4, "to be cleared")

    assert await answer_store.delete(ctx.session_id, 4) is True
    assert await answer_store.delete(ctx.session_id, 4) is False
    assert await answer_store.get_answers_map(ctx.session_id) == {}


@pytest.mark.parametrize("number", [0, 11])
async def test_rejects_invalid_question_number(answer_store, ctx, number):
    with pytest.raises(InvalidQuestionError):
        await answer_store.upsert(ctx.session_id, number, "text")


async def test_store_failure_becomes_persistence_error(ctx):
    broken_factory = MagicMock(side_effect=OperationalError("SELECT 1", {}, Exception("database is down")))
    store = AnswerStore(broken_factory)

    with pytest.raises(PersistenceError, match="read_answers"):
        await store.get_all(ctx.session_id)
    with pytest.raises(PersistenceError, match="upsert_answer"):
        await store.upsert(ctx.session_id, 1, "text")


async def test_answer_writes_touch_session_updated_at(answer_store, tracker):
    older = await tracker.create_session("user-a")
    newer = await tracker.create_session("user-a")

    await answer_store.upsert(older.id, 1, "Back to the first draft")
    summaries = await tracker.list_sessions("user-a")
    assert [s.session.id for s in summaries] == [older.id, newer.id]

    await answer_store.upsert(newer.id, 1, "Now the second")
    await answer_store.delete(older.id, 1)
    summaries = await tracker.list_sessions("user-a")
    assert [s.session.id for s in summaries] == [older.id, newer.id]
