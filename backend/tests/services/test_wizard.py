"""Tests for the InterviewWizard facade."""

from unittest.mock import AsyncMock

import pytest

from vision_builder.core.config import get_settings
from vision_builder.core.exceptions import EmptyAnswerError, InvalidStageError, PersistenceError
from vision_builder.domain.stages import Complete, Continue
from vision_builder.services.wizard import InterviewWizard

pytestmark = pytest.mark.integration


@pytest.fixture
async def wizard(ctx, tracker, answer_store):
    wizard = InterviewWizard(ctx, tracker, answer_store, quiet_period=0.05)
    await wizard.open()
    yield wizard
    await wizard.close()


async def test_open_resumes_stage_and_answers(ctx, tracker, answer_store):
    await answer_store.upsert(ctx.session_id, 1, "first")
    await answer_store.upsert(ctx.session_id, 2, "second")
    await tracker.set_stage(ctx, 3)

    wizard = await InterviewWizard(ctx, tracker, answer_store).open()

    assert wizard.stage == 3
    assert wizard.answers == {1: "first", 2: "second"}
    assert wizard.question.number == 3
    assert wizard.progress_percent == 30


async def test_next_refuses_blank_answer(wizard, tracker, ctx):
    wizard.type("   ")

    with pytest.raises(EmptyAnswerError):
        await wizard.next()

    assert wizard.stage == 1
    assert (await tracker.get_session(ctx)).stage == 1


async def test_next_saves_answer_and_advances(wizard, tracker, answer_store, ctx):
    wizard.type("Agricultural consulting")

    result = await wizard.next()

    assert result == Continue(2)
    assert wizard.stage == 2
    assert (await tracker.get_session(ctx)).stage == 2
    assert await answer_store.get_answers_map(ctx.session_id) == {1: "Agricultural consulting"}


async def test_next_at_last_question_completes(wizard, tracker, ctx):
    await wizard.jump(10)
    wizard.type("sustainable, family, trust")

    result = await wizard.next()

    assert isinstance(result, Complete)
    assert wizard.stage == 10


async def test_jump_out_of_range_keeps_stage(wizard):
    await wizard.jump(4)

    with pytest.raises(InvalidStageError):
        await wizard.jump(11)
    assert wizard.stage == 4


async def test_previous(wizard):
    await wizard.previous()
    assert wizard.stage == 1

    await wizard.jump(5)
    await wizard.previous()
    assert wizard.stage == 4


async def test_clear_removes_stored_answer(wizard, answer_store, ctx):
    wizard.type("to be removed")
    await wizard.scheduler.flush()

    await wizard.clear()

    assert wizard.current_answer == ""
    assert await answer_store.get_answers_map(ctx.session_id) == {}


async def test_failed_stage_write_keeps_local_stage(ctx, tracker, answer_store):
    wizard = await InterviewWizard(ctx, tracker, answer_store).open()
    wizard.tracker = AsyncMock(wraps=tracker)
    wizard.tracker.advance.side_effect = PersistenceError("advance_stage failed")
    wizard.type("answered")

    with pytest.raises(PersistenceError):
        await wizard.next()

    assert wizard.stage == 1
    await wizard.close()


async def test_default_scheduler_reads_quiet_period_from_settings(ctx, tracker, answer_store, monkeypatch):
    monkeypatch.setenv("AUTOSAVE_QUIET_PERIOD_SECONDS", "0.2")
    get_settings.cache_clear()
    try:
        wizard = InterviewWizard(ctx, tracker, answer_store)
    finally:
        get_settings.cache_clear()

    assert wizard.scheduler.quiet_period == 0.2
