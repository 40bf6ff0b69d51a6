"""Tests for AnalysisOrchestrator: preconditions, timeout/retry/backoff and tagging."""

import asyncio
import json
import time
import uuid

import pytest

from vision_builder.core.exceptions import (
    AnalysisInProgressError,
    IncompleteAnswersError,
    MalformedResponseError,
    RetryLimitExceededError,
    TextGenerationError,
)
from vision_builder.generation.fake import HAPPY_ANALYSIS, Delayed, FakeTextGenerator
from vision_builder.services.analysis_orchestrator import (
    AnalysisOrchestrator,
    AnalysisState,
    RunningAnalyses,
    vision_length_warnings,
)
from vision_builder.services.analysis_store import normalized_meta

pytestmark = pytest.mark.integration

TIMEOUT = 0.05


def _orchestrator(generator, answer_store, analysis_store, **kwargs) -> AnalysisOrchestrator:
    kwargs.setdefault("timeout_seconds", TIMEOUT)
    kwargs.setdefault("backoff_seconds", 0.0)
    return AnalysisOrchestrator(generator, answer_store, analysis_store, **kwargs)


class TestPreconditions:
    async def test_nine_answers_refused_without_calling_service(
        self, answer_store, analysis_store, count_analyses, ctx, all_answers, fake_generator
    ):
        for number, text in all_answers.items():
            if number != 6:
                await answer_store.upsert(ctx.session_id, number, text)
        orchestrator = _orchestrator(fake_generator, answer_store, analysis_store)

        with pytest.raises(IncompleteAnswersError) as exc_info:
            await orchestrator.analyze(ctx)

        assert exc_info.value.missing == [6]
        assert fake_generator.calls == []
        assert await count_analyses(ctx.session_id) == 0
        assert orchestrator.state is AnalysisState.IDLE

    async def test_blank_answer_counts_as_missing(self, answer_store, analysis_store, answered_ctx, fake_generator):
        await answer_store.upsert(answered_ctx.session_id, 10, "   ")
        orchestrator = _orchestrator(fake_generator, answer_store, analysis_store)

        with pytest.raises(IncompleteAnswersError) as exc_info:
            await orchestrator.analyze(answered_ctx)
        assert exc_info.value.missing == [10]

    async def test_rejects_call_while_running(self, answer_store, analysis_store, answered_ctx, happy_analysis_json):
        generator = FakeTextGenerator(script=[Delayed(0.2, happy_analysis_json)])
        orchestrator = _orchestrator(generator, answer_store, analysis_store, timeout_seconds=1.0)

        first = asyncio.create_task(orchestrator.analyze(answered_ctx))
        while orchestrator.state is not AnalysisState.RUNNING:
            await asyncio.sleep(0.01)

        with pytest.raises(AnalysisInProgressError):
            await orchestrator.analyze(answered_ctx)

        await first
        assert orchestrator.state is AnalysisState.SUCCEEDED


class TestSuccess:
    async def test_happy_path_creates_one_row_with_original(
        self, answer_store, analysis_store, count_analyses, answered_ctx, fake_generator
    ):
        orchestrator = _orchestrator(fake_generator, answer_store, analysis_store, timeout_seconds=1.0)

        analysis = await orchestrator.analyze(answered_ctx)

        assert orchestrator.state is AnalysisState.SUCCEEDED
        assert await count_analyses(answered_ctx.session_id) == 1
        meta = normalized_meta(analysis)
        assert [e.type for e in meta.version_history] == ["original"]
        assert meta.keywords == HAPPY_ANALYSIS["keywords"]
        assert meta.processing_time_ms is not None
        assert analysis.vision_inspirational == HAPPY_ANALYSIS["vision_inspirational"]

    async def test_prompt_contains_answers_in_order(
        self, answer_store, analysis_store, answered_ctx, all_answers, fake_generator
    ):
        orchestrator = _orchestrator(fake_generator, answer_store, analysis_store, timeout_seconds=1.0)
        await orchestrator.analyze(answered_ctx)

        user_prompt = fake_generator.calls[0][-1]["content"]
        positions = [user_prompt.index(all_answers[n]) for n in range(1, 11)]
        assert positions == sorted(positions)

    async def test_two_timeouts_then_success(
        self, answer_store, analysis_store, count_analyses, answered_ctx, happy_analysis_json
    ):
        generator = FakeTextGenerator(script=[Delayed(None), Delayed(None), happy_analysis_json])
        notices = []
        orchestrator = _orchestrator(generator, answer_store, analysis_store, on_notice=notices.append)

        analysis = await orchestrator.analyze(answered_ctx)

        assert orchestrator.state is AnalysisState.SUCCEEDED
        assert len(generator.calls) == 3
        assert orchestrator.current_attempt_id == 3
        assert await count_analyses(answered_ctx.session_id) == 1
        assert len(normalized_meta(analysis).version_history) == 1
        assert [n.kind for n in notices] == ["retrying", "retrying"]

    async def test_timeout_retries_without_backoff(self, answer_store, analysis_store, answered_ctx, happy_analysis_json):
        generator = FakeTextGenerator(script=[Delayed(None), happy_analysis_json])
        orchestrator = _orchestrator(generator, answer_store, analysis_store, backoff_seconds=5.0)

        started = time.monotonic()
        await orchestrator.analyze(answered_ctx)

        assert time.monotonic() - started < 2.0

    async def test_service_error_backs_off_before_retry(
        self, answer_store, analysis_store, answered_ctx, happy_analysis_json
    ):
        generator = FakeTextGenerator(script=[TextGenerationError("AI gateway error: 503", 503), happy_analysis_json])
        orchestrator = _orchestrator(generator, answer_store, analysis_store, timeout_seconds=1.0, backoff_seconds=0.2)

        started = time.monotonic()
        await orchestrator.analyze(answered_ctx)

        assert time.monotonic() - started >= 0.2
        assert len(generator.calls) == 2
        assert orchestrator.state is AnalysisState.SUCCEEDED


class TestFailure:
    async def test_always_timing_out_fails_with_no_rows(
        self, answer_store, analysis_store, count_analyses, tracker, answered_ctx, fake_generator_timeout
    ):
        await tracker.set_stage(answered_ctx, 10)
        notices = []
        orchestrator = _orchestrator(fake_generator_timeout, answer_store, analysis_store, on_notice=notices.append)

        with pytest.raises(RetryLimitExceededError) as exc_info:
            await orchestrator.analyze(answered_ctx)

        assert exc_info.value.attempts == 3
        assert orchestrator.state is AnalysisState.FAILED
        assert len(fake_generator_timeout.calls) == 3
        assert await count_analyses(answered_ctx.session_id) == 0
        assert (await tracker.get_session(answered_ctx)).stage == 10
        assert [n.kind for n in notices] == ["retrying", "retrying", "failed"]

    async def test_service_errors_exhaust_attempts(
        self, answer_store, analysis_store, answered_ctx, fake_generator_failing
    ):
        orchestrator = _orchestrator(fake_generator_failing, answer_store, analysis_store, max_attempts=2)

        with pytest.raises(RetryLimitExceededError):
            await orchestrator.analyze(answered_ctx)
        assert len(fake_generator_failing.calls) == 2

    async def test_malformed_response_is_terminal(self, answer_store, analysis_store, count_analyses, answered_ctx):
        generator = FakeTextGenerator(scenario="malformed")
        orchestrator = _orchestrator(generator, answer_store, analysis_store)

        with pytest.raises(MalformedResponseError):
            await orchestrator.analyze(answered_ctx)

        assert len(generator.calls) == 1
        assert orchestrator.state is AnalysisState.FAILED
        assert await count_analyses(answered_ctx.session_id) == 0

    async def test_can_run_again_after_failure(self, answer_store, analysis_store, answered_ctx, happy_analysis_json):
        generator = FakeTextGenerator(script=[json.dumps({"notes": "no visions"}), happy_analysis_json])
        orchestrator = _orchestrator(generator, answer_store, analysis_store)

        with pytest.raises(MalformedResponseError):
            await orchestrator.analyze(answered_ctx)
        await orchestrator.analyze(answered_ctx)

        assert orchestrator.state is AnalysisState.SUCCEEDED


class _LateResponder:
    """First call ignores cancellation and answers late; later calls answer after a delay."""

    def __init__(self, late: str, current: str):
        self.late = late
        self.current = current
        self.calls = 0
        self.late_delivered = False

    async def complete(self, messages, *, temperature=None, model=None):
        self.calls += 1
        if self.calls == 1:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                await asyncio.sleep(0.05)
                self.late_delivered = True
                return self.late
        await asyncio.sleep(0.15)
        return self.current


async def test_stale_response_is_discarded(answer_store, analysis_store, count_analyses, answered_ctx):
    late = json.dumps({"vision_inspirational": "Stale inspirational", "vision_measurable": "Stale measurable"})
    current = json.dumps({"vision_inspirational": "Fresh inspirational", "vision_measurable": "Fresh measurable"})
    generator = _LateResponder(late, current)
    orchestrator = _orchestrator(generator, answer_store, analysis_store, timeout_seconds=0.3)

    analysis = await orchestrator.analyze(answered_ctx)

    assert generator.late_delivered is True
    assert analysis.vision_inspirational == "Fresh inspirational"
    assert await count_analyses(answered_ctx.session_id) == 1


class TestVisionLengthWarnings:
    def test_within_policy(self):
        assert vision_length_warnings("Help ten thousand family farms double their income sustainably") == []

    def test_too_short(self):
        (problem,) = vision_length_warnings("Grow farms")
        assert problem.startswith("2 words")

    def test_too_many_lines(self):
        vision = "one two three\nfour five six\nseven eight nine"
        problems = vision_length_warnings(vision)
        assert any("3 lines" in p for p in problems)


def test_running_analyses_rejects_second_claim_and_releases_on_error():
    running = RunningAnalyses()
    session_id = uuid.uuid4()

    with pytest.raises(RuntimeError):
        with running.claim(session_id):
            assert session_id in running
            with pytest.raises(AnalysisInProgressError):
                with running.claim(session_id):
                    pass
            raise RuntimeError("generation blew up")

    assert session_id not in running
    with running.claim(session_id):
        assert session_id in running
