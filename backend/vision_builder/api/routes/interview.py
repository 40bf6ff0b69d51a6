"""Interview API routes: sessions, answers, analysis and tagged actions."""

from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vision_builder.core.auth import AuthenticatedUser, require_user
from vision_builder.core.config import get_settings
from vision_builder.core.exceptions import AnalysisNotFoundError, EmptyAnswerError
from vision_builder.db.base import get_session_factory
from vision_builder.db.models.analysis import VisionAnalysis
from vision_builder.db.models.interview_session import InterviewSession
from vision_builder.domain.context import SessionContext
from vision_builder.domain.questions import QUESTIONS
from vision_builder.domain.stages import Continue
from vision_builder.generation import build_text_generator
from vision_builder.generation.protocol import TextGenerator
from vision_builder.schemas.interview import (
    AdvanceResponse,
    AnalysisResponse,
    AnalyzeAction,
    AnswerResponse,
    AnswerUpsertRequest,
    CreateSessionAction,
    InterviewActionRequest,
    QuestionStatus,
    RewriteAction,
    RewriteResponse,
    SessionAnswersResponse,
    SessionResponse,
    StageRequest,
)
from vision_builder.services.analysis_orchestrator import AnalysisOrchestrator, RunningAnalyses
from vision_builder.services.analysis_store import AnalysisStore, normalized_meta
from vision_builder.services.answer_store import AnswerStore
from vision_builder.services.rewrite_orchestrator import RewriteOrchestrator
from vision_builder.services.session_tracker import SessionStateTracker

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_text_generator(request: Request) -> TextGenerator:
    """Dependency that provides the app-wide TextGenerator.

    The lifespan builds it once; override this dependency in tests via
    app.dependency_overrides.
    """
    generator = getattr(request.app.state, "text_generator", None)
    if generator is None:
        generator = build_text_generator()
        request.app.state.text_generator = generator
    return generator


def get_running_analyses(request: Request) -> RunningAnalyses:
    """App-wide registry of sessions with an analysis in flight."""
    running = getattr(request.app.state, "running_analyses", None)
    if running is None:
        running = request.app.state.running_analyses = RunningAnalyses()
    return running


def get_store_factory() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def _session_response(interview: InterviewSession, has_analysis: bool | None = None) -> SessionResponse:
    response = SessionResponse.model_validate(interview)
    response.has_analysis = has_analysis
    return response


def _analysis_response(analysis: VisionAnalysis) -> AnalysisResponse:
    meta = normalized_meta(analysis)
    return AnalysisResponse(
        id=analysis.id,
        session_id=analysis.session_id,
        vision_inspirational=analysis.vision_inspirational,
        vision_measurable=analysis.vision_measurable,
        keywords=meta.keywords,
        insights=meta.insights,
        notes=meta.notes,
        processing_time_ms=meta.processing_time_ms,
        version_history=meta.version_history,
        created_at=analysis.created_at,
    )


async def _owned_context(
    session_id: UUID,
    user: AuthenticatedUser,
    factory: async_sessionmaker[AsyncSession],
) -> SessionContext:
    """Build the context after checking ownership (404 for foreign sessions)."""
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    await SessionStateTracker(factory).get_session(ctx)
    return ctx


# =============================================================================
# Sessions
# =============================================================================


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Dashboard: all of the caller's sessions, most recently updated first."""
    summaries = await SessionStateTracker(factory).list_sessions(user.user_id)
    return [_session_response(s.session, s.has_analysis) for s in summaries]


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    interview = await SessionStateTracker(factory).create_session(user.user_id)
    return _session_response(interview, has_analysis=False)


@router.get("/sessions/current", response_model=SessionResponse)
async def current_session(
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Resume the caller's most recent session, creating one at stage 1 if needed."""
    interview = await SessionStateTracker(factory).load_or_create(user.user_id)
    return _session_response(interview)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    interview = await SessionStateTracker(factory).get_session(ctx)
    has_analysis = await AnalysisStore(factory).latest(session_id) is not None
    return _session_response(interview, has_analysis)


@router.put("/sessions/{session_id}/stage", response_model=SessionResponse)
async def set_stage(
    session_id: UUID,
    body: StageRequest,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Stepper jump to any stage in 1..10; out-of-range stages are rejected."""
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    interview = await SessionStateTracker(factory).set_stage(ctx, body.stage)
    return _session_response(interview)


@router.post("/sessions/{session_id}/next", response_model=AdvanceResponse)
async def next_question(
    session_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Advance past the current question once its answer is stored.

    Raises:
        EmptyAnswerError (422): If the current question has no stored answer
    """
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    tracker = SessionStateTracker(factory)

    interview = await tracker.get_session(ctx)
    answered = await tracker.answered_status(ctx)
    if not answered[interview.stage]:
        raise EmptyAnswerError(interview.stage)

    result = await tracker.advance(ctx)
    if isinstance(result, Continue):
        return AdvanceResponse(status="continue", stage=result.stage)
    return AdvanceResponse(status="complete", stage=result.stage)


@router.post("/sessions/{session_id}/previous", response_model=SessionResponse)
async def previous_question(
    session_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    interview = await SessionStateTracker(factory).retreat(ctx)
    return _session_response(interview)


# =============================================================================
# Answers
# =============================================================================


@router.get("/sessions/{session_id}/answers", response_model=SessionAnswersResponse)
async def get_answers(
    session_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """All stored answers plus the per-question answered status (resume view)."""
    ctx = SessionContext(user_id=user.user_id, session_id=session_id)
    tracker = SessionStateTracker(factory)

    interview = await tracker.get_session(ctx)
    answers = await AnswerStore(factory).get_all(session_id)
    answered = await tracker.answered_status(ctx)

    return SessionAnswersResponse(
        session_id=session_id,
        stage=interview.stage,
        answers=[AnswerResponse.model_validate(a) for a in answers],
        questions=[
            QuestionStatus(number=q.number, text=q.text, label=q.label, answered=answered[q.number])
            for q in QUESTIONS
        ],
    )


@router.put("/sessions/{session_id}/answers/{question_number}", response_model=AnswerResponse)
async def upsert_answer(
    session_id: UUID,
    question_number: int,
    body: AnswerUpsertRequest,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Autosave commit target: insert or overwrite one answer."""
    await _owned_context(session_id, user, factory)
    answer = await AnswerStore(factory).upsert(session_id, question_number, body.answer_text)
    return AnswerResponse.model_validate(answer)


@router.delete("/sessions/{session_id}/answers/{question_number}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_answer(
    session_id: UUID,
    question_number: int,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    """Explicit clear; idempotent."""
    await _owned_context(session_id, user, factory)
    await AnswerStore(factory).delete(session_id, question_number)


# =============================================================================
# Analysis
# =============================================================================


@router.get("/sessions/{session_id}/analysis", response_model=AnalysisResponse)
async def get_analysis(
    session_id: UUID,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
):
    await _owned_context(session_id, user, factory)
    analysis = await AnalysisStore(factory).latest(session_id)
    if analysis is None:
        raise AnalysisNotFoundError(session_id)
    return _analysis_response(analysis)


# =============================================================================
# Tagged actions
# =============================================================================


ActionHandler = Callable[..., Awaitable[object]]


async def _handle_create_session(
    action: CreateSessionAction,
    user: AuthenticatedUser,
    factory: async_sessionmaker[AsyncSession],
    generator: TextGenerator,
    running: RunningAnalyses,
) -> SessionResponse:
    interview = await SessionStateTracker(factory).create_session(user.user_id)
    return _session_response(interview, has_analysis=False)


async def _handle_analyze(
    action: AnalyzeAction,
    user: AuthenticatedUser,
    factory: async_sessionmaker[AsyncSession],
    generator: TextGenerator,
    running: RunningAnalyses,
) -> AnalysisResponse:
    ctx = await _owned_context(action.session_id, user, factory)
    orchestrator = AnalysisOrchestrator.from_settings(
        generator,
        AnswerStore(factory),
        AnalysisStore(factory),
        settings=get_settings(),
    )
    with running.claim(ctx.session_id):
        analysis = await orchestrator.analyze(ctx)
    return _analysis_response(analysis)


async def _handle_rewrite(
    action: RewriteAction,
    user: AuthenticatedUser,
    factory: async_sessionmaker[AsyncSession],
    generator: TextGenerator,
    running: RunningAnalyses,
) -> RewriteResponse:
    ctx = await _owned_context(action.session_id, user, factory)
    analysis_store = AnalysisStore(factory)
    orchestrator = RewriteOrchestrator.from_settings(generator, analysis_store, settings=get_settings())

    entry = await orchestrator.rewrite(ctx, action.mode)
    latest = await analysis_store.latest(action.session_id)
    history_length = len(normalized_meta(latest).version_history) if latest is not None else 1
    return RewriteResponse(entry=entry, history_length=history_length)


ACTION_HANDLERS: dict[type, ActionHandler] = {
    CreateSessionAction: _handle_create_session,
    AnalyzeAction: _handle_analyze,
    RewriteAction: _handle_rewrite,
}


@router.post("/actions")
async def run_action(
    body: InterviewActionRequest,
    user: AuthenticatedUser = Depends(require_user),
    factory: async_sessionmaker[AsyncSession] = Depends(get_store_factory),
    generator: TextGenerator = Depends(get_text_generator),
    running: RunningAnalyses = Depends(get_running_analyses),
):
    """Single entry point for interview actions, dispatched on ``action``.

    Variants:
        create-session: start a fresh session
        analyze: generate the vision analysis (all ten answers required)
        rewrite: append a ``shorter`` / ``more_options`` / ``shorter_term`` version
    """
    action = body.root
    handler = ACTION_HANDLERS[type(action)]
    logger.info("interview_action_received", action=action.action, user_id=user.user_id)
    return await handler(action, user, factory, generator, running)
