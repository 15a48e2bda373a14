"""Tutor API endpoints for Polya problem-solving sessions."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from polya_tutor.agents.tutor.evaluation import CompetencyEvaluator
from polya_tutor.agents.tutor.session import TutoringSession
from polya_tutor.core.config import Settings, get_settings
from polya_tutor.core.exceptions import (
    AllRoutesExhausted,
    MissingConfiguration,
    NoActiveSession,
    NoCredentialAvailable,
)
from polya_tutor.llm.context import RoutingContext, build_routing_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutor", tags=["Tutor"])


# ==============================================================================
# Pydantic Models
# ==============================================================================

class SessionStartRequest(BaseModel):
    """Start a new attempt at a problem."""
    problem_text: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class SessionRestoreRequest(BaseModel):
    """Rehydrate an attempt from a stored transcript."""
    problem_text: str = Field(..., min_length=1)
    history: List[Dict[str, Any]] = Field(default_factory=list)
    session_id: Optional[str] = None


class AnswerRequest(BaseModel):
    """A student answer for the current stage."""
    answer: str


# ==============================================================================
# Routing Context & Session Management
# ==============================================================================

_routing_context: Optional[RoutingContext] = None

# In-memory session storage; transcripts are persisted by the caller
_tutor_sessions: Dict[str, TutoringSession] = {}


def get_routing_context(settings: Settings = Depends(get_settings)) -> RoutingContext:
    """Process-wide routing context, built on first use."""
    global _routing_context
    if _routing_context is None:
        try:
            _routing_context = build_routing_context(settings)
        except MissingConfiguration as e:
            logger.error(f"Routing context unavailable: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=str(e),
            )
    return _routing_context


def get_tutoring_session(session_id: str) -> TutoringSession:
    """Look up a registered session."""
    session = _tutor_sessions.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found. Please start a new session."
        )
    return session


def register_session(session: TutoringSession, limit: int) -> None:
    """Store a session, dropping the oldest ones beyond ``limit``."""
    _tutor_sessions.pop(session.session_id, None)
    _tutor_sessions[session.session_id] = session
    while len(_tutor_sessions) > limit:
        evicted = next(iter(_tutor_sessions))
        del _tutor_sessions[evicted]
        logger.info(f"Dropped session {evicted} from memory (limit {limit})")


def _to_http_exception(exc: Exception) -> HTTPException:
    """Map tutoring errors to HTTP errors."""
    if isinstance(exc, NoActiveSession):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, AllRoutesExhausted):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Every model and API key is exhausted for now. Please try again later.",
        )
    if isinstance(exc, (MissingConfiguration, NoCredentialAvailable)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to process request: {str(exc)}"
    )


# ==============================================================================
# Session Endpoints
# ==============================================================================

@router.post("/session/start", status_code=status.HTTP_201_CREATED)
async def start_session(
    request: SessionStartRequest,
    context: RoutingContext = Depends(get_routing_context),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Start a new tutoring attempt.

    Returns the opening question of stage 1.
    """
    session = TutoringSession(context.dispatcher, session_id=request.session_id)

    try:
        result = await session.start(request.problem_text)
    except Exception as e:
        logger.error(f"Error starting session: {e}")
        raise _to_http_exception(e)

    register_session(session, settings.MAX_TUTOR_SESSIONS)
    return {"session_id": session.session_id, **result.model_dump()}


@router.post("/session/restore")
async def restore_session(
    request: SessionRestoreRequest,
    context: RoutingContext = Depends(get_routing_context),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Restore an attempt from stored history without calling the model."""
    session = TutoringSession(context.dispatcher, session_id=request.session_id)
    result = session.restore(request.problem_text, request.history)

    register_session(session, settings.MAX_TUTOR_SESSIONS)
    return {"session_id": session.session_id, **result.model_dump()}


@router.post("/session/{session_id}/answer")
async def submit_answer(session_id: str, request: AnswerRequest) -> Dict[str, Any]:
    """Send one student answer and get the tutor's reply."""
    session = get_tutoring_session(session_id)

    try:
        result = await session.submit_answer(request.answer)
    except Exception as e:
        logger.error(f"Error in session {session_id}: {e}")
        raise _to_http_exception(e)

    return {"session_id": session_id, **result.model_dump()}


@router.post("/session/{session_id}/hint")
async def request_hint(session_id: str) -> Dict[str, Any]:
    """Get a hint for the current stage."""
    session = get_tutoring_session(session_id)

    try:
        message = await session.hint()
    except Exception as e:
        logger.error(f"Error getting hint for session {session_id}: {e}")
        raise _to_http_exception(e)

    return {"session_id": session_id, "message": message}


@router.delete("/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(session_id: str) -> None:
    """Forget a session once its transcript has been stored."""
    get_tutoring_session(session_id)
    del _tutor_sessions[session_id]
    logger.info(f"Ended session {session_id}")


@router.get("/session/{session_id}/summary")
async def get_summary(session_id: str) -> Dict[str, Any]:
    session = get_tutoring_session(session_id)
    try:
        summary = session.summary()
    except NoActiveSession as e:
        raise _to_http_exception(e)
    return {"session_id": session_id, **summary.model_dump()}


@router.get("/session/{session_id}/transcript")
async def get_transcript(session_id: str) -> Dict[str, Any]:
    session = get_tutoring_session(session_id)
    try:
        transcript = session.transcript()
    except NoActiveSession as e:
        raise _to_http_exception(e)
    return {"session_id": session_id, "transcript": transcript}


@router.post("/session/{session_id}/evaluation")
async def evaluate_session(
    session_id: str,
    context: RoutingContext = Depends(get_routing_context),
) -> Dict[str, Any]:
    """
    Score the session transcript against the four competency criteria.

    A reply that cannot be decoded yields a zero-score evaluation.
    """
    session = get_tutoring_session(session_id)
    evaluator = CompetencyEvaluator(context.dispatcher)

    try:
        evaluation = await evaluator.evaluate(
            session.state["problem_text"],
            session.transcript(),
            session_id=session_id,
        )
    except Exception as e:
        logger.error(f"Error evaluating session {session_id}: {e}")
        raise _to_http_exception(e)

    return {"session_id": session_id, "evaluation": evaluation.model_dump(mode="json")}


# ==============================================================================
# Usage
# ==============================================================================

@router.get("/usage")
async def get_usage(context: RoutingContext = Depends(get_routing_context)) -> Dict[str, Any]:
    """Credential usage (masked), model budgets and recent rotations."""
    return context.usage_report()
