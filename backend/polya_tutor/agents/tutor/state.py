"""State definitions for the Polya tutoring session.

The TypedDict is what flows through the turn graph; the pydantic models are
what the session hands back to its callers.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from langchain_core.messages import BaseMessage
from langgraph.graph import add_messages
from pydantic import BaseModel, Field
from typing_extensions import TypedDict

from .prompts import STAGE_NAMES

FIRST_STAGE = 1
FINAL_STAGE = 4


class ResponseEntry(TypedDict):
    """One student answer, tagged with the stage it was given in."""

    stage: int
    answer: str
    timestamp: str


class TutoringState(TypedDict):
    """
    Complete state of one problem-solving attempt.

    ``messages`` is the model-facing context (prompts included); ``dialogue``
    is the visible ``{role, text}`` transcript handed to the external store.
    """

    messages: Annotated[List[BaseMessage], add_messages]
    dialogue: List[Dict[str, str]]

    session_id: str
    problem_text: str
    current_stage: int
    is_complete: bool
    response_log: List[ResponseEntry]
    stage_outcomes: Dict[int, Optional[str]]

    # Per-turn working fields
    answer: str
    prompt: Optional[str]
    reply: Optional[str]
    message: str
    robot_status: str
    next_stage: Optional[int]
    stage_outcome: Optional[str]

    started_at: str
    last_activity_at: str


def create_initial_tutoring_state(session_id: str, problem_text: str) -> TutoringState:
    """
    Create the state for a fresh attempt at stage 1.

    Args:
        session_id: Unique session identifier
        problem_text: The word problem being solved

    Returns:
        Initial TutoringState
    """
    now = datetime.utcnow().isoformat()

    return TutoringState(
        messages=[],
        dialogue=[],
        session_id=session_id,
        problem_text=problem_text,
        current_stage=FIRST_STAGE,
        is_complete=False,
        response_log=[],
        stage_outcomes={stage: None for stage in STAGE_NAMES},
        answer="",
        prompt=None,
        reply=None,
        message="",
        robot_status="idle",
        next_stage=None,
        stage_outcome=None,
        started_at=now,
        last_activity_at=now,
    )


def stage_name(stage: int) -> str:
    return STAGE_NAMES.get(stage, "")


# =============================================================================
# RESULTS
# =============================================================================

class StartResult(BaseModel):
    """Opening question of a new attempt, or the stage of a restored one."""

    message: str
    stage: int
    stage_name: str


class TurnResult(BaseModel):
    """Outcome of one submitted answer."""

    message: str
    stage: int
    stage_name: str
    next_stage: Optional[int] = None
    stage_outcome: Optional[str] = None
    is_complete: bool = False
    robot_status: str = "idle"


class SessionSummary(BaseModel):
    """Snapshot of the attempt for reporting and persistence."""

    problem: str
    stage_outcomes: Dict[int, Optional[str]]
    response_log: List[Dict[str, Any]] = Field(default_factory=list)
    current_stage: int
    is_complete: bool = False
