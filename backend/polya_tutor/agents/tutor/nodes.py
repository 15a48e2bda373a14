"""Nodes for the tutoring turn graph.

One graph run handles one student answer:

    compose_prompt -> consult_model -> interpret_reply -> apply_transition
    compose_prompt -> consult_model -> busy_fallback          (no reply)

``consult_model`` needs the dispatcher and lives on the graph wrapper.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from langchain_core.messages import AIMessage, HumanMessage

from .analysis import analyze_problem_statement, render_analysis
from .prompts import (
    BUSY_MESSAGE,
    STAGE_INSTRUCTIONS,
    TURN_TEMPLATE,
    format_response_history,
)
from .signals import (
    RobotStatus,
    StageOutcome,
    extract_outcome,
    mentions_completion,
    mentions_final_answer,
    mentions_stage,
    parse_status_marker,
)
from .state import FINAL_STAGE, TutoringState

logger = logging.getLogger(__name__)


# =============================================================================
# STAGE TRANSITIONS
# =============================================================================

@dataclass(frozen=True)
class Transition:
    """
    Stage change decided from one interpreted reply.

    ``outcomes`` holds the outcome of every stage that is being left.
    """

    next_stage: Optional[int] = None
    outcomes: Dict[int, StageOutcome] = field(default_factory=dict)
    completes: bool = False

    @property
    def stage_outcome(self) -> Optional[StageOutcome]:
        if not self.outcomes:
            return None
        return self.outcomes[min(self.outcomes)]


def decide_transition(
    stage: int,
    status: RobotStatus,
    message: str,
    answer: str,
) -> Transition:
    """
    Decide whether the attempt moves on after a reply.

    Rules, first match wins:
      1. A correct verdict before the last stage jumps straight to the last
         stage when a final answer was given (in the reply or the answer),
         or when the verdict lands during the execution stage. Every stage
         skipped over is recorded as "pass".
      2. A reply naming the next stage advances by one stage, whatever its
         verdict, and records the sentiment of the reply as the outcome of
         the stage left.
      3. A correct reply in the last stage that names completion finishes the
         attempt.
    """
    if status == RobotStatus.CORRECT and stage < FINAL_STAGE:
        if stage == FINAL_STAGE - 1 or mentions_final_answer(message, answer):
            outcomes = {skipped: StageOutcome.PASS for skipped in range(stage, FINAL_STAGE)}
            return Transition(next_stage=FINAL_STAGE, outcomes=outcomes)

    if stage < FINAL_STAGE and mentions_stage(message, stage + 1):
        return Transition(next_stage=stage + 1, outcomes={stage: extract_outcome(message)})

    if stage == FINAL_STAGE and status == RobotStatus.CORRECT and mentions_completion(message):
        return Transition(outcomes={FINAL_STAGE: extract_outcome(message)}, completes=True)

    return Transition()


# =============================================================================
# NODES
# =============================================================================

def compose_prompt_node(state: TutoringState) -> Dict[str, Any]:
    """Build the turn prompt from the problem, its analysis and the answers so far."""
    stage = state["current_stage"]
    # The latest answer is already in the log; the history shows the earlier ones.
    history = format_response_history(state["response_log"][:-1])

    prompt = TURN_TEMPLATE.format(
        problem_text=state["problem_text"],
        analysis=render_analysis(analyze_problem_statement(state["problem_text"])),
        history=history,
        answer=state["answer"],
        stage_instructions=STAGE_INSTRUCTIONS[stage],
    )
    return {"prompt": prompt}


def route_after_consult(state: TutoringState) -> str:
    """Interpret the reply, or fall back when the dispatcher gave up."""
    if state.get("reply") is None:
        return "busy_fallback"
    return "interpret_reply"


def interpret_reply_node(state: TutoringState) -> Dict[str, Any]:
    """Strip the status marker and record the exchange in both transcripts."""
    reply = state["reply"] or ""
    parsed = parse_status_marker(reply)

    if not parsed.has_marker:
        logger.debug(f"Reply in session {state['session_id']} carries no status marker")

    dialogue = list(state["dialogue"])
    dialogue.append({"role": "user", "text": state["answer"]})
    dialogue.append({"role": "model", "text": parsed.message})

    return {
        "messages": [HumanMessage(content=state["prompt"]), AIMessage(content=reply)],
        "dialogue": dialogue,
        "message": parsed.message,
        "robot_status": parsed.status.value,
    }


def apply_transition_node(state: TutoringState) -> Dict[str, Any]:
    """Move the attempt forward according to the interpreted reply."""
    stage = state["current_stage"]
    transition = decide_transition(
        stage,
        RobotStatus(state["robot_status"]),
        state["message"],
        state["answer"],
    )

    stage_outcomes = dict(state["stage_outcomes"])
    for left, outcome in transition.outcomes.items():
        stage_outcomes[left] = outcome.value

    updates: Dict[str, Any] = {
        "stage_outcomes": stage_outcomes,
        "next_stage": transition.next_stage,
        "stage_outcome": transition.stage_outcome.value if transition.stage_outcome else None,
        "last_activity_at": datetime.utcnow().isoformat(),
    }

    if transition.next_stage is not None:
        updates["current_stage"] = transition.next_stage
        logger.info(f"Session {state['session_id']} moved from stage {stage} to {transition.next_stage}")

    if transition.completes:
        updates["is_complete"] = True
        logger.info(f"Session {state['session_id']} completed")

    return updates


def busy_fallback_node(state: TutoringState) -> Dict[str, Any]:
    """Answer with the busy message; stage and context stay as they were."""
    logger.warning(f"No reply for session {state['session_id']}, sending busy message")
    return {
        "message": BUSY_MESSAGE,
        "robot_status": RobotStatus.IDLE.value,
        "next_stage": None,
        "stage_outcome": None,
        "last_activity_at": datetime.utcnow().isoformat(),
    }
