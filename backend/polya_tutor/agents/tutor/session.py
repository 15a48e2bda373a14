"""Stateful Polya tutoring session.

One ``TutoringSession`` exists per problem-solving attempt. Every model call
goes through the shared dispatcher; the stage machine itself runs in the
turn graph.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from ...core.exceptions import NoActiveSession
from ...llm.dispatcher import RateLimitedDispatcher
from ...llm.message_utils import langchain_to_transcript, transcript_to_langchain
from .graph import TurnGraph, build_turn_graph
from .prompts import (
    ALREADY_COMPLETE_MESSAGE,
    BUSY_MESSAGE,
    HINT_TEMPLATE,
    NO_HINT_MESSAGE,
    OPENING_TEMPLATE,
    SYSTEM_PROMPT,
    trim_opening_question,
)
from .signals import parse_status_marker, replay_stage
from .state import (
    FINAL_STAGE,
    ResponseEntry,
    SessionSummary,
    StartResult,
    TurnResult,
    TutoringState,
    create_initial_tutoring_state,
    stage_name,
)

logger = logging.getLogger(__name__)


class TutoringSession:
    """
    Guided dialogue through the four Polya stages for one problem.

    Args:
        dispatcher: Shared dispatcher every model call goes through
        session_id: Optional identifier; generated when omitted
        graph: Optional prebuilt turn graph
    """

    def __init__(
        self,
        dispatcher: RateLimitedDispatcher,
        session_id: Optional[str] = None,
        graph: Optional[TurnGraph] = None,
    ):
        self.session_id = session_id or f"polya_{uuid.uuid4().hex[:12]}"
        self._dispatcher = dispatcher
        self._graph = graph or build_turn_graph(dispatcher)
        self._state: Optional[TutoringState] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> TutoringState:
        if self._state is None:
            raise NoActiveSession(f"Session {self.session_id} has not been started")
        return self._state

    @property
    def current_stage(self) -> int:
        return self.state["current_stage"]

    @property
    def is_complete(self) -> bool:
        return self.state["is_complete"]

    @staticmethod
    def stage_name(stage: int) -> str:
        return stage_name(stage)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def start(self, problem_text: str) -> StartResult:
        """
        Begin a new attempt at stage 1 and ask the opening question.

        When the dispatcher gives up, the busy message is returned and the
        session is still ready for the first answer.
        """
        state = create_initial_tutoring_state(self.session_id, problem_text)
        opening = HumanMessage(content=OPENING_TEMPLATE.format(problem_text=problem_text))
        context = [SystemMessage(content=SYSTEM_PROMPT), opening]

        reply = await self._dispatcher.dispatch(context)

        if reply is None:
            message = BUSY_MESSAGE
        else:
            message = trim_opening_question(parse_status_marker(reply).message)
            context.append(AIMessage(content=reply))
            state["dialogue"] = [{"role": "model", "text": message}]

        state["messages"] = context
        self._state = state
        logger.info(f"Started tutoring session {self.session_id}")

        return StartResult(message=message, stage=state["current_stage"], stage_name=stage_name(state["current_stage"]))

    async def submit_answer(self, answer: str) -> TurnResult:
        """
        Process one student answer.

        Raises:
            NoActiveSession: If neither ``start`` nor ``restore`` was called
            AllRoutesExhausted: If every model and credential failed
        """
        state = self.state

        if state["is_complete"]:
            return TurnResult(
                message=ALREADY_COMPLETE_MESSAGE,
                stage=state["current_stage"],
                stage_name=stage_name(state["current_stage"]),
                is_complete=True,
            )

        # The answer is logged before the model call, so it survives a failed turn.
        entry = ResponseEntry(
            stage=state["current_stage"],
            answer=answer,
            timestamp=datetime.utcnow().isoformat(),
        )
        state["response_log"] = state["response_log"] + [entry]
        state.update(
            answer=answer,
            prompt=None,
            reply=None,
            message="",
            robot_status="idle",
            next_stage=None,
            stage_outcome=None,
        )

        result = await self._graph.invoke(state)
        self._state = result

        return TurnResult(
            message=result["message"],
            stage=result["current_stage"],
            stage_name=stage_name(result["current_stage"]),
            next_stage=result.get("next_stage"),
            stage_outcome=result.get("stage_outcome"),
            is_complete=result["is_complete"],
            robot_status=result["robot_status"],
        )

    async def hint(self) -> str:
        """
        Ask for a hint for the current stage.

        The hint exchange is not added to the conversation context.
        """
        state = self.state
        stage = state["current_stage"]
        prompt = HINT_TEMPLATE.format(stage=stage, stage_name=stage_name(stage))

        reply = await self._dispatcher.dispatch(list(state["messages"]) + [HumanMessage(content=prompt)])
        if reply is None:
            return NO_HINT_MESSAGE
        return parse_status_marker(reply).message or NO_HINT_MESSAGE

    def restore(self, problem_text: str, history: Iterable[Any]) -> StartResult:
        """
        Rehydrate a session from a stored transcript without calling the model.

        The stage is rebuilt by replaying the tutor messages in order with the
        same advance rule as a live turn, starting from stage 1.

        Args:
            problem_text: The problem being solved
            history: Stored ``{role, text}`` entries in conversation order

        Returns:
            The restored stage and the last tutor message, if any
        """
        stored = transcript_to_langchain(history)
        dialogue = langchain_to_transcript(stored)

        stage = replay_stage(
            (entry["text"] for entry in dialogue if entry["role"] == "model"),
            last_stage=FINAL_STAGE,
        )

        state = create_initial_tutoring_state(self.session_id, problem_text)
        state["messages"] = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=OPENING_TEMPLATE.format(problem_text=problem_text)),
            *[message for message in stored if not isinstance(message, SystemMessage)],
        ]
        state["dialogue"] = dialogue
        state["current_stage"] = stage
        self._state = state

        logger.info(f"Restored session {self.session_id} at stage {stage} from {len(dialogue)} entries")

        last_model = next((entry["text"] for entry in reversed(dialogue) if entry["role"] == "model"), "")
        return StartResult(message=last_model, stage=stage, stage_name=stage_name(stage))

    def summary(self) -> SessionSummary:
        state = self.state
        return SessionSummary(
            problem=state["problem_text"],
            stage_outcomes=dict(state["stage_outcomes"]),
            response_log=[dict(entry) for entry in state["response_log"]],
            current_stage=state["current_stage"],
            is_complete=state["is_complete"],
        )

    def transcript(self) -> List[Dict[str, str]]:
        """Visible dialogue as ordered ``{role, text}`` entries."""
        return [dict(entry) for entry in self.state["dialogue"]]
