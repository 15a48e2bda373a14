"""Turn graph for the Polya tutor.

This module defines the LangGraph that processes one student answer,
from prompt composition to the stage transition.
"""

import logging
from typing import Any, Dict, Optional

from langchain_core.messages import HumanMessage
from langgraph.graph import END, StateGraph

from ...llm.dispatcher import RateLimitedDispatcher
from ...observability.langsmith import turn_trace_config
from .nodes import (
    apply_transition_node,
    busy_fallback_node,
    compose_prompt_node,
    interpret_reply_node,
    route_after_consult,
)
from .state import TutoringState

logger = logging.getLogger(__name__)


class TurnGraph:
    """
    Wrapper class for the tutoring turn graph.

    The graph holds no session data; every invocation receives the full
    session state and returns the updated one.
    """

    def __init__(self, dispatcher: RateLimitedDispatcher):
        """
        Initialize the turn graph.

        Args:
            dispatcher: Shared dispatcher every model call goes through
        """
        self._dispatcher = dispatcher
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build and compile the turn graph."""
        graph = StateGraph(TutoringState)

        # Add nodes
        graph.add_node("compose_prompt", compose_prompt_node)
        graph.add_node("consult_model", self._consult_model_node)
        graph.add_node("interpret_reply", interpret_reply_node)
        graph.add_node("apply_transition", apply_transition_node)
        graph.add_node("busy_fallback", busy_fallback_node)

        # Set entry point
        graph.set_entry_point("compose_prompt")

        # Add edges
        graph.add_edge("compose_prompt", "consult_model")
        graph.add_conditional_edges(
            "consult_model",
            route_after_consult,
            {
                "interpret_reply": "interpret_reply",
                "busy_fallback": "busy_fallback",
            },
        )
        graph.add_edge("interpret_reply", "apply_transition")

        graph.add_edge("apply_transition", END)
        graph.add_edge("busy_fallback", END)

        return graph.compile()

    async def _consult_model_node(self, state: TutoringState) -> Dict[str, Any]:
        """Send the running context plus the turn prompt through the dispatcher."""
        messages = list(state["messages"]) + [HumanMessage(content=state["prompt"])]
        reply = await self._dispatcher.dispatch(messages)
        return {"reply": reply}

    async def invoke(
        self,
        state: TutoringState,
        config: Optional[Dict[str, Any]] = None,
    ) -> TutoringState:
        """
        Run one turn.

        Args:
            state: Current session state with ``answer`` set
            config: Optional runnable configuration

        Returns:
            Updated state after the turn
        """
        config = config or turn_trace_config(state["session_id"], state["current_stage"])
        return await self.graph.ainvoke(state, config=config)


def build_turn_graph(dispatcher: RateLimitedDispatcher) -> TurnGraph:
    """
    Build and return a turn graph bound to the given dispatcher.

    Args:
        dispatcher: Shared dispatcher

    Returns:
        Compiled TurnGraph instance
    """
    return TurnGraph(dispatcher)
