"""Polya Tutor - guided problem-solving sessions.

This package drives a grade-5 word problem through the four Polya stages:
- Understand the problem
- Devise a plan
- Carry out the plan
- Look back (check and extend)

Each student answer runs through one LangGraph turn graph; every model call
goes through the shared rate-limited dispatcher.

Key features:
- Status marker and stage signal parsing (Vietnamese and English)
- Early jump to the last stage when a correct final answer is given
- Session restore from a stored transcript without re-running the dialogue
- Competency evaluation of finished transcripts
"""

from .evaluation import CompetencyEvaluation, CompetencyEvaluator, CriterionScore
from .graph import TurnGraph, build_turn_graph
from .session import TutoringSession
from .signals import RobotStatus, StageOutcome
from .state import (
    SessionSummary,
    StartResult,
    TurnResult,
    TutoringState,
    create_initial_tutoring_state,
)

__all__ = [
    # Session
    "TutoringSession",
    # Graph
    "build_turn_graph",
    "TurnGraph",
    # State
    "TutoringState",
    "create_initial_tutoring_state",
    "StartResult",
    "TurnResult",
    "SessionSummary",
    # Signals
    "RobotStatus",
    "StageOutcome",
    # Evaluation
    "CompetencyEvaluator",
    "CompetencyEvaluation",
    "CriterionScore",
]
