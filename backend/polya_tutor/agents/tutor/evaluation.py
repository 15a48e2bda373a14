"""Competency evaluation of a finished tutoring transcript.

Four criteria, 0-2 points each:

    TC1  recognise the problem (data, unknowns, relations)
    TC2  devise the method
    TC3  carry the method out
    TC4  check the solution and transfer it

The overall level follows the total: 0-3 need_effort, 4-6 pass, 7-8 good.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ...core.exceptions import MalformedModelOutput
from ...llm.dispatcher import RateLimitedDispatcher
from .decoder import decode_json_object
from .prompts import EVALUATION_TEMPLATE, UNAVAILABLE_EVALUATION_COMMENT, format_transcript
from .signals import StageOutcome

logger = logging.getLogger(__name__)

MAX_CRITERION_SCORE = 2
MAX_TOTAL_SCORE = 4 * MAX_CRITERION_SCORE


def overall_level(total_score: int) -> StageOutcome:
    if total_score <= 3:
        return StageOutcome.NEED_EFFORT
    if total_score <= 6:
        return StageOutcome.PASS
    return StageOutcome.GOOD


class CriterionScore(BaseModel):
    """Score and comment for one criterion."""

    model_config = ConfigDict(populate_by_name=True)

    comment: str = Field(default="", validation_alias=AliasChoices("comment", "nhanXet"))
    score: int = Field(default=0, validation_alias=AliasChoices("score", "diem"))

    @field_validator("comment", mode="before")
    @classmethod
    def _coerce_comment(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        try:
            score = int(round(float(value)))
        except (TypeError, ValueError):
            return 0
        return max(0, min(MAX_CRITERION_SCORE, score))

    @property
    def level(self) -> StageOutcome:
        return (StageOutcome.NEED_EFFORT, StageOutcome.PASS, StageOutcome.GOOD)[self.score]


class CompetencyEvaluation(BaseModel):
    """
    Evaluation of one transcript.

    The total and the level are always recomputed from the criterion scores;
    a total reported by the model is ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    tc1: CriterionScore = Field(default_factory=CriterionScore, validation_alias=AliasChoices("tc1", "TC1"))
    tc2: CriterionScore = Field(default_factory=CriterionScore, validation_alias=AliasChoices("tc2", "TC2"))
    tc3: CriterionScore = Field(default_factory=CriterionScore, validation_alias=AliasChoices("tc3", "TC3"))
    tc4: CriterionScore = Field(default_factory=CriterionScore, validation_alias=AliasChoices("tc4", "TC4"))
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "tongNhanXet"))
    total_score: int = 0
    level: StageOutcome = StageOutcome.NEED_EFFORT
    evaluated: bool = True

    @model_validator(mode="after")
    def _recompute_total(self) -> "CompetencyEvaluation":
        self.total_score = sum(criterion.score for criterion in self.criteria)
        self.level = overall_level(self.total_score)
        return self

    @property
    def criteria(self) -> List[CriterionScore]:
        return [self.tc1, self.tc2, self.tc3, self.tc4]

    @classmethod
    def empty(cls) -> "CompetencyEvaluation":
        """Zero-score evaluation used when no usable reply is available."""
        unavailable = CriterionScore(comment=UNAVAILABLE_EVALUATION_COMMENT, score=0)
        return cls(
            tc1=unavailable,
            tc2=unavailable,
            tc3=unavailable,
            tc4=unavailable,
            summary=UNAVAILABLE_EVALUATION_COMMENT,
            evaluated=False,
        )


class CompetencyEvaluator:
    """
    Score a transcript through the shared dispatcher.

    Args:
        dispatcher: Shared dispatcher every model call goes through
    """

    def __init__(self, dispatcher: RateLimitedDispatcher):
        self._dispatcher = dispatcher

    async def evaluate(
        self,
        problem_text: str,
        transcript: List[Dict[str, str]],
        session_id: Optional[str] = None,
    ) -> CompetencyEvaluation:
        """
        Evaluate a transcript.

        Returns:
            The evaluation, or ``CompetencyEvaluation.empty()`` when the
            dispatcher gave up or the reply could not be decoded.

        Raises:
            AllRoutesExhausted: If every model and credential failed
        """
        prompt = EVALUATION_TEMPLATE.format(
            problem_text=problem_text,
            transcript=format_transcript(transcript),
        )

        reply = await self._dispatcher.dispatch(prompt)
        if reply is None:
            logger.warning(f"No evaluation reply for session {session_id}")
            return CompetencyEvaluation.empty()

        try:
            evaluation = decode_json_object(reply, CompetencyEvaluation)
        except MalformedModelOutput as e:
            logger.warning(f"Discarding malformed evaluation for session {session_id}: {e}")
            return CompetencyEvaluation.empty()

        logger.info(
            f"Evaluated session {session_id}: {evaluation.total_score}/{MAX_TOTAL_SCORE} "
            f"({evaluation.level.value})"
        )
        return evaluation
