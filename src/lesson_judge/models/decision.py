"""Decision engine input and output models.

DecisionContext is the only state that survives across refinement
iterations of one lesson. The caller owns it and passes a fresh copy into
each decision; the engine never mutates it.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from lesson_judge.models.judge import JudgeConfidence, JudgeIssue


class DecisionAction(str, Enum):
    """Next step for a judged lesson."""

    ACCEPT = "ACCEPT"
    TARGETED_FIX = "TARGETED_FIX"
    ITERATIVE_REFINEMENT = "ITERATIVE_REFINEMENT"
    REGENERATE = "REGENERATE"
    ESCALATE_TO_HUMAN = "ESCALATE_TO_HUMAN"


class DecisionContext(BaseModel):
    """Everything the decision engine needs for one decision."""

    score: float = Field(..., ge=0, le=1, description="Overall judge score")
    confidence: JudgeConfidence
    issues: List[JudgeIssue] = Field(..., description="Issues from the judge verdict")
    iteration_count: int = Field(..., ge=0, description="Refinement iterations completed")
    previous_scores: List[float] = Field(
        ..., description="Scores of earlier iterations, oldest first"
    )
    content_affected_percentage: float = Field(..., ge=0, le=100)
    total_sections: Optional[int] = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @field_validator("previous_scores")
    @classmethod
    def validate_previous_scores(cls, v: List[float]) -> List[float]:
        """Every historical score must be a valid [0, 1] score."""
        for score in v:
            if not 0 <= score <= 1:
                raise ValueError(f"previous score {score} is outside [0, 1]")
        return v


class DecisionFactors(BaseModel):
    """Human-readable breakdown of why a decision was made."""

    score_threshold: str
    issue_analysis: str
    confidence_level: str
    iteration_history: str

    model_config = {"frozen": True}


class DecisionResult(BaseModel):
    """Terminal output of one decision cycle."""

    action: DecisionAction
    reason: str = Field(..., min_length=1)
    max_iterations: int = Field(..., ge=0)
    target_score: Optional[float] = Field(default=None, ge=0, le=1)
    feedback_for_regeneration: Optional[str] = Field(default=None)
    factors: Optional[DecisionFactors] = Field(default=None)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_accept_has_no_iterations(self):
        """An accepted lesson needs no further iterations."""
        if self.action == DecisionAction.ACCEPT and self.max_iterations != 0:
            raise ValueError("ACCEPT decisions must have max_iterations == 0")
        return self
