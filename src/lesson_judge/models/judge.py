"""Judge verdict models.

A JudgeVerdict is produced once per evaluation attempt by the model judge
and is immutable afterwards. Scores are normalized to [0, 1].
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class JudgeCriterion(str, Enum):
    """Rubric criteria scored by the judge."""

    LEARNING_OBJECTIVE_ALIGNMENT = "learning_objective_alignment"
    PEDAGOGICAL_STRUCTURE = "pedagogical_structure"
    FACTUAL_ACCURACY = "factual_accuracy"
    CLARITY_READABILITY = "clarity_readability"
    ENGAGEMENT_EXAMPLES = "engagement_examples"
    COMPLETENESS = "completeness"


class IssueSeverity(str, Enum):
    """Severity of a judge or lint issue."""

    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class JudgeConfidence(str, Enum):
    """Self-reported confidence of a verdict."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class JudgeRecommendation(str, Enum):
    """Recommendation attached to a verdict."""

    ACCEPT = "ACCEPT"
    ACCEPT_WITH_MINOR_REVISION = "ACCEPT_WITH_MINOR_REVISION"
    ITERATIVE_REFINEMENT = "ITERATIVE_REFINEMENT"
    REGENERATE = "REGENERATE"
    ESCALATE_TO_HUMAN = "ESCALATE_TO_HUMAN"


class VotingMethod(str, Enum):
    """How an aggregated verdict was reached."""

    UNANIMOUS = "unanimous"
    MAJORITY = "majority"
    TIEBREAKER = "tiebreaker"


SEVERITY_RANK: Dict[IssueSeverity, int] = {
    IssueSeverity.CRITICAL: 0,
    IssueSeverity.MAJOR: 1,
    IssueSeverity.MINOR: 2,
}

CONFIDENCE_RANK: Dict[JudgeConfidence, int] = {
    JudgeConfidence.LOW: 0,
    JudgeConfidence.MEDIUM: 1,
    JudgeConfidence.HIGH: 2,
}


class CriteriaScores(BaseModel):
    """Per-criterion scores, each in [0, 1]."""

    learning_objective_alignment: float = Field(..., ge=0, le=1)
    pedagogical_structure: float = Field(..., ge=0, le=1)
    factual_accuracy: float = Field(..., ge=0, le=1)
    clarity_readability: float = Field(..., ge=0, le=1)
    engagement_examples: float = Field(..., ge=0, le=1)
    completeness: float = Field(..., ge=0, le=1)

    model_config = {"frozen": True}

    def as_dict(self) -> Dict[JudgeCriterion, float]:
        """Return scores keyed by criterion."""
        return {criterion: getattr(self, criterion.value) for criterion in JudgeCriterion}


class JudgeIssue(BaseModel):
    """Single itemized problem reported against the content."""

    criterion: JudgeCriterion = Field(..., description="Rubric criterion affected")
    severity: IssueSeverity = Field(..., description="minor, major, or critical")
    location: str = Field(
        ..., min_length=1, description="Where the issue occurs (e.g. 'section 2', 'Line 14')"
    )
    description: str = Field(..., min_length=1, description="What is wrong")
    quoted_text: Optional[str] = Field(default=None, description="Offending excerpt")
    suggested_fix: str = Field(..., min_length=1, description="How to fix it")

    model_config = {"frozen": True}


class JudgeVerdict(BaseModel):
    """Complete verdict for one evaluation attempt."""

    overall_score: float = Field(..., ge=0, le=1)
    passed: bool
    confidence: JudgeConfidence
    criteria_scores: CriteriaScores
    issues: List[JudgeIssue] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    recommendation: JudgeRecommendation
    judge_model: str = Field(..., min_length=1)
    temperature: float = Field(default=0.1, ge=0, le=2)
    tokens_used: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "overall_score": 0.85,
                "passed": True,
                "confidence": "high",
                "criteria_scores": {
                    "learning_objective_alignment": 0.9,
                    "pedagogical_structure": 0.85,
                    "factual_accuracy": 0.88,
                    "clarity_readability": 0.82,
                    "engagement_examples": 0.8,
                    "completeness": 0.85,
                },
                "issues": [],
                "strengths": ["Clear explanation of core concepts"],
                "recommendation": "ACCEPT_WITH_MINOR_REVISION",
                "judge_model": "gpt-4.1-mini",
                "temperature": 0.1,
                "tokens_used": 1500,
                "duration_ms": 3000,
            }
        },
    }


class JudgeAggregatedResult(BaseModel):
    """Result of a multi-judge vote."""

    verdicts: List[JudgeVerdict] = Field(..., min_length=1)
    aggregated_score: float = Field(..., ge=0, le=1)
    final_recommendation: JudgeRecommendation
    voting_method: VotingMethod
    consensus_reached: bool
    issues: List[JudgeIssue] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def tokens_used(self) -> int:
        return sum(verdict.tokens_used for verdict in self.verdicts)
