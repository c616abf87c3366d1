"""Cascade and end-to-end lesson evaluation results."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from lesson_judge.models.decision import DecisionResult
from lesson_judge.models.entropy import EntropyAnalysisResult
from lesson_judge.models.heuristics import HeuristicFilterResult
from lesson_judge.models.judge import (
    JudgeAggregatedResult,
    JudgeRecommendation,
    JudgeVerdict,
)


class CascadeStage(str, Enum):
    """Stage at which the cascade produced its final answer."""

    HEURISTIC = "heuristic"
    SINGLE_JUDGE = "single_judge"
    VOTING = "voting"


class CascadeHeuristicResults(BaseModel):
    """Heuristic outcome as surfaced by the cascade."""

    passed: bool
    word_count: int = Field(..., ge=0)
    flesch_kincaid: float = Field(..., ge=0, description="0 when readability was skipped")
    flesch_kincaid_skipped: bool = Field(default=False)
    sections_present: bool
    missing_sections: List[str] = Field(default_factory=list)
    keyword_coverage: float = Field(..., ge=0, le=1)
    examples_count: int = Field(..., ge=0)
    exercises_count: int = Field(..., ge=0)
    failure_reasons: List[str] = Field(default_factory=list, description="Blocking reasons")
    warnings: List[str] = Field(default_factory=list, description="Non-blocking findings")
    filter_result: HeuristicFilterResult


class CascadeResult(BaseModel):
    """Outcome of heuristics plus (optional) model judging."""

    stage: CascadeStage
    passed: bool
    heuristic_results: Optional[CascadeHeuristicResults] = None
    single_judge_verdict: Optional[JudgeVerdict] = None
    voting_result: Optional[JudgeAggregatedResult] = None
    final_score: float = Field(..., ge=0, le=1)
    final_recommendation: JudgeRecommendation
    total_tokens_used: int = Field(default=0, ge=0)
    total_duration_ms: float = Field(default=0.0, ge=0)
    cost_savings_ratio: float = Field(..., ge=0, le=1)


class LessonEvaluationResult(BaseModel):
    """Full judge-and-decide cycle for one lesson draft."""

    lesson_id: str
    iteration_count: int = Field(..., ge=0)
    cascade: CascadeResult
    entropy: EntropyAnalysisResult
    decision: DecisionResult
    escalated_by_entropy: bool = Field(default=False)
    partial_success: bool = Field(
        default=False, description="Final score is below the job quality gate"
    )
