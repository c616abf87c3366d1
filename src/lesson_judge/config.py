"""Immutable configuration for every judging component.

All thresholds live here as frozen pydantic models. Components receive a
config object explicitly; defaults reproduce the production tuning.
"""

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from lesson_judge import constants
from lesson_judge.models.judge import JudgeConfidence


class HeuristicWeights(BaseModel):
    """Relative weights of the non-markdown heuristic checks.

    They are rescaled at scoring time so that, together with
    ``HeuristicFilterConfig.markdown_weight``, the composite weights sum to 1.
    """

    word_count: float = Field(default=0.12, ge=0, le=1)
    flesch_kincaid: float = Field(default=0.18, ge=0, le=1)
    section_headers: float = Field(default=0.12, ge=0, le=1)
    keyword_coverage: float = Field(default=0.13, ge=0, le=1)
    content_density: float = Field(default=0.08, ge=0, le=1)
    learning_objective_coverage: float = Field(default=0.10, ge=0, le=1)
    prohibited_terms: float = Field(default=0.05, ge=0, le=1)

    model_config = {"frozen": True}


class HeuristicFilterConfig(BaseModel):
    """Thresholds for the heuristic pre-filter."""

    min_word_count: int = Field(default=500, ge=0)
    max_word_count: int = Field(default=10000, ge=1)
    reference_duration_minutes: int = Field(
        default=15, ge=1, description="Lesson length the default word-count range is written for"
    )
    flesch_kincaid_min: float = Field(default=6.0, ge=0)
    flesch_kincaid_max: float = Field(default=14.0, ge=0)
    flesch_kincaid_target: float = Field(default=10.0, ge=0)
    required_sections: List[str] = Field(default_factory=lambda: ["introduction", "conclusion"])
    keyword_coverage_threshold: float = Field(default=0.3, ge=0, le=1)
    content_density_threshold: float = Field(default=50.0, ge=0)
    objective_coverage_threshold: float = Field(default=0.7, ge=0, le=1)
    min_examples: int = Field(default=1, ge=0)
    min_exercises: int = Field(default=1, ge=0)
    markdown_weight: float = Field(default=0.25, ge=0, le=1)
    weights: HeuristicWeights = Field(default_factory=HeuristicWeights)
    language: str = Field(default="en", description="Readability is only scored for English")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_ranges(self):
        """Reject inverted ranges."""
        if self.min_word_count > self.max_word_count:
            raise ValueError("min_word_count must not exceed max_word_count")
        if not (
            self.flesch_kincaid_min <= self.flesch_kincaid_target <= self.flesch_kincaid_max
        ):
            raise ValueError("flesch_kincaid_target must lie within [min, max]")
        return self

    @property
    def readability_enabled(self) -> bool:
        return self.language.lower() in ("en", "english")

    def word_count_range(self, duration_minutes: Optional[int] = None) -> Tuple[int, int]:
        """Word-count range for a lesson of the given length.

        Bounds set explicitly on the config are used as-is. Defaulted bounds
        scale linearly with the lesson duration relative to
        ``reference_duration_minutes``.

        Args:
            duration_minutes: Estimated lesson duration (default: reference duration)

        Returns:
            Tuple of (minimum, maximum) word count
        """
        duration = duration_minutes or self.reference_duration_minutes
        scale = duration / self.reference_duration_minutes

        minimum = self.min_word_count
        if "min_word_count" not in self.model_fields_set:
            minimum = round(minimum * scale)
        maximum = self.max_word_count
        if "max_word_count" not in self.model_fields_set:
            maximum = round(maximum * scale)
        return minimum, max(minimum, maximum)

    def effective_weights(self) -> Dict[str, float]:
        """Composite weights per check, summing to 1."""
        base = self.weights.model_dump()
        base_total = sum(base.values())
        remaining = 1.0 - self.markdown_weight
        if base_total <= 0:
            weights = {name: 0.0 for name in base}
            weights["markdown_structure"] = 1.0
            return weights
        weights = {name: value / base_total * remaining for name, value in base.items()}
        weights["markdown_structure"] = self.markdown_weight
        return weights


class EntropyConfig(BaseModel):
    """Thresholds for token-entropy hallucination detection."""

    entropy_threshold: float = Field(default=2.0, gt=0)
    window_size: int = Field(default=5, ge=1)
    min_span_length: int = Field(default=3, ge=1)
    confidence_level: Literal["strict", "moderate", "lenient"] = Field(default="moderate")
    critical_span_entropy: float = Field(default=3.5, gt=0)
    high_ratio_threshold: float = Field(default=0.10, ge=0, le=1)
    max_entropy_for_confidence: float = Field(default=4.0, gt=0)

    model_config = {"frozen": True}

    @property
    def adjusted_threshold(self) -> float:
        """Span threshold after applying the confidence-level multiplier."""
        multipliers = {"strict": 0.8, "moderate": 1.0, "lenient": 1.2}
        return self.entropy_threshold * multipliers[self.confidence_level]


class DecisionThresholds(BaseModel):
    """Score bands and iteration caps for the decision engine."""

    accept: float = Field(default=0.90, ge=0, le=1)
    targeted_fix: float = Field(default=0.75, ge=0, le=1)
    regenerate: float = Field(default=0.60, ge=0, le=1)
    refinement_target: float = Field(default=0.80, ge=0, le=1)
    max_iterations: int = Field(default=2, ge=1)
    localized_issue_percentage: float = Field(default=30.0, ge=0, le=100)
    min_improvement: float = Field(
        default=0.03, ge=0, description="Score gain below this counts as diminishing returns"
    )
    quality_threshold: float = Field(
        default=0.75, ge=0, le=1, description="Job-level gate for partial-success handling"
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_band_order(self):
        """Bands must be ordered regenerate <= targeted_fix <= accept."""
        if not (self.regenerate <= self.targeted_fix <= self.accept):
            raise ValueError("thresholds must satisfy regenerate <= targeted_fix <= accept")
        return self


class CascadeConfig(BaseModel):
    """Cost-control settings for the evaluation cascade."""

    single_judge_confidence_threshold: float = Field(default=0.8, ge=0.5, le=1)
    passing_threshold: float = Field(default=0.7, ge=0, le=1)
    skip_heuristics: bool = Field(default=False)
    skip_single_judge: bool = Field(default=False)
    heuristics: HeuristicFilterConfig = Field(default_factory=HeuristicFilterConfig)

    model_config = {"frozen": True}


DEFAULT_MODEL_WEIGHTS: Dict[str, float] = {
    "gpt-4.1": 0.75,
    "gpt-4.1-mini": 0.72,
    "gpt-4o": 0.74,
    "gpt-4o-mini": 0.70,
}


class JudgeConfig(BaseModel):
    """Model-judge and voting settings."""

    primary_model: str = Field(default="gpt-4o-mini")
    secondary_model: str = Field(default="gpt-4.1-mini")
    tiebreaker_model: str = Field(default="gpt-4.1")
    temperature: float = Field(default=0.1, ge=0, le=2)
    max_tokens: int = Field(default=4096, ge=256)
    agreement_threshold: float = Field(default=0.1, ge=0, le=1)
    min_confidence: JudgeConfidence = Field(default=JudgeConfidence.MEDIUM)
    model_weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_MODEL_WEIGHTS))
    default_model_weight: float = Field(default=0.70, gt=0, le=1)

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls) -> "JudgeConfig":
        """Build judge settings from environment variables."""
        models = list(constants.JUDGE_MODELS)
        while len(models) < 3:
            models.append(models[-1] if models else constants.LLM_MODEL)
        return cls(
            primary_model=models[0],
            secondary_model=models[1],
            tiebreaker_model=models[2],
            temperature=constants.JUDGE_TEMPERATURE,
            max_tokens=constants.JUDGE_MAX_TOKENS,
        )

    def weight_for(self, model: str) -> float:
        return self.model_weights.get(model, self.default_model_weight)


class PipelineConfig(BaseModel):
    """Bundle of every component config used by a full evaluation."""

    cascade: CascadeConfig = Field(default_factory=CascadeConfig)
    entropy: EntropyConfig = Field(default_factory=EntropyConfig)
    decision: DecisionThresholds = Field(default_factory=DecisionThresholds)

    model_config = {"frozen": True}
