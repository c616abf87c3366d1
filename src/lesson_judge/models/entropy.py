"""Token log-probability and entropy analysis models."""

from typing import List, Optional

from pydantic import BaseModel, Field


class TokenAlternative(BaseModel):
    """Competing token considered by the generation model."""

    token: str
    logprob: float = Field(..., le=0)

    model_config = {"frozen": True}


class TokenLogprob(BaseModel):
    """Log-probability of one generated token."""

    token: str
    logprob: float = Field(..., le=0, description="Natural-log probability (<= 0)")
    top_alternatives: Optional[List[TokenAlternative]] = Field(
        default=None, description="Top alternative tokens, when the backend exposes them"
    )

    model_config = {"frozen": True}


class SentenceMapping(BaseModel):
    """Token range covered by one sentence."""

    sentence_index: int = Field(..., ge=0)
    sentence: str
    start_token: int = Field(..., ge=0)
    end_token: int = Field(..., ge=0)

    model_config = {"frozen": True}


class EntropySpan(BaseModel):
    """Run of consecutive high-entropy tokens."""

    start_token: int = Field(..., ge=0)
    end_token: int = Field(..., ge=0, description="Exclusive end index")
    average_entropy: float = Field(..., ge=0)
    text: str
    sentence_index: int = Field(..., ge=0)

    model_config = {"frozen": True}

    @property
    def length(self) -> int:
        return self.end_token - self.start_token


class EntropyAnalysisResult(BaseModel):
    """Uncertainty analysis for one generated draft."""

    overall_entropy: float = Field(..., ge=0)
    flagged_spans: List[EntropySpan] = Field(default_factory=list)
    high_entropy_ratio: float = Field(..., ge=0, le=1)
    requires_verification: bool
    confidence_score: float = Field(..., ge=0, le=1)

    model_config = {"frozen": True}
