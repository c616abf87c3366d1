"""Heuristic pre-filter and markdown lint result models.

These results are recomputed per evaluation and never persisted on their
own; they travel inside the cascade result that used them.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from lesson_judge.models.judge import IssueSeverity


class HeuristicFilterName(str, Enum):
    """Tag identifying which heuristic check produced a failure."""

    WORD_COUNT = "wordCount"
    FLESCH_KINCAID = "fleschKincaid"
    SECTION_HEADERS = "sectionHeaders"
    KEYWORD_COVERAGE = "keywordCoverage"
    CONTENT_DENSITY = "contentDensity"
    MARKDOWN_STRUCTURE = "markdownStructure"
    LEARNING_OBJECTIVE_COVERAGE = "learningObjectiveCoverage"
    PROHIBITED_TERMS = "prohibitedTerms"
    EXAMPLES = "Examples"
    EXERCISES = "Exercises"


class FilterFailure(BaseModel):
    """One failing heuristic check."""

    filter: HeuristicFilterName
    severity: IssueSeverity
    expected: str = Field(..., description="Human-readable expectation")
    actual: str = Field(..., description="Human-readable observed value")
    blocking: bool = Field(default=True, description="Whether this failure fails the gate")

    model_config = {"frozen": True}


class MarkdownIssue(BaseModel):
    """Single markdown lint finding."""

    rule_id: str = Field(..., description="Canonical rule id (e.g. MD001)")
    rule_name: str = Field(..., description="Readable rule alias (e.g. heading-increment)")
    line_number: int = Field(..., ge=1)
    severity: IssueSeverity
    description: str
    detail: Optional[str] = Field(default=None)
    context: Optional[str] = Field(default=None, description="Offending line excerpt")
    auto_fixable: bool = Field(default=False)

    model_config = {"frozen": True}


class MarkdownStructureMetrics(BaseModel):
    """Summary of markdown structure validation."""

    score: float = Field(..., ge=0, le=1)
    total_issues: int = Field(..., ge=0)
    critical_issues: int = Field(..., ge=0)
    major_issues: int = Field(..., ge=0)
    minor_issues: int = Field(..., ge=0)
    auto_fixed_rules: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class MarkdownStructureResult(BaseModel):
    """Detailed markdown validation result."""

    passed: bool
    score: float = Field(..., ge=0, le=1)
    issues: List[MarkdownIssue] = Field(default_factory=list)
    auto_fixed_rules: List[str] = Field(default_factory=list)
    fixed_content: str = Field(default="", description="Content after cosmetic auto-fixes")

    def issues_with_severity(self, severity: IssueSeverity) -> List[MarkdownIssue]:
        return [issue for issue in self.issues if issue.severity == severity]

    @property
    def critical_issues(self) -> List[MarkdownIssue]:
        return self.issues_with_severity(IssueSeverity.CRITICAL)

    @property
    def major_issues(self) -> List[MarkdownIssue]:
        return self.issues_with_severity(IssueSeverity.MAJOR)

    @property
    def minor_issues(self) -> List[MarkdownIssue]:
        return self.issues_with_severity(IssueSeverity.MINOR)

    def to_metrics(self) -> MarkdownStructureMetrics:
        """Collapse the detailed result into heuristic metrics."""
        return MarkdownStructureMetrics(
            score=self.score,
            total_issues=len(self.issues),
            critical_issues=len(self.critical_issues),
            major_issues=len(self.major_issues),
            minor_issues=len(self.minor_issues),
            auto_fixed_rules=list(self.auto_fixed_rules),
        )


class HeuristicMetrics(BaseModel):
    """Raw measurements gathered by the heuristic filter."""

    word_count: int = Field(..., ge=0)
    flesch_kincaid_grade: float
    flesch_reading_ease: float
    readability_skipped: bool = Field(default=False)
    found_sections: List[str] = Field(default_factory=list)
    missing_sections: List[str] = Field(default_factory=list)
    keyword_coverage: float = Field(..., ge=0, le=1)
    content_density: float = Field(..., ge=0)
    section_count: int = Field(..., ge=0)
    sentence_count: int = Field(..., ge=0)
    avg_sentence_length: float = Field(..., ge=0)
    markdown_structure: MarkdownStructureMetrics
    learning_objective_coverage: float = Field(..., ge=0, le=1)
    covered_objectives: int = Field(..., ge=0)
    total_objectives: int = Field(..., ge=0)
    prohibited_terms_violations: List[str] = Field(default_factory=list)
    examples_count: Optional[int] = Field(default=None, ge=0)
    exercises_count: Optional[int] = Field(default=None, ge=0)


class HeuristicFilterResult(BaseModel):
    """Outcome of running every heuristic check on one draft."""

    passed: bool
    score: float = Field(..., ge=0, le=1)
    metrics: HeuristicMetrics
    failures: List[FilterFailure] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    duration_ms: float = Field(default=0.0, ge=0)

    @property
    def blocking_failures(self) -> List[FilterFailure]:
        return [failure for failure in self.failures if failure.blocking]

    def has_failure(self, name: HeuristicFilterName) -> bool:
        return any(failure.filter == name for failure in self.failures)
