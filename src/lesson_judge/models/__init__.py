"""Pydantic data model for lesson judging and decisions."""

from lesson_judge.models.decision import (
    DecisionAction,
    DecisionContext,
    DecisionFactors,
    DecisionResult,
)
from lesson_judge.models.entropy import (
    EntropyAnalysisResult,
    EntropySpan,
    SentenceMapping,
    TokenAlternative,
    TokenLogprob,
)
from lesson_judge.models.evaluation import (
    CascadeHeuristicResults,
    CascadeResult,
    CascadeStage,
    LessonEvaluationResult,
)
from lesson_judge.models.heuristics import (
    FilterFailure,
    HeuristicFilterName,
    HeuristicFilterResult,
    HeuristicMetrics,
    MarkdownIssue,
    MarkdownStructureMetrics,
    MarkdownStructureResult,
)
from lesson_judge.models.judge import (
    CriteriaScores,
    IssueSeverity,
    JudgeAggregatedResult,
    JudgeConfidence,
    JudgeCriterion,
    JudgeIssue,
    JudgeRecommendation,
    JudgeVerdict,
    VotingMethod,
)
from lesson_judge.models.lesson import (
    BloomLevel,
    ContentExample,
    ContentExercise,
    ContentSection,
    LearningObjective,
    LessonContentBody,
    LessonSpecification,
    SectionConstraints,
    SectionSpec,
)

__all__ = [
    "BloomLevel",
    "CascadeHeuristicResults",
    "CascadeResult",
    "CascadeStage",
    "ContentExample",
    "ContentExercise",
    "ContentSection",
    "CriteriaScores",
    "DecisionAction",
    "DecisionContext",
    "DecisionFactors",
    "DecisionResult",
    "EntropyAnalysisResult",
    "EntropySpan",
    "FilterFailure",
    "HeuristicFilterName",
    "HeuristicFilterResult",
    "HeuristicMetrics",
    "IssueSeverity",
    "JudgeAggregatedResult",
    "JudgeConfidence",
    "JudgeCriterion",
    "JudgeIssue",
    "JudgeRecommendation",
    "JudgeVerdict",
    "LearningObjective",
    "LessonContentBody",
    "LessonEvaluationResult",
    "LessonSpecification",
    "MarkdownIssue",
    "MarkdownStructureMetrics",
    "MarkdownStructureResult",
    "SectionConstraints",
    "SectionSpec",
    "SentenceMapping",
    "TokenAlternative",
    "TokenLogprob",
    "VotingMethod",
]
