"""Judge rubric: criterion weights and recommendation rules.

The model judge reports per-criterion scores; the overall score and the
recommendation are always derived here so that every verdict is scored the
same way regardless of which model produced it.
"""

from typing import Dict, List

from lesson_judge.models.judge import (
    CriteriaScores,
    IssueSeverity,
    JudgeConfidence,
    JudgeCriterion,
    JudgeIssue,
    JudgeRecommendation,
)

CRITERIA_WEIGHTS: Dict[JudgeCriterion, float] = {
    JudgeCriterion.LEARNING_OBJECTIVE_ALIGNMENT: 0.25,
    JudgeCriterion.PEDAGOGICAL_STRUCTURE: 0.20,
    JudgeCriterion.FACTUAL_ACCURACY: 0.15,
    JudgeCriterion.CLARITY_READABILITY: 0.15,
    JudgeCriterion.ENGAGEMENT_EXAMPLES: 0.15,
    JudgeCriterion.COMPLETENESS: 0.10,
}

CRITERIA_DESCRIPTIONS: Dict[JudgeCriterion, str] = {
    JudgeCriterion.LEARNING_OBJECTIVE_ALIGNMENT: (
        "Does the content address every stated learning objective at the right cognitive level?"
    ),
    JudgeCriterion.PEDAGOGICAL_STRUCTURE: (
        "Is there a logical progression from introduction through concepts to practice and summary?"
    ),
    JudgeCriterion.FACTUAL_ACCURACY: "Are facts, definitions, and code correct and current?",
    JudgeCriterion.CLARITY_READABILITY: (
        "Is the prose clear for the target audience, with technical terms defined?"
    ),
    JudgeCriterion.ENGAGEMENT_EXAMPLES: (
        "Are examples, analogies, and exercises relevant and motivating?"
    ),
    JudgeCriterion.COMPLETENESS: "Are all required sections, key points, and exercises present?",
}

# Recommendation score bands
ACCEPT_SCORE = 0.90
MINOR_REVISION_SCORE = 0.75
REFINEMENT_SCORE = 0.60
MAX_MINOR_REVISION_ISSUES = 3


def calculate_weighted_score(scores: CriteriaScores) -> float:
    """Weighted mean of criterion scores, in [0, 1]."""
    values = scores.as_dict()
    total = sum(values[criterion] * weight for criterion, weight in CRITERIA_WEIGHTS.items())
    return max(0.0, min(1.0, total))


def determine_recommendation(
    score: float, confidence: JudgeConfidence, issues: List[JudgeIssue]
) -> JudgeRecommendation:
    """Map a score, confidence, and issue list to a recommendation.

    Low confidence always escalates. In the minor-revision band, any
    critical issue or more than three issues downgrades to refinement.
    """
    if confidence == JudgeConfidence.LOW:
        return JudgeRecommendation.ESCALATE_TO_HUMAN
    if score >= ACCEPT_SCORE:
        return JudgeRecommendation.ACCEPT
    if score >= MINOR_REVISION_SCORE:
        has_critical = any(issue.severity == IssueSeverity.CRITICAL for issue in issues)
        if not has_critical and len(issues) <= MAX_MINOR_REVISION_ISSUES:
            return JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION
        return JudgeRecommendation.ITERATIVE_REFINEMENT
    if score >= REFINEMENT_SCORE:
        return JudgeRecommendation.ITERATIVE_REFINEMENT
    return JudgeRecommendation.REGENERATE
