"""Unit tests for the judge rubric."""

import pytest

from lesson_judge.judge.rubric import (
    CRITERIA_WEIGHTS,
    calculate_weighted_score,
    determine_recommendation,
)
from lesson_judge.models.judge import (
    CriteriaScores,
    IssueSeverity,
    JudgeConfidence,
    JudgeRecommendation,
)


class TestWeightedScore:
    def test_weights_sum_to_one(self):
        assert sum(CRITERIA_WEIGHTS.values()) == pytest.approx(1.0)

    def test_uniform_scores(self):
        scores = CriteriaScores(
            learning_objective_alignment=0.8,
            pedagogical_structure=0.8,
            factual_accuracy=0.8,
            clarity_readability=0.8,
            engagement_examples=0.8,
            completeness=0.8,
        )
        assert calculate_weighted_score(scores) == pytest.approx(0.8)

    def test_objective_alignment_weighs_most(self):
        scores = CriteriaScores(
            learning_objective_alignment=1.0,
            pedagogical_structure=0.0,
            factual_accuracy=0.0,
            clarity_readability=0.0,
            engagement_examples=0.0,
            completeness=0.0,
        )
        assert calculate_weighted_score(scores) == pytest.approx(0.25)


class TestDetermineRecommendation:
    def test_low_confidence_escalates(self):
        assert (
            determine_recommendation(0.95, JudgeConfidence.LOW, [])
            == JudgeRecommendation.ESCALATE_TO_HUMAN
        )

    @pytest.mark.parametrize(
        "score,expected",
        [
            (0.90, JudgeRecommendation.ACCEPT),
            (0.80, JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION),
            (0.70, JudgeRecommendation.ITERATIVE_REFINEMENT),
            (0.59, JudgeRecommendation.REGENERATE),
        ],
    )
    def test_score_bands(self, score, expected):
        assert determine_recommendation(score, JudgeConfidence.HIGH, []) == expected

    def test_critical_issue_downgrades_minor_revision(self, make_issue):
        issues = [make_issue(IssueSeverity.CRITICAL)]
        assert (
            determine_recommendation(0.8, JudgeConfidence.MEDIUM, issues)
            == JudgeRecommendation.ITERATIVE_REFINEMENT
        )

    def test_many_issues_downgrade_minor_revision(self, make_issue):
        issues = [make_issue() for _ in range(4)]
        assert (
            determine_recommendation(0.8, JudgeConfidence.HIGH, issues)
            == JudgeRecommendation.ITERATIVE_REFINEMENT
        )
