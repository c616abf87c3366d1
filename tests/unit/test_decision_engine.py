"""Unit tests for the decision engine."""

import pytest
from pydantic import ValidationError

from lesson_judge.config import DecisionThresholds
from lesson_judge.decision.decision_engine import (
    action_to_recommendation,
    build_regeneration_feedback,
    calculate_content_affected_percentage,
    make_decision,
    make_decision_from_verdict,
)
from lesson_judge.models.decision import DecisionAction, DecisionContext, DecisionResult
from lesson_judge.models.judge import (
    IssueSeverity,
    JudgeConfidence,
    JudgeCriterion,
    JudgeRecommendation,
)
from lesson_judge.models.lesson import ContentSection, LessonContentBody


def context(**overrides) -> DecisionContext:
    values = {
        "score": 0.8,
        "confidence": JudgeConfidence.HIGH,
        "issues": [],
        "iteration_count": 0,
        "previous_scores": [],
        "content_affected_percentage": 0.0,
    }
    values.update(overrides)
    return DecisionContext(**values)


class TestMakeDecision:
    """Decision table, first match wins."""

    def test_high_score_accepts(self):
        result = make_decision(context(score=0.92))

        assert result.action == DecisionAction.ACCEPT
        assert result.max_iterations == 0
        assert "meets acceptance threshold" in result.reason

    def test_localized_issues_get_targeted_fix(self, make_issue):
        result = make_decision(
            context(score=0.82, issues=[make_issue()], content_affected_percentage=15)
        )

        assert result.action == DecisionAction.TARGETED_FIX
        assert result.max_iterations == 1
        assert result.target_score == 0.90

    def test_low_score_regenerates_with_feedback(self, make_issue):
        result = make_decision(
            context(
                score=0.45,
                issues=[make_issue(IssueSeverity.CRITICAL)],
                content_affected_percentage=80,
            )
        )

        assert result.action == DecisionAction.REGENERATE
        assert result.max_iterations == 0
        assert "Key Issues" in result.feedback_for_regeneration

    def test_low_confidence_escalates_before_score(self):
        result = make_decision(context(score=0.95, confidence=JudgeConfidence.LOW))

        assert result.action == DecisionAction.ESCALATE_TO_HUMAN
        assert result.max_iterations == 0
        assert "confidence is low" in result.reason

    def test_accept_boundary_is_inclusive(self):
        assert make_decision(context(score=0.90)).action == DecisionAction.ACCEPT
        assert make_decision(context(score=0.8999)).action == DecisionAction.TARGETED_FIX

    def test_targeted_fix_boundary_is_inclusive(self):
        assert make_decision(context(score=0.75)).action == DecisionAction.TARGETED_FIX
        assert make_decision(context(score=0.7499)).action == DecisionAction.ITERATIVE_REFINEMENT

    def test_widespread_issues_refine_toward_accept(self):
        result = make_decision(context(score=0.8, content_affected_percentage=30))

        assert result.action == DecisionAction.ITERATIVE_REFINEMENT
        assert result.target_score == 0.90
        assert result.max_iterations == 2
        assert "widespread issues" in result.reason

    def test_medium_band_refines_toward_target(self):
        result = make_decision(context(score=0.65, iteration_count=1))

        assert result.action == DecisionAction.ITERATIVE_REFINEMENT
        assert result.target_score == 0.80
        assert result.max_iterations == 1
        assert "reach target (80%)" in result.reason

    def test_regenerate_boundary(self):
        assert make_decision(context(score=0.60)).action == DecisionAction.ITERATIVE_REFINEMENT
        assert make_decision(context(score=0.5999)).action == DecisionAction.REGENERATE

    def test_max_iterations_with_low_score_regenerates(self):
        result = make_decision(context(score=0.7, iteration_count=2, previous_scores=[0.6, 0.65]))

        assert result.action == DecisionAction.REGENERATE
        assert "still below target (80%) after 2 iterations" in result.reason
        assert result.feedback_for_regeneration is not None

    def test_max_iterations_with_acceptable_score(self):
        result = make_decision(context(score=0.85, iteration_count=2, previous_scores=[0.7]))

        assert result.action == DecisionAction.ACCEPT
        assert "acceptable" in result.reason
        assert result.max_iterations == 0

    def test_diminishing_returns_accepts(self):
        result = make_decision(context(score=0.77, iteration_count=2, previous_scores=[0.75]))

        assert result.action == DecisionAction.ACCEPT
        assert "diminishing returns" in result.reason

    def test_diminishing_returns_only_with_history(self):
        result = make_decision(context(score=0.7, iteration_count=2))
        assert result.action == DecisionAction.REGENERATE

    def test_accept_never_has_iterations(self):
        for score in (0.9, 0.95, 1.0):
            assert make_decision(context(score=score)).max_iterations == 0

    def test_custom_thresholds(self):
        thresholds = DecisionThresholds(accept=0.8, targeted_fix=0.7, regenerate=0.5)
        assert make_decision(context(score=0.82), thresholds).action == DecisionAction.ACCEPT

    def test_deterministic(self, make_issue):
        ctx = context(score=0.7, issues=[make_issue(), make_issue(IssueSeverity.MAJOR)])
        assert make_decision(ctx) == make_decision(ctx)

    def test_factors_are_populated(self):
        result = make_decision(context(score=0.92))
        assert result.factors.score_threshold.startswith("Score: 92.0%")
        assert result.factors.confidence_level == "HIGH"


class TestDecisionModels:
    def test_accept_with_iterations_is_rejected(self):
        with pytest.raises(ValidationError):
            DecisionResult(action=DecisionAction.ACCEPT, reason="ok", max_iterations=1)

    @pytest.mark.parametrize(
        "field",
        ["issues", "iteration_count", "previous_scores", "content_affected_percentage"],
    )
    def test_context_fields_are_required(self, field):
        values = {
            "score": 0.82,
            "confidence": JudgeConfidence.HIGH,
            "issues": [],
            "iteration_count": 0,
            "previous_scores": [],
            "content_affected_percentage": 10.0,
        }
        del values[field]

        with pytest.raises(ValidationError):
            DecisionContext(**values)

    def test_previous_scores_must_be_scores(self):
        with pytest.raises(ValidationError):
            context(previous_scores=[1.5])

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValidationError):
            DecisionThresholds(accept=0.7, targeted_fix=0.8)


class TestContentAffectedPercentage:
    def test_no_issues(self):
        assert calculate_content_affected_percentage([], 5) == 0.0

    def test_no_sections(self, make_issue):
        assert calculate_content_affected_percentage([make_issue()], 0) == 0.0

    def test_negative_sections_rejected(self, make_issue):
        with pytest.raises(ValueError):
            calculate_content_affected_percentage([make_issue()], -1)

    def test_section_references(self, make_issue):
        issues = [make_issue(location="Section 1"), make_issue(location="section 2, paragraph 3")]
        assert calculate_content_affected_percentage(issues, 4) == pytest.approx(35.0)

    def test_other_locations(self, make_issue):
        issues = [make_issue(location="introduction"), make_issue(location="Exercise 2")]
        assert calculate_content_affected_percentage(issues, 4) == pytest.approx(20.0)

    def test_result_stays_below_100(self, make_issue):
        issues = [make_issue(location=f"section {i}") for i in range(1, 4)] + [
            make_issue(location="intro"),
            make_issue(location="conclusion"),
            make_issue(location="examples"),
        ]
        assert calculate_content_affected_percentage(issues, 3) == 99.0

    def test_unlocated_issue_counts_as_minimal(self, make_issue):
        assert calculate_content_affected_percentage([make_issue(location="overall")], 4) == 1.0

    def test_monotonic_in_issues(self, make_issue):
        fewer = [make_issue(location="section 1")]
        more = fewer + [make_issue(location="section 2")]
        assert calculate_content_affected_percentage(
            more, 5
        ) >= calculate_content_affected_percentage(fewer, 5)


class TestRegenerationFeedback:
    def test_critical_criteria_first(self, make_issue):
        issues = [
            make_issue(IssueSeverity.MINOR, criterion=JudgeCriterion.CLARITY_READABILITY),
            make_issue(IssueSeverity.MINOR, criterion=JudgeCriterion.CLARITY_READABILITY),
            make_issue(
                IssueSeverity.CRITICAL,
                criterion=JudgeCriterion.FACTUAL_ACCURACY,
                description="Wrong definition of recall",
            ),
        ]

        feedback = build_regeneration_feedback(issues, 0.45)

        assert feedback.startswith("## Previous Generation Quality: 45.0%")
        assert "## Key Issues to Address in Regeneration:" in feedback
        assert feedback.index("### FACTUAL ACCURACY") < feedback.index("### CLARITY READABILITY")
        assert "- [CRITICAL] Wrong definition of recall" in feedback
        assert "  Fix: Rewrite the sentence in plain language" in feedback
        assert "## Regeneration Guidelines:" in feedback


class TestActionToRecommendation:
    @pytest.mark.parametrize(
        "action,expected",
        [
            (DecisionAction.ACCEPT, JudgeRecommendation.ACCEPT),
            (DecisionAction.TARGETED_FIX, JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION),
            (DecisionAction.ITERATIVE_REFINEMENT, JudgeRecommendation.ITERATIVE_REFINEMENT),
            (DecisionAction.REGENERATE, JudgeRecommendation.REGENERATE),
            (DecisionAction.ESCALATE_TO_HUMAN, JudgeRecommendation.ESCALATE_TO_HUMAN),
        ],
    )
    def test_mapping(self, action, expected):
        assert action_to_recommendation(action) == expected


class TestMakeDecisionFromVerdict:
    def test_uses_section_count(self, make_verdict, make_issue):
        verdict = make_verdict(
            score=0.8, issues=[make_issue(location="section 1"), make_issue(location="section 2")]
        )
        content = LessonContentBody(
            sections=[ContentSection(title=f"S{i}", content="text") for i in range(4)]
        )

        result = make_decision_from_verdict(verdict, content)

        # 2 of 4 sections -> 35% affected, above the localized limit
        assert result.action == DecisionAction.ITERATIVE_REFINEMENT
