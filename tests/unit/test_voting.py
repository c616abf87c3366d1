"""Unit tests for multi-judge voting."""

from unittest.mock import MagicMock, patch

import pytest

from lesson_judge.config import JudgeConfig
from lesson_judge.exceptions import JudgeEvaluationError, VotingError
from lesson_judge.judge.voting import (
    JudgeVoter,
    aggregate_verdicts,
    combine_issues,
    combine_strengths,
)
from lesson_judge.models.judge import (
    IssueSeverity,
    JudgeConfidence,
    JudgeCriterion,
    JudgeRecommendation,
    VotingMethod,
)


def fake_judge(model, verdict=None, error=None):
    judge = MagicMock()
    judge.model = model
    if error is not None:
        judge.evaluate.side_effect = error
    else:
        judge.evaluate.return_value = verdict
    return judge


class TestAggregateVerdicts:
    def test_weighted_mean(self, make_verdict):
        verdicts = [
            make_verdict(0.8, judge_model="gpt-4.1"),
            make_verdict(0.6, judge_model="gpt-4o-mini"),
        ]

        result = aggregate_verdicts(verdicts)

        expected = (0.8 * 0.75 + 0.6 * 0.70) / (0.75 + 0.70)
        assert result.aggregated_score == pytest.approx(expected)

    def test_unknown_model_uses_default_weight(self, make_verdict):
        config = JudgeConfig(model_weights={}, default_model_weight=0.5)
        verdicts = [make_verdict(0.9, judge_model="a"), make_verdict(0.7, judge_model="b")]

        assert aggregate_verdicts(verdicts, config).aggregated_score == pytest.approx(0.8)

    def test_unanimous(self, make_verdict):
        verdicts = [make_verdict(0.92), make_verdict(0.95)]

        result = aggregate_verdicts(verdicts)

        assert result.voting_method == VotingMethod.UNANIMOUS
        assert result.final_recommendation == JudgeRecommendation.ACCEPT
        assert result.consensus_reached is True

    def test_three_way_split_uses_tiebreaker_method(self, make_verdict):
        verdicts = [make_verdict(0.92), make_verdict(0.8), make_verdict(0.8)]

        result = aggregate_verdicts(verdicts)

        assert result.voting_method == VotingMethod.TIEBREAKER
        assert result.final_recommendation == JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION
        assert result.consensus_reached is True

    def test_two_way_disagreement_has_no_consensus(self, make_verdict):
        result = aggregate_verdicts([make_verdict(0.92), make_verdict(0.5)])

        assert result.voting_method == VotingMethod.MAJORITY
        assert result.consensus_reached is False
        # 0.71 falls in the refinement band
        assert result.final_recommendation == JudgeRecommendation.ITERATIVE_REFINEMENT

    def test_two_way_split_ignores_verdict_order(self, make_verdict):
        high, low = make_verdict(0.95), make_verdict(0.40)

        first = aggregate_verdicts([high, low])
        second = aggregate_verdicts([low, high])

        assert first.final_recommendation == second.final_recommendation
        assert first.final_recommendation == JudgeRecommendation.ITERATIVE_REFINEMENT

    def test_three_way_split_uses_score_band(self, make_verdict):
        verdicts = [make_verdict(0.95), make_verdict(0.8), make_verdict(0.3)]

        result = aggregate_verdicts(verdicts)

        assert result.consensus_reached is False
        assert result.voting_method == VotingMethod.TIEBREAKER
        assert result.final_recommendation == JudgeRecommendation.ITERATIVE_REFINEMENT

    def test_split_with_low_confidence_escalates(self, make_verdict):
        verdicts = [make_verdict(0.95), make_verdict(0.5, JudgeConfidence.LOW)]

        result = aggregate_verdicts(verdicts)

        assert result.final_recommendation == JudgeRecommendation.ESCALATE_TO_HUMAN

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            aggregate_verdicts([])


class TestCombine:
    def test_issues_deduplicated_and_sorted(self, make_verdict, make_issue):
        minor = make_issue(IssueSeverity.MINOR, description="Long sentence in intro")
        critical = make_issue(
            IssueSeverity.CRITICAL,
            criterion=JudgeCriterion.FACTUAL_ACCURACY,
            description="Incorrect formula",
        )
        verdicts = [
            make_verdict(issues=[minor]),
            make_verdict(issues=[minor, critical]),
        ]

        combined = combine_issues(verdicts)

        assert combined == [critical, minor]

    def test_strengths_case_insensitive(self, make_verdict):
        verdicts = [
            make_verdict(strengths=["Clear examples"]),
            make_verdict(strengths=["clear examples ", "Good pacing"]),
        ]
        assert combine_strengths(verdicts) == ["Clear examples", "Good pacing"]


class TestJudgeVoter:
    def test_agreement_skips_tiebreaker(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("gpt-4o-mini", make_verdict(0.85, judge_model="gpt-4o-mini"))
        secondary = fake_judge("gpt-4.1-mini", make_verdict(0.80, judge_model="gpt-4.1-mini"))
        tiebreaker = fake_judge("gpt-4.1", make_verdict(0.5, judge_model="gpt-4.1"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_not_called()
        assert len(result.verdicts) == 2
        assert result.voting_method == VotingMethod.UNANIMOUS
        assert result.consensus_reached is True
        assert result.tokens_used == 200

    def test_disagreement_invokes_tiebreaker(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("gpt-4o-mini", make_verdict(0.92, judge_model="gpt-4o-mini"))
        secondary = fake_judge("gpt-4.1-mini", make_verdict(0.65, judge_model="gpt-4.1-mini"))
        tiebreaker = fake_judge("gpt-4.1", make_verdict(0.91, judge_model="gpt-4.1"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_called_once()
        assert len(result.verdicts) == 3
        assert result.voting_method == VotingMethod.TIEBREAKER
        assert result.final_recommendation == JudgeRecommendation.ACCEPT

    def test_low_confidence_invokes_tiebreaker(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("a", make_verdict(0.85, JudgeConfidence.LOW, judge_model="a"))
        secondary = fake_judge("b", make_verdict(0.85, judge_model="b"))
        tiebreaker = fake_judge("c", make_verdict(0.85, judge_model="c"))

        JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_called_once()

    def test_single_success_is_used_alone(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("a", error=JudgeEvaluationError("timeout", "a"))
        secondary = fake_judge("b", make_verdict(0.7, judge_model="b"))
        tiebreaker = fake_judge("c", make_verdict(0.9, judge_model="c"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_not_called()
        assert len(result.verdicts) == 1
        assert result.aggregated_score == pytest.approx(0.7)

    def test_all_failures_raise(self, lesson_content, lesson_spec):
        error = JudgeEvaluationError("boom")
        voter = JudgeVoter(
            fake_judge("a", error=error), fake_judge("b", error=error), fake_judge("c")
        )

        with pytest.raises(VotingError):
            voter.vote(lesson_content, lesson_spec)

    def test_failed_tiebreaker_falls_back_to_two(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("a", make_verdict(0.9, judge_model="a"))
        secondary = fake_judge("b", make_verdict(0.6, judge_model="b"))
        tiebreaker = fake_judge("c", error=JudgeEvaluationError("down", "c"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        assert len(result.verdicts) == 2
        assert result.voting_method == VotingMethod.MAJORITY
        assert result.consensus_reached is False

    def test_failed_tiebreaker_after_split_uses_score_band(
        self, make_verdict, lesson_content, lesson_spec
    ):
        primary = fake_judge("a", make_verdict(0.95, judge_model="a"))
        secondary = fake_judge("b", make_verdict(0.40, judge_model="b"))
        tiebreaker = fake_judge("c", error=JudgeEvaluationError("down", "c"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_called_once()
        assert result.aggregated_score == pytest.approx(0.675)
        assert result.consensus_reached is False
        assert result.final_recommendation == JudgeRecommendation.ITERATIVE_REFINEMENT

    def test_agreeing_scores_across_band_edge(self, make_verdict, lesson_content, lesson_spec):
        primary = fake_judge("a", make_verdict(0.86, judge_model="a"))
        secondary = fake_judge("b", make_verdict(0.93, judge_model="b"))
        tiebreaker = fake_judge("c", make_verdict(0.5, judge_model="c"))

        result = JudgeVoter(primary, secondary, tiebreaker).vote(lesson_content, lesson_spec)

        tiebreaker.evaluate.assert_not_called()
        assert result.voting_method == VotingMethod.MAJORITY
        assert result.consensus_reached is True
        assert result.final_recommendation == JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION

    @patch("lesson_judge.judge.voting.LLMClient")
    def test_from_config_builds_one_client_per_model(self, mock_client_cls):
        config = JudgeConfig(primary_model="m1", secondary_model="m2", tiebreaker_model="m3")

        voter = JudgeVoter.from_config(config, api_key="key")

        models = [call.kwargs["model"] for call in mock_client_cls.call_args_list]
        assert models == ["m1", "m2", "m3"]
        assert voter.config is config
        assert voter.primary.config is config
