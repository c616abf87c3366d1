"""Unit tests for token-entropy hallucination detection."""

import math

import pytest

from lesson_judge.config import EntropyConfig
from lesson_judge.models.entropy import (
    EntropyAnalysisResult,
    EntropySpan,
    TokenAlternative,
    TokenLogprob,
)
from lesson_judge.validators.entropy_detector import (
    analyze_content_entropy,
    calculate_token_entropy,
    detect_high_entropy_spans,
    extract_flagged_sentences,
    get_entropy_analysis_summary,
    map_tokens_to_sentences,
    neutral_result,
    should_trigger_verification,
)


def make_logprobs(pairs):
    return [TokenLogprob(token=token, logprob=logprob) for token, logprob in pairs]


class TestCalculateTokenEntropy:
    def test_certain_token_has_zero_entropy(self):
        assert calculate_token_entropy(0.0) == 0.0

    def test_information_content_without_alternatives(self):
        assert calculate_token_entropy(math.log(0.5)) == pytest.approx(1.0)

    def test_lower_probability_means_higher_entropy(self):
        assert calculate_token_entropy(-4.0) > calculate_token_entropy(-0.1)

    def test_uniform_alternatives(self):
        alternatives = [
            TokenAlternative(token=t, logprob=math.log(0.25)) for t in ("a", "b", "c", "d")
        ]
        assert calculate_token_entropy(math.log(0.25), alternatives) == pytest.approx(2.0)

    def test_non_finite_logprob(self):
        assert calculate_token_entropy(float("-inf")) == 0.0


class TestMapTokensToSentences:
    def test_tokens_are_assigned_to_sentences(self):
        tokens = ["The", " sky", " is", " blue", ".", " Grass", " is", " green", "."]

        mappings = map_tokens_to_sentences(tokens)

        assert len(mappings) == 2
        assert (mappings[0].start_token, mappings[0].end_token) == (0, 5)
        assert mappings[0].sentence == "The sky is blue."
        assert (mappings[1].start_token, mappings[1].end_token) == (5, 9)


class TestDetectHighEntropySpans:
    def test_no_spans_for_confident_text(self):
        entropies = [0.1] * 10
        tokens = ["x"] * 10
        assert detect_high_entropy_spans(entropies, tokens) == []

    def test_empty_input(self):
        assert detect_high_entropy_spans([], []) == []

    def test_high_entropy_run_is_flagged(self):
        entropies = [0.1] * 5 + [4.0] * 6 + [0.1] * 5
        tokens = [f"t{i} " for i in range(16)]

        spans = detect_high_entropy_spans(entropies, tokens, EntropyConfig())

        assert len(spans) == 1
        span = spans[0]
        assert span.start_token <= 5
        assert span.end_token >= 9
        assert span.length >= 3
        assert span.average_entropy > 2.0

    def test_short_runs_are_dropped(self):
        config = EntropyConfig(window_size=1, min_span_length=3)
        entropies = [0.1, 5.0, 5.0, 0.1, 0.1]
        tokens = ["a", "b", "c", "d", "e"]

        assert detect_high_entropy_spans(entropies, tokens, config) == []

    def test_strict_level_lowers_threshold(self):
        entropies = [1.8] * 6
        tokens = ["w "] * 6

        moderate = detect_high_entropy_spans(entropies, tokens, EntropyConfig())
        strict = detect_high_entropy_spans(
            entropies, tokens, EntropyConfig(confidence_level="strict")
        )

        assert moderate == []
        assert len(strict) == 1


class TestShouldTriggerVerification:
    def _result(self, ratio, spans=None):
        return EntropyAnalysisResult(
            overall_entropy=1.0,
            flagged_spans=spans or [],
            high_entropy_ratio=ratio,
            requires_verification=False,
            confidence_score=0.75,
        )

    def test_high_ratio_triggers(self):
        assert should_trigger_verification(self._result(0.15)) is True

    def test_low_ratio_without_critical_span(self):
        span = EntropySpan(
            start_token=0, end_token=3, average_entropy=2.5, text="abc", sentence_index=0
        )
        assert should_trigger_verification(self._result(0.05, [span])) is False

    def test_critical_span_triggers(self):
        span = EntropySpan(
            start_token=0, end_token=3, average_entropy=3.6, text="abc", sentence_index=0
        )
        assert should_trigger_verification(self._result(0.05, [span])) is True


class TestAnalyzeContentEntropy:
    def test_two_token_example(self):
        result = analyze_content_entropy("ab", make_logprobs([("a", -0.1), ("b", -4.0)]))

        assert result.overall_entropy > 0
        assert result.confidence_score < 1

    @pytest.mark.parametrize("logprobs", [None, []])
    def test_missing_logprobs_are_neutral(self, logprobs):
        result = analyze_content_entropy("text", logprobs)

        assert result == neutral_result()
        assert result.confidence_score == 1.0
        assert result.requires_verification is False

    def test_confidence_decreases_with_entropy(self):
        confident = analyze_content_entropy("x", make_logprobs([("x", -0.05)] * 10))
        unsure = analyze_content_entropy("x", make_logprobs([("x", -1.5)] * 10))

        assert unsure.overall_entropy > confident.overall_entropy
        assert unsure.confidence_score < confident.confidence_score

    def test_uncertain_content_requires_verification(self):
        tokens = [("Paris ", -0.01)] * 10 + [("1887 ", -5.0)] * 6 + [("is ", -0.01)] * 10

        result = analyze_content_entropy("...", make_logprobs(tokens))

        assert result.flagged_spans
        assert result.requires_verification is True
        assert 0 < result.high_entropy_ratio <= 1

    def test_confidence_is_bounded(self):
        result = analyze_content_entropy("x", make_logprobs([("x", -30.0)] * 5))
        assert result.confidence_score == 0.0


class TestSummaries:
    def test_extract_flagged_sentences(self):
        content = "The sky is blue. It was built in 1887. Grass is green."
        span = EntropySpan(
            start_token=0, end_token=3, average_entropy=3.0, text="1887", sentence_index=1
        )
        result = EntropyAnalysisResult(
            overall_entropy=1.0,
            flagged_spans=[span, span],
            high_entropy_ratio=0.2,
            requires_verification=True,
            confidence_score=0.75,
        )

        assert extract_flagged_sentences(content, result) == ["It was built in 1887."]

    def test_summary_mentions_verification(self):
        summary = get_entropy_analysis_summary(neutral_result())

        assert "Confidence: high (100.0%)" in summary
        assert "Requires verification: No" in summary
