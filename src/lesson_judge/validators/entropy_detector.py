"""Token-entropy hallucination detector.

Uses per-token log-probabilities from the generation model to flag spans
where the model was uncertain. Uncertain spans are candidates for
verification against retrieved sources.

Entropy is measured in bits. When the backend exposes top alternatives for
a token, the Shannon entropy of their normalized distribution is used;
otherwise the token's information content ``-log2(p)`` stands in for it.

Absent log-probabilities yield a neutral result (no spans, confidence 1.0).
"""

import logging
import math
import re
from typing import List, Optional

from lesson_judge.config import EntropyConfig
from lesson_judge.models.entropy import (
    EntropyAnalysisResult,
    EntropySpan,
    SentenceMapping,
    TokenAlternative,
    TokenLogprob,
)

logger = logging.getLogger(__name__)

SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")


def _entropy_from_distribution(logprobs: List[float]) -> float:
    probabilities = [math.exp(lp) for lp in logprobs]
    total = sum(probabilities)
    if total <= 0:
        return 0.0

    entropy = 0.0
    for probability in probabilities:
        normalized = probability / total
        if 0 < normalized <= 1:
            entropy -= normalized * math.log2(normalized)
    return entropy


def calculate_token_entropy(
    logprob: float, alternatives: Optional[List[TokenAlternative]] = None
) -> float:
    """Entropy estimate for a single token.

    Args:
        logprob: Natural-log probability of the chosen token
        alternatives: Optional top alternatives for the same position

    Returns:
        Entropy in bits (0 for non-finite input)
    """
    if not math.isfinite(logprob):
        logger.warning(f"Invalid logprob value: {logprob}")
        return 0.0

    if alternatives:
        return _entropy_from_distribution([alt.logprob for alt in alternatives])

    probability = math.exp(logprob)
    if probability <= 0 or probability > 1:
        return 0.0
    return -math.log2(probability)


def map_tokens_to_sentences(tokens: List[str]) -> List[SentenceMapping]:
    """Assign token ranges to sentences of the joined token text.

    Tokens are consumed greedily until their accumulated character length
    covers each sentence.
    """
    text = "".join(tokens)
    sentences = SENTENCE_PATTERN.findall(text) or [text]

    mappings: List[SentenceMapping] = []
    token_index = 0
    for sentence_index, sentence in enumerate(sentences):
        if not sentence:
            continue
        start = token_index
        consumed = 0
        while consumed < len(sentence) and token_index < len(tokens):
            consumed += len(tokens[token_index])
            token_index += 1
        mappings.append(
            SentenceMapping(
                sentence_index=sentence_index,
                sentence=sentence.strip(),
                start_token=start,
                end_token=token_index,
            )
        )
    return mappings


def _find_sentence_index(token_index: int, mappings: List[SentenceMapping]) -> int:
    for mapping in mappings:
        if mapping.start_token <= token_index < mapping.end_token:
            return mapping.sentence_index
    return mappings[-1].sentence_index if mappings else 0


def detect_high_entropy_spans(
    entropies: List[float],
    tokens: List[str],
    config: Optional[EntropyConfig] = None,
) -> List[EntropySpan]:
    """Find runs of tokens whose sliding-window average entropy is high.

    A window starting at each token is averaged over ``window_size`` tokens.
    Consecutive starting positions whose window average reaches the
    adjusted threshold form a span; spans shorter than ``min_span_length``
    are dropped.

    Args:
        entropies: Per-token entropy values
        tokens: Token strings aligned with ``entropies``
        config: Detection thresholds

    Returns:
        List of EntropySpan in token order
    """
    if not entropies or not tokens:
        return []

    config = config or EntropyConfig()
    threshold = config.adjusted_threshold
    mappings = map_tokens_to_sentences(tokens)

    spans: List[EntropySpan] = []
    span_start: Optional[int] = None
    span_entropies: List[float] = []

    # One step past the end closes any span still open
    for i in range(len(entropies) + 1):
        window = entropies[i : i + config.window_size]
        window_avg = sum(window) / len(window) if window else 0.0

        if window_avg >= threshold:
            if span_start is None:
                span_start = i
                span_entropies = []
            span_entropies.append(entropies[i])
            continue

        if span_start is None:
            continue

        if i - span_start >= config.min_span_length:
            spans.append(
                EntropySpan(
                    start_token=span_start,
                    end_token=i,
                    average_entropy=sum(span_entropies) / len(span_entropies),
                    text="".join(tokens[span_start:i]),
                    sentence_index=_find_sentence_index(span_start, mappings),
                )
            )
        span_start = None
        span_entropies = []

    logger.debug(
        f"High entropy spans detected: tokens={len(entropies)}, spans={len(spans)}, "
        f"threshold={threshold:.2f}"
    )
    return spans


def should_trigger_verification(
    result: EntropyAnalysisResult, config: Optional[EntropyConfig] = None
) -> bool:
    """Whether flagged content warrants source verification.

    Triggered when more than ``high_ratio_threshold`` of tokens are flagged,
    or when any span's average entropy reaches ``critical_span_entropy``.
    """
    config = config or EntropyConfig()

    if result.high_entropy_ratio > config.high_ratio_threshold:
        logger.debug(f"Verification triggered by high entropy ratio: {result.high_entropy_ratio:.3f}")
        return True

    for span in result.flagged_spans:
        if span.average_entropy >= config.critical_span_entropy:
            logger.debug(
                f"Verification triggered by critical span: entropy={span.average_entropy:.2f}, "
                f"text={span.text[:50]!r}"
            )
            return True

    return False


def neutral_result() -> EntropyAnalysisResult:
    """Result used when no log-probabilities are available."""
    return EntropyAnalysisResult(
        overall_entropy=0.0,
        flagged_spans=[],
        high_entropy_ratio=0.0,
        requires_verification=False,
        confidence_score=1.0,
    )


def analyze_content_entropy(
    content: str,
    logprobs: Optional[List[TokenLogprob]],
    config: Optional[EntropyConfig] = None,
) -> EntropyAnalysisResult:
    """Analyze generated content for uncertain spans.

    Args:
        content: Generated text (used for logging only)
        logprobs: Per-token log-probabilities, or None when unavailable
        config: Detection thresholds

    Returns:
        EntropyAnalysisResult
    """
    if not logprobs:
        logger.info(
            f"No logprobs available for entropy analysis, returning neutral result "
            f"(content_length={len(content)})"
        )
        return neutral_result()

    config = config or EntropyConfig()
    entropies = [calculate_token_entropy(tp.logprob, tp.top_alternatives) for tp in logprobs]
    tokens = [tp.token for tp in logprobs]

    overall = sum(entropies) / len(entropies)
    spans = detect_high_entropy_spans(entropies, tokens, config)
    flagged = sum(span.length for span in spans)
    ratio = min(1.0, flagged / len(entropies))
    confidence = 1 - min(overall / config.max_entropy_for_confidence, 1.0)

    draft = EntropyAnalysisResult(
        overall_entropy=overall,
        flagged_spans=spans,
        high_entropy_ratio=ratio,
        requires_verification=False,
        confidence_score=confidence,
    )
    result = draft.model_copy(
        update={"requires_verification": should_trigger_verification(draft, config)}
    )

    logger.info(
        f"Entropy analysis complete: tokens={len(logprobs)}, overall={overall:.4f}, "
        f"spans={len(spans)}, ratio={ratio:.2%}, confidence={confidence:.4f}, "
        f"requires_verification={result.requires_verification}"
    )
    return result


def extract_flagged_sentences(content: str, result: EntropyAnalysisResult) -> List[str]:
    """Sentences of ``content`` that contain at least one flagged span."""
    if not result.flagged_spans:
        return []

    sentences = SENTENCE_PATTERN.findall(content)
    indices = dict.fromkeys(span.sentence_index for span in result.flagged_spans)
    flagged = []
    for index in indices:
        if 0 <= index < len(sentences) and sentences[index].strip():
            flagged.append(sentences[index].strip())
    return flagged


def get_entropy_analysis_summary(result: EntropyAnalysisResult) -> str:
    """Human-readable summary of an entropy analysis."""
    if result.confidence_score >= 0.8:
        confidence = "high"
    elif result.confidence_score >= 0.5:
        confidence = "moderate"
    else:
        confidence = "low"

    lines = [
        "Entropy Analysis Summary:",
        f"- Overall entropy: {result.overall_entropy:.3f} bits",
        f"- Confidence: {confidence} ({result.confidence_score * 100:.1f}%)",
        f"- Flagged spans: {len(result.flagged_spans)}",
        f"- High-entropy content: {result.high_entropy_ratio * 100:.1f}%",
        f"- Requires verification: {'Yes' if result.requires_verification else 'No'}",
    ]

    if result.flagged_spans:
        lines.extend(["", "Top flagged spans:"])
        top_spans = sorted(result.flagged_spans, key=lambda s: s.average_entropy, reverse=True)
        for span in top_spans[:3]:
            preview = span.text[:40] + "..." if len(span.text) > 40 else span.text
            lines.append(f'  - "{preview}" (entropy: {span.average_entropy:.2f})')

    return "\n".join(lines)
