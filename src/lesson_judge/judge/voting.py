"""Multi-judge voting for lesson verdicts.

Two judges score the draft in parallel. When their scores agree within
``agreement_threshold`` and both are confident enough, their weighted
mean is final. Otherwise a third judge breaks the tie and the three
verdicts are aggregated:

- score: mean weighted by per-model reliability weight
- recommendation: strict majority, else the band of the aggregated score
- issues: merged, de-duplicated, most severe first
- strengths: merged, de-duplicated case-insensitively
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Union

from lesson_judge.config import JudgeConfig
from lesson_judge.exceptions import JudgeEvaluationError, VotingError
from lesson_judge.judge.llm_judge import LessonJudge
from lesson_judge.judge.rubric import determine_recommendation
from lesson_judge.models.judge import (
    CONFIDENCE_RANK,
    SEVERITY_RANK,
    JudgeAggregatedResult,
    JudgeIssue,
    JudgeRecommendation,
    JudgeVerdict,
    VotingMethod,
)
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification
from lesson_judge.utils.llm_client import LLMClient

logger = logging.getLogger(__name__)


def combine_issues(verdicts: List[JudgeVerdict]) -> List[JudgeIssue]:
    """Merge issues, keyed on criterion and the first 50 characters of the description."""
    seen = set()
    combined: List[JudgeIssue] = []
    for verdict in verdicts:
        for issue in verdict.issues:
            key = (issue.criterion, issue.description[:50])
            if key not in seen:
                seen.add(key)
                combined.append(issue)
    return sorted(combined, key=lambda issue: SEVERITY_RANK[issue.severity])


def combine_strengths(verdicts: List[JudgeVerdict]) -> List[str]:
    seen = set()
    combined: List[str] = []
    for verdict in verdicts:
        for strength in verdict.strengths:
            normalized = strength.lower().strip()
            if normalized not in seen:
                seen.add(normalized)
                combined.append(strength)
    return combined


def aggregate_verdicts(
    verdicts: List[JudgeVerdict], config: Optional[JudgeConfig] = None
) -> JudgeAggregatedResult:
    """Aggregate two or more verdicts into one result.

    Args:
        verdicts: Successful verdicts (at least one)
        config: Supplies per-model weights

    Returns:
        JudgeAggregatedResult

    Raises:
        ValueError: If ``verdicts`` is empty
    """
    if not verdicts:
        raise ValueError("Cannot aggregate an empty list of verdicts")

    config = config or JudgeConfig()
    total_weight = 0.0
    weighted_sum = 0.0
    for verdict in verdicts:
        weight = config.weight_for(verdict.judge_model)
        weighted_sum += verdict.overall_score * weight
        total_weight += weight
    aggregated_score = weighted_sum / total_weight if total_weight > 0 else 0.0

    counts: Dict[JudgeRecommendation, int] = {}
    for verdict in verdicts:
        counts[verdict.recommendation] = counts.get(verdict.recommendation, 0) + 1
    top_recommendation, max_count = max(counts.items(), key=lambda item: item[1])
    has_majority = max_count > len(verdicts) / 2
    aggregated_score = max(0.0, min(1.0, aggregated_score))
    issues = combine_issues(verdicts)

    if has_majority:
        final_recommendation = top_recommendation
    else:
        # No majority: fall back to the band of the aggregated score
        lowest_confidence = min(
            (verdict.confidence for verdict in verdicts), key=lambda c: CONFIDENCE_RANK[c]
        )
        final_recommendation = determine_recommendation(
            aggregated_score, lowest_confidence, issues
        )
        logger.info(
            f"No majority among {len(verdicts)} recommendations, using score band: "
            f"{final_recommendation.value} (score {aggregated_score:.3f})"
        )

    if max_count == len(verdicts):
        voting_method = VotingMethod.UNANIMOUS
    elif len(verdicts) == 3:
        voting_method = VotingMethod.TIEBREAKER
    else:
        voting_method = VotingMethod.MAJORITY

    return JudgeAggregatedResult(
        verdicts=verdicts,
        aggregated_score=aggregated_score,
        final_recommendation=final_recommendation,
        voting_method=voting_method,
        consensus_reached=has_majority,
        issues=issues,
        strengths=combine_strengths(verdicts),
    )


class JudgeVoter:
    """Runs primary and secondary judges, with a tiebreaker on disagreement."""

    def __init__(
        self,
        primary: LessonJudge,
        secondary: LessonJudge,
        tiebreaker: LessonJudge,
        config: Optional[JudgeConfig] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.tiebreaker = tiebreaker
        self.config = config or JudgeConfig()

    @classmethod
    def from_config(
        cls,
        config: Optional[JudgeConfig] = None,
        api_key: Optional[str] = None,
        enable_langfuse: bool = False,
        passing_threshold: float = 0.7,
    ) -> "JudgeVoter":
        """Build a voter with one LLM client per judge model."""
        config = config or JudgeConfig.from_env()

        def build(model: str) -> LessonJudge:
            client = LLMClient(api_key=api_key, model=model, enable_langfuse=enable_langfuse)
            return LessonJudge(client, config, passing_threshold=passing_threshold)

        return cls(
            primary=build(config.primary_model),
            secondary=build(config.secondary_model),
            tiebreaker=build(config.tiebreaker_model),
            config=config,
        )

    def _run_judge(
        self,
        judge: LessonJudge,
        content: Union[LessonContentBody, str],
        spec: LessonSpecification,
    ) -> Optional[JudgeVerdict]:
        try:
            return judge.evaluate(content, spec)
        except JudgeEvaluationError as e:
            logger.warning(f"Judge {e.judge_model or judge.model} failed for {spec.lesson_id}: {e}")
            return None

    def _is_confident(self, verdict: JudgeVerdict) -> bool:
        return CONFIDENCE_RANK[verdict.confidence] >= CONFIDENCE_RANK[self.config.min_confidence]

    def vote(
        self, content: Union[LessonContentBody, str], spec: LessonSpecification
    ) -> JudgeAggregatedResult:
        """Evaluate a draft with multiple judges.

        Raises:
            VotingError: If every judge fails
        """
        start_time = time.perf_counter()
        logger.info(
            f"Starting judge vote for {spec.lesson_id}: primary={self.primary.model}, "
            f"secondary={self.secondary.model}, tiebreaker={self.tiebreaker.model}"
        )

        with ThreadPoolExecutor(max_workers=2) as executor:
            primary_future = executor.submit(self._run_judge, self.primary, content, spec)
            secondary_future = executor.submit(self._run_judge, self.secondary, content, spec)
            primary_verdict = primary_future.result()
            secondary_verdict = secondary_future.result()

        verdicts = [v for v in (primary_verdict, secondary_verdict) if v is not None]
        if not verdicts:
            raise VotingError(f"All judge evaluations failed for lesson {spec.lesson_id}")

        if len(verdicts) == 1:
            logger.warning(f"Only one judge succeeded for {spec.lesson_id}, using single verdict")
            verdict = verdicts[0]
            return JudgeAggregatedResult(
                verdicts=verdicts,
                aggregated_score=verdict.overall_score,
                final_recommendation=verdict.recommendation,
                voting_method=VotingMethod.UNANIMOUS,
                consensus_reached=True,
                issues=combine_issues(verdicts),
                strengths=combine_strengths(verdicts),
            )

        difference = abs(primary_verdict.overall_score - secondary_verdict.overall_score)
        confident = self._is_confident(primary_verdict) and self._is_confident(secondary_verdict)

        if difference <= self.config.agreement_threshold and confident:
            aggregated = aggregate_verdicts(verdicts, self.config)
            logger.info(
                f"Judges agreed for {spec.lesson_id} (difference {difference:.3f}), "
                f"skipping tiebreaker"
            )
            # Scores agree even when the recommendations straddle a band edge
            return aggregated.model_copy(update={"consensus_reached": True})

        logger.info(
            f"Judges disagreed for {spec.lesson_id}: difference={difference:.3f}, "
            f"confident={confident}, invoking tiebreaker {self.tiebreaker.model}"
        )
        tiebreaker_verdict = self._run_judge(self.tiebreaker, content, spec)
        if tiebreaker_verdict is not None:
            verdicts.append(tiebreaker_verdict)

        aggregated = aggregate_verdicts(verdicts, self.config)
        logger.info(
            f"Judge vote complete for {spec.lesson_id}: score={aggregated.aggregated_score:.3f}, "
            f"recommendation={aggregated.final_recommendation.value}, "
            f"method={aggregated.voting_method.value}, judges={len(verdicts)}, "
            f"duration_ms={(time.perf_counter() - start_time) * 1000:.0f}"
        )
        return aggregated
