"""Cascade evaluator: heuristics, then one judge, then a vote.

Each stage is more expensive than the last and only runs when the
previous one could not settle the draft:

1. Heuristic pre-filter (no model calls). Blocking failures end the
   cascade with REGENERATE.
2. Single judge. A medium/high confidence verdict with a decisive score
   (at or above the confidence threshold, or below its complement) is final.
3. Multi-judge vote for everything else.
"""

import logging
import time
from typing import Optional, Union

from lesson_judge.config import CascadeConfig
from lesson_judge.exceptions import JudgeEvaluationError
from lesson_judge.judge.llm_judge import LessonJudge
from lesson_judge.judge.voting import JudgeVoter
from lesson_judge.models.evaluation import CascadeHeuristicResults, CascadeResult, CascadeStage
from lesson_judge.models.heuristics import FilterFailure, HeuristicFilterResult
from lesson_judge.models.judge import (
    CONFIDENCE_RANK,
    JudgeConfidence,
    JudgeRecommendation,
    JudgeVerdict,
)
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification
from lesson_judge.validators.heuristic_filter import run_heuristic_filters

logger = logging.getLogger(__name__)

HEURISTIC_COST_SAVINGS = 1.0
SINGLE_JUDGE_COST_SAVINGS = 0.67
VOTING_COST_SAVINGS = 0.0


def _describe_failure(failure: FilterFailure) -> str:
    return f"{failure.filter.value}: expected {failure.expected}, got {failure.actual}"


def summarize_heuristics(result: HeuristicFilterResult) -> CascadeHeuristicResults:
    """Collapse a heuristic filter result into the cascade's summary view."""
    metrics = result.metrics
    return CascadeHeuristicResults(
        passed=result.passed,
        word_count=metrics.word_count,
        flesch_kincaid=metrics.flesch_kincaid_grade,
        flesch_kincaid_skipped=metrics.readability_skipped,
        sections_present=not metrics.missing_sections,
        missing_sections=list(metrics.missing_sections),
        keyword_coverage=metrics.keyword_coverage,
        examples_count=metrics.examples_count or 0,
        exercises_count=metrics.exercises_count or 0,
        failure_reasons=[_describe_failure(f) for f in result.failures if f.blocking],
        warnings=[_describe_failure(f) for f in result.failures if not f.blocking],
        filter_result=result,
    )


class CascadeEvaluator:
    """Runs the three-stage evaluation cascade for one draft."""

    def __init__(
        self,
        voter: JudgeVoter,
        single_judge: Optional[LessonJudge] = None,
        config: Optional[CascadeConfig] = None,
    ):
        """Initialize the cascade.

        Args:
            voter: Multi-judge voter for the final stage
            single_judge: Judge for the single-judge stage (defaults to the voter's primary)
            config: Cascade settings, including heuristic thresholds
        """
        self.voter = voter
        self.single_judge = single_judge or voter.primary
        self.config = config or CascadeConfig()

    def _is_decisive(self, verdict: JudgeVerdict) -> bool:
        threshold = self.config.single_judge_confidence_threshold
        confident = CONFIDENCE_RANK[verdict.confidence] >= CONFIDENCE_RANK[JudgeConfidence.MEDIUM]
        decisive = verdict.overall_score >= threshold or verdict.overall_score < 1 - threshold
        return confident and decisive

    def evaluate(
        self, content: Union[LessonContentBody, str], spec: LessonSpecification
    ) -> CascadeResult:
        """Evaluate a draft through the cascade.

        Args:
            content: Structured lesson body or raw markdown
            spec: Lesson specification

        Returns:
            CascadeResult naming the stage that produced the final answer

        Raises:
            VotingError: If the voting stage is reached and every judge fails
        """
        start_time = time.perf_counter()
        heuristic_results: Optional[CascadeHeuristicResults] = None

        def elapsed_ms() -> float:
            return (time.perf_counter() - start_time) * 1000

        if not self.config.skip_heuristics:
            filter_result = run_heuristic_filters(content, spec, self.config.heuristics)
            heuristic_results = summarize_heuristics(filter_result)

            if not heuristic_results.passed:
                logger.info(
                    f"Lesson {spec.lesson_id} failed heuristic pre-filters, recommending "
                    f"REGENERATE: {heuristic_results.failure_reasons}"
                )
                return CascadeResult(
                    stage=CascadeStage.HEURISTIC,
                    passed=False,
                    heuristic_results=heuristic_results,
                    final_score=0.0,
                    final_recommendation=JudgeRecommendation.REGENERATE,
                    total_tokens_used=0,
                    total_duration_ms=elapsed_ms(),
                    cost_savings_ratio=HEURISTIC_COST_SAVINGS,
                )
            logger.info(f"Lesson {spec.lesson_id} passed heuristic pre-filters")

        total_tokens = 0
        single_verdict: Optional[JudgeVerdict] = None

        if not self.config.skip_single_judge:
            try:
                single_verdict = self.single_judge.evaluate(content, spec)
            except JudgeEvaluationError as e:
                logger.warning(
                    f"Single judge failed for {spec.lesson_id}, proceeding to voting: {e}"
                )

            if single_verdict is not None:
                total_tokens += single_verdict.tokens_used
                if self._is_decisive(single_verdict):
                    logger.info(
                        f"Single judge verdict accepted for {spec.lesson_id}: "
                        f"score={single_verdict.overall_score:.3f}, "
                        f"confidence={single_verdict.confidence.value}"
                    )
                    return CascadeResult(
                        stage=CascadeStage.SINGLE_JUDGE,
                        passed=single_verdict.passed,
                        heuristic_results=heuristic_results,
                        single_judge_verdict=single_verdict,
                        final_score=single_verdict.overall_score,
                        final_recommendation=single_verdict.recommendation,
                        total_tokens_used=total_tokens,
                        total_duration_ms=elapsed_ms(),
                        cost_savings_ratio=SINGLE_JUDGE_COST_SAVINGS,
                    )
                logger.info(
                    f"Single judge not decisive for {spec.lesson_id} "
                    f"(score={single_verdict.overall_score:.3f}, "
                    f"confidence={single_verdict.confidence.value}), proceeding to voting"
                )

        voting_result = self.voter.vote(content, spec)
        total_tokens += voting_result.tokens_used

        logger.info(
            f"Cascade reached voting for {spec.lesson_id}: "
            f"score={voting_result.aggregated_score:.3f}, "
            f"recommendation={voting_result.final_recommendation.value}, "
            f"judges={len(voting_result.verdicts)}"
        )
        return CascadeResult(
            stage=CascadeStage.VOTING,
            passed=voting_result.aggregated_score >= self.config.passing_threshold,
            heuristic_results=heuristic_results,
            single_judge_verdict=single_verdict,
            voting_result=voting_result,
            final_score=voting_result.aggregated_score,
            final_recommendation=voting_result.final_recommendation,
            total_tokens_used=total_tokens,
            total_duration_ms=elapsed_ms(),
            cost_savings_ratio=VOTING_COST_SAVINGS,
        )
