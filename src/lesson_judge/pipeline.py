"""Per-lesson judge-and-decide cycle.

Runs the evaluation cascade and entropy analysis on one draft, then asks
the decision engine for the next action. Uncertain generations (entropy
verification required) are never accepted automatically.
"""

import logging
import re
from typing import Dict, List, Optional, Union

from lesson_judge.config import PipelineConfig
from lesson_judge.decision.decision_engine import (
    calculate_content_affected_percentage,
    make_decision,
)
from lesson_judge.judge.cascade_evaluator import CascadeEvaluator
from lesson_judge.models.decision import (
    DecisionAction,
    DecisionContext,
    DecisionFactors,
    DecisionResult,
)
from lesson_judge.models.entropy import TokenLogprob
from lesson_judge.models.evaluation import (
    CascadeHeuristicResults,
    CascadeResult,
    CascadeStage,
    LessonEvaluationResult,
)
from lesson_judge.models.judge import (
    CONFIDENCE_RANK,
    JudgeConfidence,
    JudgeVerdict,
)
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification
from lesson_judge.utils.logging_config import pipeline_stage_logger
from lesson_judge.validators.entropy_detector import analyze_content_entropy
from lesson_judge.validators.text_metrics import render_lesson_markdown

logger = logging.getLogger(__name__)

H2_PATTERN = re.compile(r"^##\s+\S", re.MULTILINE)


def build_heuristic_feedback(heuristics: CascadeHeuristicResults) -> str:
    """Regeneration feedback for a draft rejected by the heuristic pre-filter."""
    lines = ["## Heuristic Pre-filter Failures:"]
    lines.extend(f"- {reason}" for reason in heuristics.failure_reasons)
    suggestions = heuristics.filter_result.suggestions
    if suggestions:
        lines.extend(["", "## Suggestions:"])
        lines.extend(f"- {suggestion}" for suggestion in suggestions)
    return "\n".join(lines)


def consensus_confidence(verdicts: List[JudgeVerdict]) -> JudgeConfidence:
    """Confidence held by the most verdicts; ties resolve to the lower level."""
    counts: Dict[JudgeConfidence, int] = {}
    for verdict in verdicts:
        counts[verdict.confidence] = counts.get(verdict.confidence, 0) + 1
    return max(counts, key=lambda level: (counts[level], -CONFIDENCE_RANK[level]))


def _judge_outcome(cascade: CascadeResult):
    if cascade.voting_result is not None:
        voting = cascade.voting_result
        return consensus_confidence(voting.verdicts), list(voting.issues)
    verdict = cascade.single_judge_verdict
    return verdict.confidence, list(verdict.issues)


def _count_sections(content: Union[LessonContentBody, str]) -> int:
    if isinstance(content, LessonContentBody):
        return len(content.sections)
    return len(H2_PATTERN.findall(content))


def evaluate_lesson(
    content: Union[LessonContentBody, str],
    spec: LessonSpecification,
    cascade: CascadeEvaluator,
    logprobs: Optional[List[TokenLogprob]] = None,
    iteration_count: int = 0,
    previous_scores: Optional[List[float]] = None,
    config: Optional[PipelineConfig] = None,
) -> LessonEvaluationResult:
    """Evaluate one lesson draft and decide what to do with it.

    Args:
        content: Structured lesson body or raw markdown
        spec: Lesson specification
        cascade: Configured cascade evaluator (owns the judges)
        logprobs: Generation log-probabilities, when the backend exposes them
        iteration_count: Refinement iterations already completed for this lesson
        previous_scores: Scores of earlier iterations, oldest first
        config: Entropy and decision settings

    Returns:
        LessonEvaluationResult with cascade, entropy, and decision

    Raises:
        VotingError: If the cascade reaches voting and every judge fails
    """
    config = config or PipelineConfig()
    thresholds = config.decision
    previous_scores = list(previous_scores or [])

    with pipeline_stage_logger(
        "evaluate_lesson", lesson_id=spec.lesson_id, iteration=iteration_count
    ):
        cascade_result = cascade.evaluate(content, spec)

        if isinstance(content, LessonContentBody):
            text = render_lesson_markdown(content, spec.title)
        else:
            text = content
        entropy = analyze_content_entropy(text, logprobs, config.entropy)

        if cascade_result.stage == CascadeStage.HEURISTIC:
            heuristics = cascade_result.heuristic_results
            decision = DecisionResult(
                action=DecisionAction.REGENERATE,
                reason=(
                    f"Heuristic pre-filter failed: {'; '.join(heuristics.failure_reasons)}"
                ),
                max_iterations=0,
                target_score=thresholds.refinement_target,
                feedback_for_regeneration=build_heuristic_feedback(heuristics),
                factors=DecisionFactors(
                    score_threshold="Not judged (rejected before model evaluation)",
                    issue_analysis=f"{len(heuristics.failure_reasons)} blocking heuristic failures",
                    confidence_level="N/A",
                    iteration_history=f"{iteration_count} iterations completed",
                ),
            )
        else:
            confidence, issues = _judge_outcome(cascade_result)
            total_sections = _count_sections(content)
            context = DecisionContext(
                score=cascade_result.final_score,
                confidence=confidence,
                issues=issues,
                iteration_count=iteration_count,
                previous_scores=previous_scores,
                content_affected_percentage=calculate_content_affected_percentage(
                    issues, total_sections
                ),
                total_sections=total_sections,
            )
            decision = make_decision(context, thresholds)

        escalated = False
        if entropy.requires_verification and decision.action in (
            DecisionAction.ACCEPT,
            DecisionAction.TARGETED_FIX,
        ):
            escalated = True
            logger.warning(
                f"Lesson {spec.lesson_id}: {decision.action.value} overridden, "
                f"{len(entropy.flagged_spans)} high-entropy spans require verification"
            )
            decision = DecisionResult(
                action=DecisionAction.ESCALATE_TO_HUMAN,
                reason=(
                    f"Entropy analysis flagged {len(entropy.flagged_spans)} uncertain spans "
                    f"({entropy.high_entropy_ratio:.0%} of tokens); factual verification "
                    f"required before acceptance"
                ),
                max_iterations=0,
                target_score=decision.target_score,
                factors=decision.factors,
            )

        partial_success = cascade_result.final_score < thresholds.quality_threshold

    logger.info(
        f"Lesson {spec.lesson_id} evaluated: stage={cascade_result.stage.value}, "
        f"score={cascade_result.final_score:.3f}, action={decision.action.value}, "
        f"escalated_by_entropy={escalated}, partial_success={partial_success}"
    )
    return LessonEvaluationResult(
        lesson_id=spec.lesson_id,
        iteration_count=iteration_count,
        cascade=cascade_result,
        entropy=entropy,
        decision=decision,
        escalated_by_entropy=escalated,
        partial_success=partial_success,
    )
