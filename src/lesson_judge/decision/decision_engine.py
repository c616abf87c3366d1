"""Decision engine: turn a judge verdict into the next action for a lesson.

Pure and deterministic. The caller owns the DecisionContext across
refinement iterations and passes a fresh one into every call.

Rules, first match wins:

1. Low judge confidence -> ESCALATE_TO_HUMAN
2. score >= accept -> ACCEPT
3. Iteration budget exhausted:
   - improvement below ``min_improvement`` -> ACCEPT (diminishing returns)
   - score below the refinement target -> REGENERATE
   - otherwise -> ACCEPT
4. accept > score >= targeted_fix:
   - fewer than ``localized_issue_percentage`` of content affected -> TARGETED_FIX
   - otherwise -> ITERATIVE_REFINEMENT
5. targeted_fix > score >= regenerate -> ITERATIVE_REFINEMENT
6. score < regenerate -> REGENERATE
"""

import logging
import re
from typing import Dict, List, Optional

from lesson_judge.config import DecisionThresholds
from lesson_judge.models.decision import (
    DecisionAction,
    DecisionContext,
    DecisionFactors,
    DecisionResult,
)
from lesson_judge.models.judge import (
    IssueSeverity,
    JudgeConfidence,
    JudgeIssue,
    JudgeRecommendation,
    JudgeVerdict,
)
from lesson_judge.models.lesson import LessonContentBody

logger = logging.getLogger(__name__)

SECTION_REFERENCE_PATTERN = re.compile(r"section\s*(\d+)", re.IGNORECASE)
OTHER_LOCATIONS = ("intro", "conclusion", "exercise", "example")

# Share of the estimate attributed to numbered sections vs. other locations
SECTION_SHARE = 70
OTHER_LOCATION_SHARE = 30
MAX_OTHER_LOCATIONS = 3


# ============================================================================
# Helpers
# ============================================================================


def calculate_content_affected_percentage(issues: List[JudgeIssue], total_sections: int) -> float:
    """Estimate the share of the lesson touched by the reported issues.

    Numbered section references ("section 2") account for up to 70 points,
    relative to ``total_sections``. Mentions of the intro, conclusion,
    exercises, or examples account for up to 30 points. When issues exist
    the result is kept strictly inside (0, 100).

    Args:
        issues: Judge issues with free-text locations
        total_sections: Number of content sections in the lesson

    Returns:
        Percentage in [0, 100]; 0 when there are no issues or no sections

    Raises:
        ValueError: If ``total_sections`` is negative
    """
    if total_sections < 0:
        raise ValueError(f"total_sections must be >= 0, got {total_sections}")
    if not issues or total_sections == 0:
        return 0.0

    affected_sections = set()
    affected_locations = set()
    for issue in issues:
        location = issue.location.lower()
        match = SECTION_REFERENCE_PATTERN.search(location)
        if match:
            affected_sections.add(match.group(1))
        for name in OTHER_LOCATIONS:
            if name in location:
                affected_locations.add(name)

    section_part = min(len(affected_sections) / total_sections, 1.0) * SECTION_SHARE
    other_part = (
        min(len(affected_locations), MAX_OTHER_LOCATIONS) / MAX_OTHER_LOCATIONS
    ) * OTHER_LOCATION_SHARE
    return max(1.0, min(99.0, section_part + other_part))


def count_issues_by_severity(issues: List[JudgeIssue]) -> Dict[IssueSeverity, int]:
    counts = {severity: 0 for severity in IssueSeverity}
    for issue in issues:
        counts[issue.severity] += 1
    return counts


def _issue_summary(issues: List[JudgeIssue]) -> str:
    counts = count_issues_by_severity(issues)
    parts = [
        f"{counts[severity]} {severity.value}"
        for severity in (IssueSeverity.CRITICAL, IssueSeverity.MAJOR, IssueSeverity.MINOR)
        if counts[severity]
    ]
    if not parts:
        return "No issues identified"
    return f"{', '.join(parts)} issues found"


def build_regeneration_feedback(issues: List[JudgeIssue], score: float) -> str:
    """Render regeneration feedback grouped by criterion.

    Criteria with a critical issue come first, then by number of issues.

    Args:
        issues: Issues from the judge verdict
        score: Score of the rejected generation

    Returns:
        Markdown feedback for the regeneration prompt
    """
    by_criterion: Dict[str, List[JudgeIssue]] = {}
    for issue in issues:
        by_criterion.setdefault(issue.criterion.value, []).append(issue)

    ordered = sorted(
        by_criterion.items(),
        key=lambda item: (
            not any(i.severity == IssueSeverity.CRITICAL for i in item[1]),
            -len(item[1]),
        ),
    )

    lines = [
        f"## Previous Generation Quality: {score * 100:.1f}%",
        "",
        "## Key Issues to Address in Regeneration:",
    ]
    for criterion, criterion_issues in ordered:
        lines.append("")
        lines.append(f"### {criterion.replace('_', ' ').upper()}")
        for issue in criterion_issues:
            lines.append(f"- [{issue.severity.value.upper()}] {issue.description}")
            lines.append(f"  Fix: {issue.suggested_fix}")

    lines.extend(
        [
            "",
            "## Regeneration Guidelines:",
            "1. Focus on addressing the critical and major issues above",
            "2. Ensure all learning objectives are properly addressed",
            "3. Maintain consistent terminology and style",
            "4. Include sufficient examples and exercises",
        ]
    )
    return "\n".join(lines)


def action_to_recommendation(action: DecisionAction) -> JudgeRecommendation:
    """Map a decision action onto the judge recommendation vocabulary."""
    if action == DecisionAction.TARGETED_FIX:
        return JudgeRecommendation.ACCEPT_WITH_MINOR_REVISION
    return JudgeRecommendation(action.value)


# ============================================================================
# Decision
# ============================================================================


def make_decision(
    context: DecisionContext, thresholds: Optional[DecisionThresholds] = None
) -> DecisionResult:
    """Decide the next action for a judged lesson.

    Args:
        context: Score, confidence, issues, and iteration history
        thresholds: Score bands and iteration caps

    Returns:
        DecisionResult with action, reason, iteration budget, and factors
    """
    thresholds = thresholds or DecisionThresholds()
    score = context.score
    issues = context.issues
    iterations = context.iteration_count
    pct = f"{score * 100:.1f}%"
    confidence_label = context.confidence.value.upper()

    logger.debug(
        f"Making decision: score={score:.3f}, confidence={context.confidence.value}, "
        f"issues={len(issues)}, iteration={iterations}, "
        f"content_affected={context.content_affected_percentage:.0f}%, "
        f"previous_scores={context.previous_scores}"
    )

    if context.confidence == JudgeConfidence.LOW:
        result = DecisionResult(
            action=DecisionAction.ESCALATE_TO_HUMAN,
            reason="Judge confidence is low, manual review required for reliable assessment",
            max_iterations=0,
            target_score=thresholds.refinement_target,
            factors=DecisionFactors(
                score_threshold=f"Score: {pct}",
                issue_analysis=f"{len(issues)} issues identified",
                confidence_level="LOW - requires human validation",
                iteration_history=f"{iterations} iterations completed",
            ),
        )

    elif score >= thresholds.accept:
        result = DecisionResult(
            action=DecisionAction.ACCEPT,
            reason=(
                f"Quality score ({pct}) meets acceptance threshold "
                f"({thresholds.accept * 100:.0f}%)"
            ),
            max_iterations=0,
            target_score=score,
            factors=DecisionFactors(
                score_threshold=f"Score: {pct} >= {thresholds.accept * 100:.0f}%",
                issue_analysis=(
                    f"{len(issues)} minor issues (not blocking)" if issues else "No issues found"
                ),
                confidence_level=confidence_label,
                iteration_history=f"{iterations} iterations completed",
            ),
        )

    elif iterations >= thresholds.max_iterations:
        result = _decide_exhausted(context, thresholds)

    elif score >= thresholds.targeted_fix:
        affected = context.content_affected_percentage
        remaining = thresholds.max_iterations - iterations
        band = (
            f"Score: {pct} in high quality range "
            f"({thresholds.targeted_fix * 100:.0f}-{thresholds.accept * 100:.0f}%)"
        )
        if affected < thresholds.localized_issue_percentage:
            result = DecisionResult(
                action=DecisionAction.TARGETED_FIX,
                reason=(
                    f"Quality ({pct}) with localized issues ({affected:.0f}% affected), "
                    f"1 targeted fix iteration recommended"
                ),
                max_iterations=1,
                target_score=thresholds.accept,
                factors=DecisionFactors(
                    score_threshold=band,
                    issue_analysis=(
                        f"{affected:.0f}% content affected "
                        f"(< {thresholds.localized_issue_percentage:.0f}% threshold)"
                    ),
                    confidence_level=confidence_label,
                    iteration_history=f"{iterations} iterations completed",
                ),
            )
        else:
            result = DecisionResult(
                action=DecisionAction.ITERATIVE_REFINEMENT,
                reason=(
                    f"Quality ({pct}) with widespread issues ({affected:.0f}% affected), "
                    f"iterative refinement recommended"
                ),
                max_iterations=remaining,
                target_score=thresholds.accept,
                factors=DecisionFactors(
                    score_threshold=band,
                    issue_analysis=(
                        f"{affected:.0f}% content affected "
                        f"(>= {thresholds.localized_issue_percentage:.0f}% threshold)"
                    ),
                    confidence_level=confidence_label,
                    iteration_history=f"{iterations} iterations, {remaining} remaining",
                ),
            )

    elif score >= thresholds.regenerate:
        remaining = thresholds.max_iterations - iterations
        result = DecisionResult(
            action=DecisionAction.ITERATIVE_REFINEMENT,
            reason=(
                f"Quality ({pct}) requires iterative refinement to reach target "
                f"({thresholds.refinement_target * 100:.0f}%)"
            ),
            max_iterations=remaining,
            target_score=thresholds.refinement_target,
            factors=DecisionFactors(
                score_threshold=(
                    f"Score: {pct} in medium quality range "
                    f"({thresholds.regenerate * 100:.0f}-{thresholds.targeted_fix * 100:.0f}%)"
                ),
                issue_analysis=_issue_summary(issues),
                confidence_level=confidence_label,
                iteration_history=f"{iterations} iterations, {remaining} remaining",
            ),
        )

    else:
        result = DecisionResult(
            action=DecisionAction.REGENERATE,
            reason=(
                f"Quality ({pct}) below minimum threshold "
                f"({thresholds.regenerate * 100:.0f}%), regeneration required"
            ),
            max_iterations=0,
            target_score=thresholds.refinement_target,
            feedback_for_regeneration=build_regeneration_feedback(issues, score),
            factors=DecisionFactors(
                score_threshold=f"Score: {pct} < {thresholds.regenerate * 100:.0f}% minimum",
                issue_analysis=_issue_summary(issues),
                confidence_level=confidence_label,
                iteration_history=f"{iterations} iterations (regeneration recommended)",
            ),
        )

    logger.info(
        f"Decision made: action={result.action.value}, score={score:.3f}, "
        f"iteration={iterations}, max_iterations={result.max_iterations}"
    )
    return result


def _decide_exhausted(context: DecisionContext, thresholds: DecisionThresholds) -> DecisionResult:
    """Decision once the refinement budget is used up."""
    score = context.score
    issues = context.issues
    iterations = context.iteration_count
    pct = f"{score * 100:.1f}%"
    confidence_label = context.confidence.value.upper()

    if context.previous_scores:
        improvement = score - context.previous_scores[-1]
        if improvement < thresholds.min_improvement:
            return DecisionResult(
                action=DecisionAction.ACCEPT,
                reason=(
                    "Max iterations reached with diminishing returns, "
                    "accepting current quality level"
                ),
                max_iterations=0,
                target_score=score,
                factors=DecisionFactors(
                    score_threshold=f"Score: {pct}",
                    issue_analysis=f"{len(issues)} issues remaining",
                    confidence_level=confidence_label,
                    iteration_history=(
                        f"{iterations} iterations, improvement stalled ({improvement:+.3f})"
                    ),
                ),
            )

    target = thresholds.refinement_target
    if score < target:
        return DecisionResult(
            action=DecisionAction.REGENERATE,
            reason=(
                f"Quality ({pct}) still below target ({target * 100:.0f}%) "
                f"after {iterations} iterations"
            ),
            max_iterations=0,
            target_score=target,
            feedback_for_regeneration=build_regeneration_feedback(issues, score),
            factors=DecisionFactors(
                score_threshold=f"Score: {pct} < {target * 100:.0f}% target",
                issue_analysis=_issue_summary(issues),
                confidence_level=confidence_label,
                iteration_history=f"{iterations} iterations exhausted",
            ),
        )

    return DecisionResult(
        action=DecisionAction.ACCEPT,
        reason=f"Max iterations reached, quality ({pct}) acceptable",
        max_iterations=0,
        target_score=score,
        factors=DecisionFactors(
            score_threshold=f"Score: {pct}",
            issue_analysis=f"{len(issues)} issues remaining",
            confidence_level=confidence_label,
            iteration_history=f"{iterations} iterations completed",
        ),
    )


def make_decision_from_verdict(
    verdict: JudgeVerdict,
    content: LessonContentBody,
    iteration_count: int = 0,
    previous_scores: Optional[List[float]] = None,
    thresholds: Optional[DecisionThresholds] = None,
) -> DecisionResult:
    """Build a DecisionContext from a verdict and decide.

    Args:
        verdict: Judge verdict for the current draft
        content: The judged lesson body (its section count scales the affected estimate)
        iteration_count: Refinement iterations already completed
        previous_scores: Scores of earlier iterations, oldest first
        thresholds: Score bands and iteration caps

    Returns:
        DecisionResult
    """
    total_sections = len(content.sections)
    context = DecisionContext(
        score=verdict.overall_score,
        confidence=verdict.confidence,
        issues=verdict.issues,
        iteration_count=iteration_count,
        previous_scores=list(previous_scores or []),
        content_affected_percentage=calculate_content_affected_percentage(
            verdict.issues, total_sections
        ),
        total_sections=total_sections,
    )
    return make_decision(context, thresholds)
