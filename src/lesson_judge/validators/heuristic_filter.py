"""Heuristic pre-filter for generated lesson content.

First stage of the evaluation cascade: cheap, deterministic checks that
reject obviously deficient drafts before any model judge is paid for.

Checks:
1. Word count within [min, max]
2. Flesch-Kincaid grade within a band (English only)
3. Required section headings present
4. Keyword coverage from objectives and section constraints
5. Content density (words per section)
6. Markdown structure (weighted, critical issues always fail)
7. Learning objective coverage
8. Prohibited terms
9. Examples and exercises present (structured bodies only)

Each check contributes a weighted score and may emit a failure record.
The gate fails when any blocking failure is present.
"""

import logging
import re
import time
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from nltk.stem import PorterStemmer
from pydantic import BaseModel

from lesson_judge.config import HeuristicFilterConfig
from lesson_judge.models.heuristics import (
    FilterFailure,
    HeuristicFilterName,
    HeuristicFilterResult,
    HeuristicMetrics,
)
from lesson_judge.models.judge import IssueSeverity
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification
from lesson_judge.validators.markdown_structure import mask_code_blocks, validate_markdown_structure
from lesson_judge.validators.text_metrics import (
    extract_text_content,
    extract_words,
    flesch_kincaid_grade,
    flesch_reading_ease,
    render_lesson_markdown,
    split_sentences,
    strip_markdown,
)

logger = logging.getLogger(__name__)

COMMON_WORDS = frozenset(
    [
        "the", "and", "for", "that", "this", "with", "from", "have", "will",
        "been", "would", "could", "should", "into", "about", "more", "when",
        "than", "also", "only", "their", "which", "each", "other", "being",
        "able", "after", "before", "must", "need", "such", "what", "both",
    ]
)

BLOOM_VERBS = frozenset(
    [
        "understand", "explain", "describe", "identify", "demonstrate",
        "apply", "analyze", "create", "evaluate",
    ]
)

# Heading keywords accepted for each required section label
SECTION_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "introduction": ("introduction", "intro", "overview"),
    "conclusion": ("conclusion", "summary", "recap", "takeaway", "final thoughts", "wrap-up"),
}

HEADING_TEXT_PATTERN = re.compile(r"^ {0,3}#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)
SECTION_SPLIT_PATTERN = re.compile(r"^#+\s+", re.MULTILINE)
KEY_TERM_PATTERN = re.compile(r"\b[a-zA-Z]{4,}\b", re.ASCII)
WORD_PATTERN = re.compile(r"[a-z]+")

STEMMER = PorterStemmer()


class CheckResult(BaseModel):
    """Outcome of one heuristic check."""

    passed: bool
    score_contribution: float
    failure: Optional[FilterFailure] = None
    suggestion: Optional[str] = None


# ============================================================================
# Individual checks
# ============================================================================


def check_word_count(
    word_count: int, config: HeuristicFilterConfig, duration_minutes: Optional[int] = None
) -> CheckResult:
    """Check the total word count against the range for the lesson duration.

    Zero words is always critical, as is anything below half the minimum
    or above one and a half times the maximum.
    """
    minimum, maximum = config.word_count_range(duration_minutes)
    passed = minimum <= word_count <= maximum and word_count > 0

    if word_count < minimum or word_count == 0:
        score = word_count / minimum if minimum else 0.0
    elif word_count > maximum:
        score = max(0.0, 1 - (word_count - maximum) / maximum)
    else:
        score = 1.0

    if passed:
        return CheckResult(passed=True, score_contribution=score)

    critical = word_count == 0 or word_count < minimum * 0.5 or word_count > maximum * 1.5
    if word_count <= maximum:
        suggestion = (
            f"Content is too short ({word_count} words). Add more detail, examples, or "
            f"expand explanations to reach at least {minimum} words."
        )
    else:
        suggestion = (
            f"Content is too long ({word_count} words). Consider splitting into multiple "
            f"lessons or reducing redundancy to stay under {maximum} words."
        )
    return CheckResult(
        passed=False,
        score_contribution=score,
        failure=FilterFailure(
            filter=HeuristicFilterName.WORD_COUNT,
            severity=IssueSeverity.CRITICAL if critical else IssueSeverity.MAJOR,
            expected=f"{minimum}-{maximum} words",
            actual=f"{word_count} words",
        ),
        suggestion=suggestion,
    )


def check_readability(
    text: str, config: HeuristicFilterConfig
) -> Tuple[CheckResult, float, float]:
    """Check Flesch-Kincaid grade level against the target band.

    Returns:
        Tuple of (check result, grade level, reading ease). Grade and ease
        are 0 when readability is skipped for non-English content.
    """
    if not config.readability_enabled:
        return CheckResult(passed=True, score_contribution=1.0), 0.0, 0.0

    grade = flesch_kincaid_grade(text)
    ease = flesch_reading_ease(text)
    low, high, target = (
        config.flesch_kincaid_min,
        config.flesch_kincaid_max,
        config.flesch_kincaid_target,
    )

    max_deviation = max(target - low, high - target) or 1.0
    score = max(0.0, 1 - abs(grade - target) / max_deviation)

    if low <= grade <= high:
        return CheckResult(passed=True, score_contribution=score), grade, ease

    far_outside = grade < low - 2 or grade > high + 2
    if grade < low:
        suggestion = (
            f"Content readability is too simple (grade {grade:.1f}). Use more precise "
            f"vocabulary and fuller sentence structures."
        )
    else:
        suggestion = (
            f"Content readability is too complex (grade {grade:.1f}). Simplify sentences, "
            f"break up long paragraphs, and define technical terms."
        )
    result = CheckResult(
        passed=False,
        score_contribution=score,
        failure=FilterFailure(
            filter=HeuristicFilterName.FLESCH_KINCAID,
            severity=IssueSeverity.MAJOR if far_outside else IssueSeverity.MINOR,
            expected=f"grade {low:g}-{high:g}",
            actual=f"grade {grade:.1f}",
            blocking=far_outside,
        ),
        suggestion=suggestion,
    )
    return result, grade, ease


def find_headings(text: str) -> List[str]:
    """Lowercased text of every ATX heading outside fenced code."""
    masked = mask_code_blocks(text)
    return [match.group(1).lower() for match in HEADING_TEXT_PATTERN.finditer(masked)]


def check_section_headers(
    text: str, required_sections: Iterable[str]
) -> Tuple[CheckResult, List[str], List[str]]:
    """Check that each required section label appears in a heading.

    Returns:
        Tuple of (check result, found sections, missing sections)
    """
    required = list(required_sections)
    headings = find_headings(text)
    found: List[str] = []
    missing: List[str] = []

    for section in required:
        label = section.lower()
        accepted = SECTION_SYNONYMS.get(label, (label,))
        if any(term in heading for heading in headings for term in accepted):
            found.append(section)
        else:
            missing.append(section)

    score = len(found) / len(required) if required else 1.0
    if not missing:
        return CheckResult(passed=True, score_contribution=score), found, missing

    result = CheckResult(
        passed=False,
        score_contribution=score,
        failure=FilterFailure(
            filter=HeuristicFilterName.SECTION_HEADERS,
            severity=(
                IssueSeverity.CRITICAL if len(missing) > len(required) / 2 else IssueSeverity.MAJOR
            ),
            expected=", ".join(required),
            actual=", ".join(found) or "none",
        ),
        suggestion=(
            f"Missing required sections: {', '.join(missing)}. "
            f"Add these sections to improve content structure."
        ),
    )
    return result, found, missing


def _stems(text: str) -> Set[str]:
    """Porter stems of the distinct words in the text."""
    return {STEMMER.stem(word) for word in set(WORD_PATTERN.findall(text.lower()))}


def _keyword_present(keyword: str, lowered: str, text_stems: Set[str]) -> bool:
    """Substring match, or every word of the keyword present by stem."""
    if keyword in lowered:
        return True
    keyword_stems = _stems(keyword)
    return bool(keyword_stems) and keyword_stems <= text_stems


def extract_keywords_from_spec(spec: LessonSpecification) -> List[str]:
    """Keywords from objectives (minus filler and Bloom verbs) plus required keywords.

    Args:
        spec: Lesson specification

    Returns:
        Ordered, de-duplicated list of lowercase keywords
    """
    keywords: Dict[str, None] = {}
    for objective in spec.learning_objectives:
        for word in KEY_TERM_PATTERN.findall(objective.objective.lower()):
            if word not in COMMON_WORDS and word not in BLOOM_VERBS:
                keywords[word] = None
    for section in spec.sections:
        for keyword in section.constraints.required_keywords:
            if keyword.strip():
                keywords[keyword.strip().lower()] = None
    return list(keywords)


def check_keyword_coverage(
    text: str, keywords: List[str], threshold: float
) -> Tuple[CheckResult, float]:
    """Fraction of keywords (or their stems) present in the content.

    Returns:
        Tuple of (check result, coverage ratio)
    """
    if not keywords:
        return CheckResult(passed=True, score_contribution=1.0), 1.0

    lowered = text.lower()
    text_stems = _stems(lowered)
    missing = [kw for kw in keywords if not _keyword_present(kw, lowered, text_stems)]
    coverage = (len(keywords) - len(missing)) / len(keywords)

    if coverage >= threshold:
        return CheckResult(passed=True, score_contribution=coverage), coverage

    preview = ", ".join(missing[:5]) + ("..." if len(missing) > 5 else "")
    result = CheckResult(
        passed=False,
        score_contribution=coverage,
        failure=FilterFailure(
            filter=HeuristicFilterName.KEYWORD_COVERAGE,
            severity=IssueSeverity.CRITICAL if coverage < threshold / 2 else IssueSeverity.MAJOR,
            expected=f"{threshold:.0%}+",
            actual=f"{coverage:.0%}",
        ),
        suggestion=f"Low keyword coverage ({coverage:.0%}). Missing: {preview}",
    )
    return result, coverage


def check_content_density(
    text: str, threshold: float, language: str = "en"
) -> Tuple[CheckResult, float, int]:
    """Average words per markdown section.

    Returns:
        Tuple of (check result, average words per section, section count)
    """
    # Split outside code only; words are still counted from the full prose
    masked = mask_code_blocks(text)
    sections = [piece for piece in SECTION_SPLIT_PATTERN.split(masked) if piece.strip()]
    section_count = len(sections)
    total_words = len(extract_words(strip_markdown(text), language))
    average = total_words / max(1, section_count)

    score = min(1.0, average / threshold) if threshold else 1.0
    if average >= threshold:
        return CheckResult(passed=True, score_contribution=score), average, section_count

    major = average < threshold * 0.5
    result = CheckResult(
        passed=False,
        score_contribution=score,
        failure=FilterFailure(
            filter=HeuristicFilterName.CONTENT_DENSITY,
            severity=IssueSeverity.MAJOR if major else IssueSeverity.MINOR,
            expected=f"{threshold:g}+ words per section",
            actual=f"{round(average)} words per section",
            blocking=major,
        ),
        suggestion=(
            f"Sections are too sparse (avg {round(average)} words). Expand content with "
            f"more detail, examples, or explanations."
        ),
    )
    return result, average, section_count


def extract_key_terms(text: str) -> List[str]:
    """Words of four or more letters that are not filler words."""
    return [w for w in KEY_TERM_PATTERN.findall(text.lower()) if w not in COMMON_WORDS]


def check_learning_objective_coverage(
    text: str, spec: LessonSpecification, threshold: float
) -> Tuple[CheckResult, float, int, int]:
    """Check that each learning objective is individually addressed.

    An objective is covered when at least half of its key terms appear in
    the content.

    Returns:
        Tuple of (check result, coverage ratio, covered count, total count)
    """
    objectives = spec.learning_objectives
    if not objectives:
        return CheckResult(passed=True, score_contribution=1.0), 1.0, 0, 0

    lowered = text.lower()
    covered = 0
    for objective in objectives:
        terms = extract_key_terms(objective.objective)
        if not terms:
            covered += 1
            continue
        matched = sum(1 for term in terms if term in lowered)
        if matched / len(terms) >= 0.5:
            covered += 1

    coverage = covered / len(objectives)
    if coverage >= threshold:
        return (
            CheckResult(passed=True, score_contribution=coverage),
            coverage,
            covered,
            len(objectives),
        )

    major = coverage < 0.5
    result = CheckResult(
        passed=False,
        score_contribution=coverage,
        failure=FilterFailure(
            filter=HeuristicFilterName.LEARNING_OBJECTIVE_COVERAGE,
            severity=IssueSeverity.MAJOR if major else IssueSeverity.MINOR,
            expected=f"{threshold:.0%}+ of objectives",
            actual=f"{coverage:.0%}",
            blocking=major,
        ),
        suggestion=(
            f"Low learning objective coverage ({covered}/{len(objectives)} objectives). "
            f"Ensure content addresses each learning objective with relevant terms."
        ),
    )
    return result, coverage, covered, len(objectives)


def check_prohibited_terms(text: str, spec: LessonSpecification) -> Tuple[CheckResult, List[str]]:
    """Find prohibited terms declared by section constraints.

    Each violation costs 0.2 of this check's score; any violation is critical.

    Returns:
        Tuple of (check result, violated terms)
    """
    terms: Dict[str, None] = {}
    for section in spec.sections:
        for term in section.constraints.prohibited_terms:
            if term.strip():
                terms[term.strip()] = None

    lowered = text.lower()
    violations = [term for term in terms if term.lower() in lowered]
    score = max(0.0, 1 - len(violations) * 0.2)
    if not violations:
        return CheckResult(passed=True, score_contribution=score), violations

    logger.debug(f"Prohibited terms found in content: {violations}")
    listed = ", ".join(violations[:5])
    suffix = f" (+{len(violations) - 5} more)" if len(violations) > 5 else ""
    result = CheckResult(
        passed=False,
        score_contribution=score,
        failure=FilterFailure(
            filter=HeuristicFilterName.PROHIBITED_TERMS,
            severity=IssueSeverity.CRITICAL,
            expected="0 violations",
            actual=f"{len(violations)} violations",
        ),
        suggestion=(
            f"Content contains prohibited terms: {listed}{suffix}. "
            f"Remove or replace these terms to meet lesson constraints."
        ),
    )
    return result, violations


def check_examples_and_exercises(
    content: LessonContentBody, config: HeuristicFilterConfig
) -> List[CheckResult]:
    """Failures for too few worked examples or exercises."""
    results = []
    checks = (
        (HeuristicFilterName.EXAMPLES, len(content.examples), config.min_examples, "examples"),
        (HeuristicFilterName.EXERCISES, len(content.exercises), config.min_exercises, "exercises"),
    )
    for name, count, minimum, label in checks:
        if count >= minimum:
            continue
        results.append(
            CheckResult(
                passed=False,
                score_contribution=0.0,
                failure=FilterFailure(
                    filter=name,
                    severity=IssueSeverity.MAJOR,
                    expected=f"at least {minimum} {label}",
                    actual=f"{count} {label}",
                ),
                suggestion=f"Add at least {minimum} {label} to reinforce the lesson.",
            )
        )
    return results


# ============================================================================
# Main entry point
# ============================================================================


def run_heuristic_filters(
    content: Union[LessonContentBody, str],
    spec: LessonSpecification,
    config: Optional[HeuristicFilterConfig] = None,
) -> HeuristicFilterResult:
    """Run every heuristic check on a lesson draft.

    Pure and deterministic apart from ``duration_ms``. Degenerate content
    (empty string, no sections) never raises; it produces a failing result.

    Args:
        content: Structured lesson body or raw markdown
        spec: Lesson specification (keywords, objectives, constraints)
        config: Optional thresholds (defaults to HeuristicFilterConfig())

    Returns:
        HeuristicFilterResult with composite score, metrics, failures, and suggestions
    """
    start_time = time.perf_counter()
    config = config or HeuristicFilterConfig()
    weights = config.effective_weights()

    if isinstance(content, LessonContentBody):
        text = render_lesson_markdown(content, spec.title)
        # Measure authored fields only, not the rendered headings and labels
        prose = strip_markdown(extract_text_content(content, include_code=False))
    else:
        text = content or ""
        prose = strip_markdown(text)

    checks: List[CheckResult] = []
    weighted_score = 0.0

    word_count = len(extract_words(prose, config.language))
    duration = spec.estimated_duration_minutes
    minimum, maximum = config.word_count_range(duration)
    logger.debug(
        f"Word count range for {spec.lesson_id} ({duration} min): {minimum}-{maximum}, "
        f"actual {word_count}"
    )
    word_result = check_word_count(word_count, config, duration)
    checks.append(word_result)
    weighted_score += word_result.score_contribution * weights["word_count"]

    readability_result, grade, ease = check_readability(prose, config)
    checks.append(readability_result)
    weighted_score += readability_result.score_contribution * weights["flesch_kincaid"]

    sections_result, found_sections, missing_sections = check_section_headers(
        text, config.required_sections
    )
    checks.append(sections_result)
    weighted_score += sections_result.score_contribution * weights["section_headers"]

    keywords = extract_keywords_from_spec(spec)
    keyword_result, keyword_coverage = check_keyword_coverage(
        text, keywords, config.keyword_coverage_threshold
    )
    checks.append(keyword_result)
    weighted_score += keyword_result.score_contribution * weights["keyword_coverage"]

    density_result, density, section_count = check_content_density(
        text, config.content_density_threshold, config.language
    )
    checks.append(density_result)
    weighted_score += density_result.score_contribution * weights["content_density"]

    markdown_result = validate_markdown_structure(text)
    weighted_score += markdown_result.score * weights["markdown_structure"]
    if markdown_result.critical_issues:
        checks.append(
            CheckResult(
                passed=False,
                score_contribution=markdown_result.score,
                failure=FilterFailure(
                    filter=HeuristicFilterName.MARKDOWN_STRUCTURE,
                    severity=IssueSeverity.CRITICAL,
                    expected="No critical markdown errors",
                    actual=f"{len(markdown_result.critical_issues)} critical errors",
                ),
                suggestion=(
                    "Fix heading hierarchy: headings must not skip levels and the "
                    "document must have a single top-level heading."
                ),
            )
        )
    if markdown_result.major_issues:
        checks.append(
            CheckResult(
                passed=False,
                score_contribution=markdown_result.score,
                failure=FilterFailure(
                    filter=HeuristicFilterName.MARKDOWN_STRUCTURE,
                    severity=IssueSeverity.MAJOR,
                    expected="No major markdown errors",
                    actual=f"{len(markdown_result.major_issues)} major errors",
                    blocking=False,
                ),
                suggestion="Add alt text to images and language tags to code blocks.",
            )
        )

    objective_result, objective_coverage, covered, total_objectives = (
        check_learning_objective_coverage(text, spec, config.objective_coverage_threshold)
    )
    checks.append(objective_result)
    weighted_score += objective_result.score_contribution * weights["learning_objective_coverage"]

    prohibited_result, violations = check_prohibited_terms(text, spec)
    checks.append(prohibited_result)
    weighted_score += prohibited_result.score_contribution * weights["prohibited_terms"]

    examples_count: Optional[int] = None
    exercises_count: Optional[int] = None
    if isinstance(content, LessonContentBody):
        examples_count = len(content.examples)
        exercises_count = len(content.exercises)
        checks.extend(check_examples_and_exercises(content, config))

    failures = [check.failure for check in checks if check.failure is not None]
    suggestions = list(dict.fromkeys(check.suggestion for check in checks if check.suggestion))

    sentences = split_sentences(prose)
    avg_sentence_length = word_count / len(sentences) if sentences else 0.0

    score = max(0.0, min(1.0, weighted_score))
    passed = not any(failure.blocking for failure in failures)
    duration_ms = (time.perf_counter() - start_time) * 1000

    logger.info(
        f"Heuristic pre-filter complete: lesson_id={spec.lesson_id}, passed={passed}, "
        f"score={score:.3f}, failures={len(failures)}, "
        f"critical={sum(1 for f in failures if f.severity == IssueSeverity.CRITICAL)}, "
        f"duration_ms={duration_ms:.1f}"
    )

    return HeuristicFilterResult(
        passed=passed,
        score=score,
        metrics=HeuristicMetrics(
            word_count=word_count,
            flesch_kincaid_grade=grade,
            flesch_reading_ease=ease,
            readability_skipped=not config.readability_enabled,
            found_sections=found_sections,
            missing_sections=missing_sections,
            keyword_coverage=keyword_coverage,
            content_density=density,
            section_count=section_count,
            sentence_count=len(sentences),
            avg_sentence_length=avg_sentence_length,
            markdown_structure=markdown_result.to_metrics(),
            learning_objective_coverage=objective_coverage,
            covered_objectives=covered,
            total_objectives=total_objectives,
            prohibited_terms_violations=violations,
            examples_count=examples_count,
            exercises_count=exercises_count,
        ),
        failures=failures,
        suggestions=suggestions,
        duration_ms=duration_ms,
    )
