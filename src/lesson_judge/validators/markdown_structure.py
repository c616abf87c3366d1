"""Markdown structure validation for generated lessons.

Rule-based lint over raw markdown with a fixed severity taxonomy:

- critical: MD001 heading-increment, MD025 single-title
- major: MD045 no-alt-text, MD040 fenced-code-language
- minor (auto-fixable): MD009 no-trailing-spaces, MD010 no-hard-tabs,
  MD012 no-multiple-blanks, MD004 ul-style, MD047 single-trailing-newline

Auto-fixable issues are corrected and recorded in ``auto_fixed_rules``;
they carry no score penalty and never fail the gate.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from lesson_judge.models.heuristics import MarkdownIssue, MarkdownStructureResult
from lesson_judge.models.judge import IssueSeverity, JudgeCriterion, JudgeIssue

logger = logging.getLogger(__name__)

SEVERITY_PENALTIES: Dict[IssueSeverity, int] = {
    IssueSeverity.CRITICAL: 10,
    IssueSeverity.MAJOR: 3,
    IssueSeverity.MINOR: 1,
}

# rule id -> (alias, description, severity, auto-fixable)
RULES: Dict[str, Tuple[str, str, IssueSeverity, bool]] = {
    "MD001": (
        "heading-increment",
        "Heading levels should only increment by one level at a time",
        IssueSeverity.CRITICAL,
        False,
    ),
    "MD025": (
        "single-title",
        "Multiple top-level headings in the same document",
        IssueSeverity.CRITICAL,
        False,
    ),
    "MD045": (
        "no-alt-text",
        "Images should have alternate text (alt text)",
        IssueSeverity.MAJOR,
        False,
    ),
    "MD040": (
        "fenced-code-language",
        "Fenced code blocks should have a language specified",
        IssueSeverity.MAJOR,
        False,
    ),
    "MD009": ("no-trailing-spaces", "Trailing spaces", IssueSeverity.MINOR, True),
    "MD010": ("no-hard-tabs", "Hard tabs", IssueSeverity.MINOR, True),
    "MD012": ("no-multiple-blanks", "Multiple consecutive blank lines", IssueSeverity.MINOR, True),
    "MD004": ("ul-style", "Unordered list style", IssueSeverity.MINOR, True),
    "MD047": (
        "single-trailing-newline",
        "Files should end with a single newline character",
        IssueSeverity.MINOR,
        True,
    ),
}

RULE_TO_CRITERION: Dict[str, JudgeCriterion] = {
    "MD001": JudgeCriterion.PEDAGOGICAL_STRUCTURE,
    "MD025": JudgeCriterion.PEDAGOGICAL_STRUCTURE,
    "MD045": JudgeCriterion.COMPLETENESS,
}

SUGGESTED_FIXES: Dict[str, str] = {
    "MD001": (
        "Adjust heading level to maintain proper hierarchy. Headings should increment "
        "by one level (h1 -> h2 -> h3), not skip levels (h1 -> h3)."
    ),
    "MD025": (
        "Remove duplicate H1 headings. The document should have only one top-level "
        "heading (# Title)."
    ),
    "MD045": (
        "Add descriptive alt text to this image for accessibility. "
        "Format: ![Alt text description](image-url)."
    ),
    "MD040": (
        "Add a language identifier to the code fence (e.g. ```python) to enable "
        "syntax highlighting."
    ),
    "MD004": "Use consistent list markers for every unordered list.",
    "MD009": "Remove trailing spaces at the end of this line. (This should be auto-fixed)",
    "MD010": "Replace hard tabs with spaces. (This should be auto-fixed)",
    "MD012": (
        "Reduce multiple consecutive blank lines to a single blank line. "
        "(This should be auto-fixed)"
    ),
    "MD047": "Add a single newline at the end of the file. (This should be auto-fixed)",
}

HEADING_PATTERN = re.compile(r"^ {0,3}(#{1,6})(?:\s+(.*?))?\s*#*\s*$")
FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})\s*([^\s`]*)")
IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]*)\)")
LIST_MARKER_PATTERN = re.compile(r"^(\s*)([-*+])(\s+)")
TAB_WIDTH = 4


def _make_issue(
    rule_id: str,
    line_number: int,
    context: Optional[str] = None,
    detail: Optional[str] = None,
) -> MarkdownIssue:
    alias, description, severity, fixable = RULES[rule_id]
    return MarkdownIssue(
        rule_id=rule_id,
        rule_name=alias,
        line_number=line_number,
        severity=severity,
        description=description,
        detail=detail,
        context=context[:80] if context else None,
        auto_fixable=fixable,
    )


def _trailing_whitespace(line: str) -> str:
    return line[len(line.rstrip(" \t")):]


def _is_bad_trailing(line: str) -> bool:
    """Trailing whitespace other than a two-space hard line break."""
    trailing = _trailing_whitespace(line)
    return bool(trailing) and (trailing != "  " or not line.strip())


def _closes_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return len(stripped) >= len(fence) and set(stripped) == {fence[0]}


def mask_code_blocks(content: str) -> str:
    """Blank out fenced code blocks, fence lines included.

    Line count is preserved. An unclosed fence runs to the end of the
    document.
    """
    masked: List[str] = []
    fence: Optional[str] = None
    for line in content.split("\n"):
        if fence is not None:
            if _closes_fence(line, fence):
                fence = None
            masked.append("")
            continue
        fence_match = FENCE_PATTERN.match(line)
        if fence_match:
            fence = fence_match.group(1)
            masked.append("")
            continue
        masked.append(line)
    return "\n".join(masked)


def lint_markdown(content: str) -> List[MarkdownIssue]:
    """Run every rule over the content and return issues in line order.

    Args:
        content: Raw markdown text

    Returns:
        List of MarkdownIssue objects (empty for empty content)
    """
    if not content:
        return []

    issues: List[MarkdownIssue] = []
    lines = content.split("\n")
    fence: Optional[str] = None
    previous_level: Optional[int] = None
    h1_count = 0
    blank_run = 0
    list_marker: Optional[str] = None

    for index, line in enumerate(lines, 1):
        fence_match = FENCE_PATTERN.match(line)
        if fence is not None:
            # Inside a code block only the closing fence matters
            if _closes_fence(line, fence):
                fence = None
            continue

        if fence_match:
            fence = fence_match.group(1)
            if not fence_match.group(2):
                issues.append(_make_issue("MD040", index, context=line))
            blank_run = 0
            continue

        if not line.strip():
            blank_run += 1
            if blank_run > 1 and index < len(lines):
                issues.append(
                    _make_issue(
                        "MD012", index, detail=f"Expected: 1; Actual: {blank_run}"
                    )
                )
            if line:
                issues.append(_make_issue("MD009", index))
            continue
        blank_run = 0

        if _is_bad_trailing(line):
            issues.append(_make_issue("MD009", index, context=line))

        if "\t" in line:
            issues.append(_make_issue("MD010", index, context=line))

        heading = HEADING_PATTERN.match(line)
        if heading:
            level = len(heading.group(1))
            if previous_level is not None and level > previous_level + 1:
                issues.append(
                    _make_issue(
                        "MD001",
                        index,
                        context=line.strip(),
                        detail=f"Expected: h{previous_level + 1}; Actual: h{level}",
                    )
                )
            if level == 1:
                h1_count += 1
                if h1_count > 1:
                    issues.append(_make_issue("MD025", index, context=line.strip()))
            previous_level = level
            continue

        marker = LIST_MARKER_PATTERN.match(line)
        if marker:
            if list_marker is None:
                list_marker = marker.group(2)
            elif marker.group(2) != list_marker:
                issues.append(
                    _make_issue(
                        "MD004",
                        index,
                        context=line.strip(),
                        detail=f"Expected: {list_marker}; Actual: {marker.group(2)}",
                    )
                )

        for image in IMAGE_PATTERN.finditer(line):
            if not image.group(1).strip():
                issues.append(_make_issue("MD045", index, context=image.group(0)))

    if not content.endswith("\n") or content.endswith("\n\n"):
        issues.append(_make_issue("MD047", len(lines)))

    return issues


def apply_markdown_auto_fixes(content: str) -> Tuple[str, List[str]]:
    """Apply cosmetic fixes for the auto-fixable rules.

    Args:
        content: Raw markdown text

    Returns:
        Tuple of (fixed content, sorted list of rule ids that were fixed)
    """
    issues = lint_markdown(content)
    fixable_rules = sorted({issue.rule_id for issue in issues if issue.auto_fixable})
    if not fixable_rules:
        return content, []

    lines = content.split("\n")
    fixed: List[str] = []
    fence: Optional[str] = None
    list_marker: Optional[str] = None

    for line in lines:
        fence_match = FENCE_PATTERN.match(line)
        if fence is not None:
            if _closes_fence(line, fence):
                fence = None
            fixed.append(line)
            continue
        if fence_match:
            fence = fence_match.group(1)
            fixed.append(line)
            continue

        if "MD010" in fixable_rules:
            line = line.replace("\t", " " * TAB_WIDTH)
        if "MD009" in fixable_rules:
            if _is_bad_trailing(line):
                line = line.rstrip(" \t")
        if "MD012" in fixable_rules and not line.strip() and fixed and not fixed[-1].strip():
            continue
        if "MD004" in fixable_rules and not HEADING_PATTERN.match(line):
            marker = LIST_MARKER_PATTERN.match(line)
            if marker:
                if list_marker is None:
                    list_marker = marker.group(2)
                elif marker.group(2) != list_marker:
                    line = f"{marker.group(1)}{list_marker}{marker.group(3)}{line[marker.end():]}"
        fixed.append(line)

    result = "\n".join(fixed)
    if "MD047" in fixable_rules:
        result = result.rstrip("\n") + "\n"

    return result, fixable_rules


def validate_markdown_structure(content: str) -> MarkdownStructureResult:
    """Validate markdown structure and score it.

    Score starts at 1.0 and loses a fixed penalty per unresolved issue
    (critical 10, major 3, minor 1, out of 100). Auto-fixed issues are
    resolved and cost nothing.

    Args:
        content: Raw markdown text

    Returns:
        MarkdownStructureResult with issues, score, and the auto-fixed content
    """
    issues = lint_markdown(content)
    fixed_content, fixed_rules = apply_markdown_auto_fixes(content)

    penalty = sum(
        SEVERITY_PENALTIES[issue.severity] for issue in issues if not issue.auto_fixable
    )
    score = max(0.0, min(1.0, 1 - penalty / 100))
    passed = not any(
        issue.severity in (IssueSeverity.CRITICAL, IssueSeverity.MAJOR) for issue in issues
    )

    result = MarkdownStructureResult(
        passed=passed,
        score=score,
        issues=issues,
        auto_fixed_rules=fixed_rules,
        fixed_content=fixed_content,
    )

    logger.debug(
        f"Markdown structure validated: score={score:.3f}, issues={len(issues)}, "
        f"critical={len(result.critical_issues)}, major={len(result.major_issues)}, "
        f"auto_fixed={fixed_rules}"
    )
    return result


def to_judge_issue(issue: MarkdownIssue, section_id: Optional[str] = None) -> JudgeIssue:
    """Convert a lint finding into a JudgeIssue for the refinement patcher.

    Args:
        issue: Markdown lint issue
        section_id: Optional section identifier appended to the location

    Returns:
        JudgeIssue with criterion, location, and suggested fix
    """
    location = f"Line {issue.line_number}"
    if section_id:
        location = f"{location} ({section_id})"

    description = issue.description
    if issue.detail:
        description = f"{description}: {issue.detail}"

    return JudgeIssue(
        criterion=RULE_TO_CRITERION.get(issue.rule_id, JudgeCriterion.CLARITY_READABILITY),
        severity=issue.severity,
        location=location,
        description=description,
        quoted_text=issue.context,
        suggested_fix=SUGGESTED_FIXES.get(issue.rule_id, f"Fix {issue.rule_name} violation."),
    )


def to_judge_issues(result: MarkdownStructureResult) -> List[JudgeIssue]:
    """JudgeIssues for every issue that was not auto-fixed."""
    return [to_judge_issue(issue) for issue in result.issues if not issue.auto_fixable]
