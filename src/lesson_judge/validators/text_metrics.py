"""Text measurement helpers shared by the heuristic checks.

Readability uses the Flesch-Kincaid formulas with a vowel-group syllable
estimate. The estimate is known to miscount irregular words (``algorithm``
counts as 3), which is acceptable for a coarse pre-filter. Sentences are
split with NLTK's Punkt tokenizer.
"""

import logging
import re
from typing import Callable, List, Optional

import nltk
from nltk.tokenize import PunktSentenceTokenizer, sent_tokenize

from lesson_judge.models.lesson import LessonContentBody

logger = logging.getLogger(__name__)

ASCII_WORD_PATTERN = re.compile(r"\b[a-zA-Z]+\b", re.ASCII)
UNICODE_WORD_PATTERN = re.compile(r"[^\W\d_]+")
VOWEL_GROUP_PATTERN = re.compile(r"[aeiouy]+")
CODE_BLOCK_PATTERN = re.compile(r"```.*?```", re.DOTALL)
INLINE_CODE_PATTERN = re.compile(r"`[^`]*`")
LINK_PATTERN = re.compile(r"\[([^\]]*)\]\([^)]*\)")


def _load_sentence_tokenizer() -> Callable[[str], List[str]]:
    """Pretrained English Punkt model, fetched once if missing."""
    try:
        nltk.data.find("tokenizers/punkt_tab")
    except LookupError:
        nltk.download("punkt_tab", quiet=True)

    try:
        sent_tokenize("Punkt is ready.")
    except LookupError:
        logger.warning("NLTK punkt_tab model unavailable, using an untrained Punkt tokenizer")
        return PunktSentenceTokenizer().tokenize
    return sent_tokenize


_tokenize_sentences = _load_sentence_tokenizer()


def count_syllables(word: str) -> int:
    """Estimate syllables in an English word.

    Args:
        word: Word to analyze

    Returns:
        Estimated syllable count (0 for words with no letters, otherwise >= 1)
    """
    clean = re.sub(r"[^a-z]", "", word.lower())
    if not clean:
        return 0
    if len(clean) <= 3:
        return 1

    count = len(VOWEL_GROUP_PATTERN.findall(clean))

    # Silent trailing 'e'
    if clean.endswith("e") and not clean.endswith("le"):
        count = max(1, count - 1)

    if clean.endswith(("es", "ed")):
        if not re.search(r"[aeiouy]$", clean[:-2]):
            count = max(1, count - 1)

    return max(1, count)


def extract_words(text: str, language: str = "en") -> List[str]:
    """Extract words, ASCII letters only for English and any script otherwise."""
    if language.lower() in ("en", "english"):
        return ASCII_WORD_PATTERN.findall(text)
    return UNICODE_WORD_PATTERN.findall(text)


def split_sentences(text: str) -> List[str]:
    """Split text into sentences, dropping empty pieces."""
    return [sentence for sentence in _tokenize_sentences(text) if sentence.strip()]


def _readability_inputs(text: str):
    sentence_count = max(1, len(split_sentences(text)))
    words = extract_words(text)
    word_count = max(1, len(words))
    syllable_count = sum(count_syllables(word) for word in words)
    return sentence_count, word_count, syllable_count


def flesch_kincaid_grade(text: str) -> float:
    """Flesch-Kincaid grade level clamped to [1, 20].

    Empty text never divides by zero; sentence and word counts floor at 1.
    """
    sentences, words, syllables = _readability_inputs(text)
    grade = 0.39 * (words / sentences) + 11.8 * (syllables / words) - 15.59
    return max(1.0, min(20.0, grade))


def flesch_reading_ease(text: str) -> float:
    """Flesch reading ease clamped to [0, 100]."""
    sentences, words, syllables = _readability_inputs(text)
    ease = 206.835 - 1.015 * (words / sentences) - 84.6 * (syllables / words)
    return max(0.0, min(100.0, ease))


def render_lesson_markdown(content: LessonContentBody, title: Optional[str] = None) -> str:
    """Render a structured lesson body as a single markdown document.

    Args:
        content: Lesson content body
        title: Optional lesson title rendered as the H1 heading

    Returns:
        Markdown text ending with a single newline, or an empty string when
        the body has no content at all
    """
    parts: List[str] = []
    if title:
        parts.append(f"# {title.strip()}")

    if content.intro.strip():
        parts.append("## Introduction")
        parts.append(content.intro.strip())

    for index, section in enumerate(content.sections, 1):
        parts.append(f"## {section.title.strip() or f'Section {index}'}")
        if section.content.strip():
            parts.append(section.content.strip())
        if section.citations:
            sources = [f"- Source: {citation.strip()}" for citation in section.citations]
            parts.append("\n".join(sources))

    if content.examples:
        parts.append("## Examples")
        for index, example in enumerate(content.examples, 1):
            parts.append(f"### {example.title.strip() or f'Example {index}'}")
            if example.content.strip():
                parts.append(example.content.strip())
            if example.code:
                language = example.code_language or ""
                parts.append(f"```{language}\n{example.code.rstrip()}\n```")

    if content.exercises:
        parts.append("## Exercises")
        for index, exercise in enumerate(content.exercises, 1):
            parts.append(f"### Exercise {index}")
            if exercise.question.strip():
                parts.append(exercise.question.strip())
            if exercise.hints:
                parts.append("\n".join(f"- Hint: {hint.strip()}" for hint in exercise.hints))
            if exercise.solution:
                parts.append(f"**Solution:** {exercise.solution.strip()}")
            if exercise.rubric:
                parts.append(f"**Rubric:** {exercise.rubric.strip()}")

    if not parts:
        return ""
    return "\n\n".join(parts) + "\n"


def extract_text_content(content: LessonContentBody, include_code: bool = True) -> str:
    """Join the authored text fields of a lesson body.

    Generated scaffolding (headings, labels) and citations are not included.

    Args:
        content: Lesson content body
        include_code: Include example code (default: True)

    Returns:
        Space-joined text of every non-empty field
    """
    parts: List[str] = [content.intro]
    for section in content.sections:
        parts.extend([section.title, section.content])
    for example in content.examples:
        parts.extend([example.title, example.content])
        if include_code and example.code:
            parts.append(example.code)
    for exercise in content.exercises:
        parts.append(exercise.question)
        parts.extend(exercise.hints)
        if exercise.solution:
            parts.append(exercise.solution)
        if exercise.rubric:
            parts.append(exercise.rubric)
    return " ".join(part for part in parts if part)


def strip_markdown(text: str) -> str:
    """Remove code, links, and markdown symbols for prose-only measurements."""
    text = CODE_BLOCK_PATTERN.sub(" ", text)
    text = INLINE_CODE_PATTERN.sub(" ", text)
    text = LINK_PATTERN.sub(r"\1", text)
    return re.sub(r"[#*_>\[\]~|-]", " ", text)
