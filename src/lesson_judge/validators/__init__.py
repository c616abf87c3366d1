"""
Deterministic validators for generated lesson content.

- heuristic_filter.py: cheap pre-filter checks (length, readability, coverage)
- markdown_structure.py: markdown lint with auto-fix of cosmetic rules
- entropy_detector.py: token-entropy hallucination detection
- text_metrics.py: word, sentence, and readability helpers
"""

__all__ = [
    "heuristic_filter",
    "markdown_structure",
    "entropy_detector",
    "text_metrics",
]
