"""
Command-line entry points.

- judge_lessons.py: Judge lesson bundles and write a JSON report (``lesson-judge``)
"""

__all__ = [
    "judge_lessons",
]
