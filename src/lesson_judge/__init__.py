"""
Lesson Content Judge & Decision Pipeline

Scores generated lesson drafts against their specification and decides
what happens next: accept, fix, refine, regenerate, or escalate.

**Version**: 0.1.0
**Key Dependencies**: instructor, openai, pydantic, langfuse, loguru, nltk
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
