"""
Shared utilities for lesson evaluation.

- llm_client.py: Instructor-wrapped OpenAI client with retry logic and token tracking
- file_io.py: JSON read/write and lesson bundle loading
- logging_config.py: Structured JSON logging, loguru intercept, and stage timing
"""

__all__ = [
    "llm_client",
    "file_io",
    "logging_config",
]
