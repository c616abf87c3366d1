"""File I/O for lesson bundles and evaluation reports.

A lesson bundle is one JSON file holding the specification, the candidate
content (structured body or raw markdown), and optionally the generation
log-probabilities and iteration history.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from lesson_judge.models.entropy import TokenLogprob
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification

logger = logging.getLogger(__name__)


class LessonBundle(BaseModel):
    """Input unit for batch evaluation."""

    specification: LessonSpecification
    content: Union[LessonContentBody, str]
    logprobs: Optional[List[TokenLogprob]] = Field(default=None)
    iteration_count: int = Field(default=0, ge=0)
    previous_scores: List[float] = Field(default_factory=list)


# ============================================================================
# JSON Functions
# ============================================================================


def read_json(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Read JSON file and return parsed dictionary.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    file_path = Path(file_path)
    logger.debug(f"Reading JSON from {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(
    data: Union[Dict[str, Any], List[Any]],
    file_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False,
) -> None:
    """Write data to a JSON file, creating parent directories as needed.

    Args:
        data: Data to write (dict or list)
        file_path: Path to output JSON file
        indent: Number of spaces for indentation (default: 2)
        ensure_ascii: If False, non-ASCII characters are preserved (default: False)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii)

    logger.info(f"Wrote JSON to {file_path}")


# ============================================================================
# Lesson bundles
# ============================================================================


def load_lesson_bundle(file_path: Union[str, Path]) -> LessonBundle:
    """Load and validate a lesson bundle.

    Raises:
        FileNotFoundError: If file doesn't exist
        pydantic.ValidationError: If the bundle doesn't match the schema
    """
    data = read_json(file_path)
    bundle = LessonBundle.model_validate(data)
    logger.debug(
        f"Loaded lesson bundle {bundle.specification.lesson_id} from {file_path} "
        f"(logprobs={'yes' if bundle.logprobs else 'no'})"
    )
    return bundle


def list_bundle_files(directory: Union[str, Path], pattern: str = "*.json") -> List[Path]:
    """Sorted bundle files in a directory (non-recursive).

    Returns an empty list when the directory doesn't exist.
    """
    directory = Path(directory)
    if not directory.exists():
        logger.warning(f"Directory does not exist: {directory}")
        return []

    files = sorted(f for f in directory.glob(pattern) if f.is_file())
    logger.debug(f"Found {len(files)} files in {directory} matching '{pattern}'")
    return files
