"""CLI for judging generated lessons.

Usage:
    lesson-judge --input bundles/ --output reports/judge_report.json

    # Heuristics and entropy only (no model calls)
    lesson-judge --input bundles/lesson_1.1.json --output report.json --heuristics-only

Each input file is a lesson bundle:
    {"specification": {...}, "content": {...} | "markdown", "logprobs": [...],
     "iteration_count": 0, "previous_scores": []}

Features:
- Full cascade (heuristics, single judge, voting) plus entropy and decision
- Parallel processing with ThreadPoolExecutor
- Progress bar with tqdm
- Token usage and cost summary
"""

import argparse
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from tqdm import tqdm

from lesson_judge import constants
from lesson_judge.config import (
    CascadeConfig,
    HeuristicFilterConfig,
    JudgeConfig,
    PipelineConfig,
)
from lesson_judge.exceptions import VotingError
from lesson_judge.judge.cascade_evaluator import CascadeEvaluator
from lesson_judge.judge.voting import JudgeVoter
from lesson_judge.pipeline import evaluate_lesson
from lesson_judge.utils.file_io import LessonBundle, list_bundle_files, load_lesson_bundle, write_json
from lesson_judge.utils.logging_config import configure_logging
from lesson_judge.validators.entropy_detector import analyze_content_entropy
from lesson_judge.validators.heuristic_filter import run_heuristic_filters
from lesson_judge.validators.text_metrics import render_lesson_markdown

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Judge generated lessons and decide the next action for each",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Judge every bundle in a directory
  lesson-judge --input output/lessons/ --output output/judge_report.json

  # Cheap pre-check without model calls
  lesson-judge --input output/lessons/ --output report.json --heuristics-only
        """,
    )

    parser.add_argument(
        "--input",
        required=True,
        type=Path,
        help="Lesson bundle JSON file or directory of bundle files",
    )
    parser.add_argument(
        "--output",
        required=True,
        type=Path,
        help="Path of the JSON report to write",
    )
    parser.add_argument(
        "--heuristics-only",
        action="store_true",
        help="Run heuristics and entropy analysis only (no model calls)",
    )
    parser.add_argument(
        "--language",
        default="en",
        help="Content language; readability is only scored for English (default: en)",
    )
    parser.add_argument(
        "--parallel",
        type=int,
        default=1,
        help="Number of lessons evaluated concurrently (default: 1)",
    )
    parser.add_argument(
        "--langfuse",
        action="store_true",
        help="Trace judge calls with Langfuse (requires LANGFUSE_* env vars)",
    )
    parser.add_argument(
        "--log-level",
        default=constants.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {constants.LOG_LEVEL})",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=constants.LOG_FORMAT == "json",
        help="Emit JSON log lines instead of human-readable output",
    )

    return parser.parse_args(argv)


def collect_bundle_files(path: Path) -> List[Path]:
    if path.is_dir():
        return list_bundle_files(path)
    return [path] if path.is_file() else []


def run_heuristics_only(bundle: LessonBundle, config: PipelineConfig) -> Dict[str, Any]:
    """Report entry for one bundle without model calls."""
    spec = bundle.specification
    heuristics = run_heuristic_filters(bundle.content, spec, config.cascade.heuristics)
    if isinstance(bundle.content, str):
        text = bundle.content
    else:
        text = render_lesson_markdown(bundle.content, spec.title)
    entropy = analyze_content_entropy(text, bundle.logprobs, config.entropy)
    return {
        "lesson_id": spec.lesson_id,
        "passed": heuristics.passed,
        "heuristics": heuristics.model_dump(mode="json"),
        "entropy": entropy.model_dump(mode="json"),
    }


def run_full_evaluation(
    bundle: LessonBundle, cascade: CascadeEvaluator, config: PipelineConfig
) -> Dict[str, Any]:
    """Report entry for one bundle through cascade, entropy, and decision."""
    result = evaluate_lesson(
        bundle.content,
        bundle.specification,
        cascade,
        logprobs=bundle.logprobs,
        iteration_count=bundle.iteration_count,
        previous_scores=bundle.previous_scores,
        config=config,
    )
    return {
        "lesson_id": result.lesson_id,
        "passed": result.cascade.passed,
        "action": result.decision.action.value,
        "evaluation": result.model_dump(mode="json"),
    }


def evaluate_file(
    file_path: Path,
    config: PipelineConfig,
    cascade: Optional[CascadeEvaluator],
) -> Dict[str, Any]:
    bundle = load_lesson_bundle(file_path)
    if cascade is None:
        entry = run_heuristics_only(bundle, config)
    else:
        entry = run_full_evaluation(bundle, cascade, config)
    entry["file"] = str(file_path)
    return entry


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    configure_logging(
        level=args.log_level,
        json_format=args.json_logs,
        console_output=True,
        use_loguru=not args.json_logs,
    )

    logger.info("=" * 80)
    logger.info("Lesson Judge")
    logger.info("=" * 80)
    logger.info(f"Input: {args.input}")
    logger.info(f"Output: {args.output}")
    logger.info(f"Mode: {'heuristics only' if args.heuristics_only else 'full cascade'}")
    logger.info(f"Language: {args.language}")
    if args.parallel > 1:
        logger.info(f"Parallel Workers: {args.parallel}")
    logger.info("=" * 80)

    files = collect_bundle_files(args.input)
    if not files:
        logger.error(f"No lesson bundles found at {args.input}")
        return 1

    heuristics_config = HeuristicFilterConfig(language=args.language)
    config = PipelineConfig(cascade=CascadeConfig(heuristics=heuristics_config))

    voter: Optional[JudgeVoter] = None
    cascade: Optional[CascadeEvaluator] = None
    if not args.heuristics_only:
        if not constants.OPENAI_API_KEY_SET:
            logger.error("OPENAI_API_KEY is not set; use --heuristics-only or configure the key")
            return 1
        judge_config = JudgeConfig.from_env()
        voter = JudgeVoter.from_config(judge_config, enable_langfuse=args.langfuse)
        cascade = CascadeEvaluator(voter, config=config.cascade)

    start_time = time.time()
    entries: List[Dict[str, Any]] = []
    failures: List[Dict[str, str]] = []

    with ThreadPoolExecutor(max_workers=max(1, args.parallel)) as executor:
        future_to_file = {
            executor.submit(evaluate_file, file_path, config, cascade): file_path
            for file_path in files
        }
        with tqdm(total=len(files), desc="Judging", unit="lesson") as pbar:
            for future in as_completed(future_to_file):
                file_path = future_to_file[future]
                try:
                    entries.append(future.result())
                except (ValidationError, ValueError, OSError, VotingError) as e:
                    logger.error(f"Failed to evaluate {file_path}: {e}")
                    failures.append({"file": str(file_path), "error": str(e)[:500]})
                pbar.update(1)

    entries.sort(key=lambda entry: entry["file"])
    elapsed = time.time() - start_time

    report: Dict[str, Any] = {
        "mode": "heuristics_only" if args.heuristics_only else "full",
        "total": len(files),
        "evaluated": len(entries),
        "passed": sum(1 for entry in entries if entry["passed"]),
        "failed_to_evaluate": failures,
        "lessons": entries,
    }
    if voter is not None:
        report["usage"] = [
            judge.llm_client.get_usage_summary()
            for judge in (voter.primary, voter.secondary, voter.tiebreaker)
        ]
    write_json(report, args.output)

    logger.info("\n" + "=" * 80)
    logger.info("JUDGING SUMMARY")
    logger.info("=" * 80)
    logger.info(f"Total lessons: {len(files)}")
    logger.info(f"Evaluated: {len(entries)}")
    logger.info(f"Passed: {report['passed']}")
    logger.info(f"Failed to evaluate: {len(failures)}")
    logger.info(f"Elapsed: {elapsed:.2f}s")
    if voter is not None:
        total_cost = sum(usage["estimated_cost_usd"] for usage in report["usage"])
        logger.info(f"Estimated cost: ${total_cost:.4f}")
    logger.info(f"Report: {args.output}")
    logger.info("=" * 80)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
