"""Standalone CLI for the retrieval eval harness.

Usage::

    python -m ragkit.cli.eval --dataset eval/datasets/sample.json

    python -m ragkit.cli.eval --dataset eval/datasets/sample.json \\
        --mode retrieve+rerank --top-k 5 --threshold min.recallAtK=0.75 --ci

    python -m ragkit.cli.eval --dataset eval/datasets/sample.json \\
        --baseline .ragkit/eval/runs/previous/report.json

The engine is built from ``config/config.yaml`` and the environment (see
:mod:`ragkit.config.settings`).  Output files land in ``--output-dir``
(default ``.ragkit/eval/runs/<timestamp>-<dataset id>``).

Exit codes: 0 thresholds passed, 1 threshold failures (``--ci`` only),
2 configuration or runtime error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ragkit.config.loader import deep_merge, load_config
from ragkit.config.settings import Settings
from ragkit.models.evaluation import EvalRunOutput
from ragkit.utils.errors import RagkitError
from ragkit.utils.logging import configure_logging

_THRESHOLD_KEYS = {
    "min": ("hitAtK", "recallAtK", "mrrAtK"),
    "max": ("p95TotalMs",),
}


def parse_threshold(expr: str) -> dict[str, dict[str, float]]:
    """Parse ``min.recallAtK=0.75`` (``recallAtK=0.75`` is shorthand for ``min``)."""
    lhs, sep, rhs = expr.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f'Threshold "{expr}" must look like key=value.')
    try:
        value = float(rhs.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f'Threshold "{expr}" needs a numeric value.') from exc
    parts = [p.strip() for p in lhs.split(".") if p.strip()]
    level, metric = (parts[0], parts[1]) if len(parts) == 2 else ("min", parts[0] if parts else "")
    if metric not in _THRESHOLD_KEYS.get(level, ()):
        allowed = ", ".join(f"{lvl}.{m}" for lvl, ms in _THRESHOLD_KEYS.items() for m in ms)
        raise argparse.ArgumentTypeError(f'Unknown threshold "{lhs}". Use one of: {allowed}.')
    return {level: {metric: value}}


def _default_output_dir(dataset_path: str) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return Path(".ragkit/eval/runs") / f"{stamp}-{Path(dataset_path).stem}"


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def _confirm_delete(args: argparse.Namespace, scope_prefix: str | None) -> bool:
    """Non-eval prefixes are deleted only with --yes, or an interactive yes outside --ci."""
    if args.yes:
        return True
    if args.ci or not args.allow_non_eval_prefix:
        return False
    answer = input(f"  Delete every chunk under scopePrefix {scope_prefix or '(dataset default)'!r}? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


async def _run(args: argparse.Namespace, app_settings: Settings) -> tuple[EvalRunOutput, Path]:
    from ragkit.config.factory import build_engine
    from ragkit.services.evaluation.dataset import read_eval_dataset
    from ragkit.services.evaluation.report import (
        diff_eval_reports,
        read_eval_report,
        write_eval_diff_json,
        write_eval_diff_md,
        write_eval_report,
        write_eval_summary_md,
    )
    from ragkit.services.evaluation.runner import EvalRunOptions, run_eval

    dataset = read_eval_dataset(args.dataset)

    thresholds: dict[str, Any] = {}
    for t in args.threshold or []:
        thresholds = deep_merge(thresholds, t)

    scope_prefix = args.scope_prefix or dataset.defaults.scope_prefix
    confirmed = False
    if not scope_prefix.startswith("eval:"):
        # input() blocks; keep it off the event loop.
        confirmed = await asyncio.to_thread(_confirm_delete, args, scope_prefix)
    options = EvalRunOptions(
        mode=args.mode,
        top_k=args.top_k,
        rerank_top_k=args.rerank_top_k,
        scope_prefix=args.scope_prefix,
        ingest=False if args.no_ingest else None,
        cleanup=args.cleanup,
        thresholds=thresholds or None,
        include_ndcg=args.include_ndcg,
        allow_assets=args.allow_assets,
        allow_non_eval_prefix=args.allow_non_eval_prefix,
        confirmed_dangerous_delete=confirmed,
    )
    async with build_engine(app_settings, load_config(args.config, settings=app_settings)) as engine:
        result = await run_eval(engine, dataset, options)

    output_dir = Path(args.output_dir) if args.output_dir else _default_output_dir(args.dataset)
    report_path = write_eval_report(output_dir, result.report)
    summary_path = write_eval_summary_md(output_dir, result.report)
    print(f"Wrote report:  {report_path}")
    print(f"Wrote summary: {summary_path}")

    if args.baseline:
        baseline = read_eval_report(args.baseline)
        diff = diff_eval_reports(baseline, result.report, args.baseline, str(report_path))
        diff_json = write_eval_diff_json(output_dir, diff)
        diff_md = write_eval_diff_md(output_dir, diff)
        print(f"Wrote diff:    {diff_json} (+ {diff_md})")

    return result, output_dir


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the eval CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m ragkit.cli.eval",
        description="Evaluate retrieval quality against a labeled dataset.",
    )
    parser.add_argument("--dataset", required=True, help="Dataset JSON path")
    parser.add_argument("--baseline", help="Baseline report.json to diff against")
    parser.add_argument("--output-dir", dest="output_dir", help="Output directory for report files")
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    parser.add_argument("--mode", choices=("retrieve", "retrieve+rerank"), help="Override dataset mode")
    parser.add_argument("--top-k", dest="top_k", type=int, help="Override topK")
    parser.add_argument(
        "--rerank-top-k",
        dest="rerank_top_k",
        type=int,
        help="In rerank mode, retrieve N candidates before reranking (default: topK*3)",
    )
    parser.add_argument("--scope-prefix", dest="scope_prefix", help="Override scopePrefix")
    parser.add_argument("--no-ingest", dest="no_ingest", action="store_true", help="Skip dataset document ingest")
    parser.add_argument(
        "--cleanup",
        choices=("none", "on-success", "always"),
        default="none",
        help="Delete ingested eval documents after the run (default: none)",
    )
    parser.add_argument(
        "--threshold",
        action="append",
        type=parse_threshold,
        metavar="KEY=VALUE",
        help="Repeatable threshold, e.g. min.recallAtK=0.75 or max.p95TotalMs=800",
    )
    parser.add_argument("--ci", action="store_true", help="Non-interactive; exit 1 on threshold failures")
    parser.add_argument("--allow-assets", dest="allow_assets", action="store_true", help="Ingest documents[].assets")
    parser.add_argument(
        "--allow-non-eval-prefix",
        dest="allow_non_eval_prefix",
        action="store_true",
        help='Allow a scopePrefix outside "eval:" (dangerous)',
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Confirm deleting a non-eval prefix")
    parser.add_argument("--include-ndcg", dest="include_ndcg", action="store_true", help="Compute nDCG@k")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the eval harness."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level)

    try:
        result, _ = asyncio.run(_run(args, app_settings))
    except RagkitError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    if result.threshold_failures:
        print("Threshold failures:")
        for failure in result.threshold_failures:
            print(f"  - {failure}")
    else:
        print("Thresholds: pass")

    sys.exit(result.exit_code if args.ci else 0)


if __name__ == "__main__":
    main()
