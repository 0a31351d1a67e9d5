"""Retrieval evaluation: datasets, metrics, the runner and report files."""

from ragkit.services.evaluation.dataset import parse_eval_dataset, read_eval_dataset
from ragkit.services.evaluation.metrics import compute_metrics_at_k, percentiles
from ragkit.services.evaluation.report import (
    diff_eval_reports,
    read_eval_report,
    write_eval_diff_json,
    write_eval_diff_md,
    write_eval_report,
    write_eval_summary_md,
)
from ragkit.services.evaluation.runner import EvalRunOptions, run_eval

__all__ = [
    "EvalRunOptions",
    "compute_metrics_at_k",
    "diff_eval_reports",
    "parse_eval_dataset",
    "percentiles",
    "read_eval_dataset",
    "read_eval_report",
    "run_eval",
    "write_eval_diff_json",
    "write_eval_diff_md",
    "write_eval_report",
    "write_eval_summary_md",
]
