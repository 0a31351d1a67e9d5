"""Reading, writing and diffing eval reports.

Files written by this module (all UTF-8, trailing newline):

* ``report.json`` -- the full :class:`EvalReport`
* ``summary.md``  -- human-readable overview of one report
* ``diff.json``   -- :class:`EvalDiff` between a baseline and a candidate
* ``diff.md``     -- human-readable overview of a diff
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pydantic
import structlog

from ragkit.models.evaluation import (
    EvalAggregatesForStage,
    EvalDiff,
    EvalDiffDeltas,
    EvalDiffSide,
    EvalMetricsAtK,
    EvalQueryResult,
    EvalReport,
    MetricDeltas,
    RecallRegression,
    to_wire,
)
from ragkit.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

WORST_QUERIES = 10
WORST_REGRESSIONS = 20


def _write(output_dir: str | Path, name: str, text: str) -> Path:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / name
    out_path.write_text(text, encoding="utf-8")
    logger.info("eval_file_written", path=str(out_path))
    return out_path


def _final_recall(q: EvalQueryResult) -> float:
    return q.final_metrics.recall_at_k


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
def write_eval_report(output_dir: str | Path, report: EvalReport) -> Path:
    """Write ``report.json`` into *output_dir* and return its path."""
    return _write(output_dir, "report.json", json.dumps(to_wire(report), indent=2) + "\n")


def write_eval_summary_md(output_dir: str | Path, report: EvalReport) -> Path:
    """Write ``summary.md``: config, per-stage metric tables, worst queries, failures."""
    cfg = report.config
    lines = [
        "# ragkit Eval Report",
        "",
        f"- Dataset: `{report.dataset.id}`",
        f"- Mode: `{cfg.mode}`",
        f"- topK: `{cfg.top_k}`",
    ]
    if cfg.mode == "retrieve+rerank":
        rerank_top_k = cfg.rerank_top_k if cfg.rerank_top_k is not None else "topK*3"
        lines.append(f"- rerankTopK: `{rerank_top_k}`")
    lines += [
        f"- scopePrefix: `{cfg.scope_prefix}`",
        f"- ingest: `{str(cfg.ingest).lower()}`",
        f"- createdAt: `{report.created_at}`",
        "",
    ]

    def stage(label: str, agg: EvalAggregatesForStage) -> None:
        mean, median = agg.mean, agg.median
        lines.extend([f"## {label}", "", "| metric | mean | median |", "| --- | ---: | ---: |"])
        lines.append(f"| hit@k | {mean.hit_at_k:.3f} | {median.hit_at_k:.3f} |")
        lines.append(f"| recall@k | {mean.recall_at_k:.3f} | {median.recall_at_k:.3f} |")
        lines.append(f"| precision@k | {mean.precision_at_k:.3f} | {median.precision_at_k:.3f} |")
        lines.append(f"| mrr@k | {mean.mrr_at_k:.3f} | {median.mrr_at_k:.3f} |")
        if cfg.include_ndcg:
            lines.append(f"| ndcg@k | {mean.ndcg_at_k or 0.0:.3f} | {median.ndcg_at_k or 0.0:.3f} |")
        lines.append("")

    stage("Retrieved", report.results.aggregates.retrieved)
    if report.results.aggregates.reranked is not None:
        stage("Reranked", report.results.aggregates.reranked)

    worst = sorted(report.results.queries, key=_final_recall)[:WORST_QUERIES]
    lines.extend(["## Worst queries", "", "| id | recall@k | hit@k | mrr@k |", "| --- | ---: | ---: | ---: |"])
    for q in worst:
        m = q.final_metrics
        lines.append(f"| `{q.id}` | {m.recall_at_k:.3f} | {m.hit_at_k:.0f} | {m.mrr_at_k:.3f} |")
    lines.append("")

    if report.results.threshold_failures:
        lines.extend(["## Threshold failures", ""])
        lines.extend(f"- {f}" for f in report.results.threshold_failures)
        lines.append("")

    return _write(output_dir, "summary.md", "\n".join(lines) + "\n")


def read_eval_report(path: str | Path) -> EvalReport:
    """Load and validate a version ``"1"`` ``report.json``.

    Raises
    ------
    ValidationError
        If the file cannot be read, is not JSON, not an object, has
        another version or does not match the report shape.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Cannot read report file ({path}): {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Failed to parse report JSON ({path}): {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid report JSON ({path}): must be an object")
    if data.get("version") != "1":
        raise ValidationError(f"Unsupported report version ({path}): {data.get('version')}")
    try:
        return EvalReport.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid report JSON ({path}): {exc}") from exc


# ---------------------------------------------------------------------------
# Diffs
# ---------------------------------------------------------------------------
def _delta(base: EvalMetricsAtK, cand: EvalMetricsAtK) -> MetricDeltas:
    with_ndcg = base.ndcg_at_k is not None or cand.ndcg_at_k is not None
    return MetricDeltas(
        hit_at_k=cand.hit_at_k - base.hit_at_k,
        recall_at_k=cand.recall_at_k - base.recall_at_k,
        precision_at_k=cand.precision_at_k - base.precision_at_k,
        mrr_at_k=cand.mrr_at_k - base.mrr_at_k,
        ndcg_at_k=(cand.ndcg_at_k or 0.0) - (base.ndcg_at_k or 0.0) if with_ndcg else None,
    )


def diff_eval_reports(
    baseline: EvalReport,
    candidate: EvalReport,
    baseline_path: str | None = None,
    candidate_path: str | None = None,
) -> EvalDiff:
    """Compare two reports: mean metric deltas, p95 latency delta, worst recall regressions.

    Deltas are ``candidate - baseline``.  Per-query recall uses the
    reranked value when a query has one; a query missing from one side
    counts as recall 0 there.
    """
    b_agg = baseline.results.aggregates
    c_agg = candidate.results.aggregates
    reranked = (
        _delta(b_agg.reranked.mean, c_agg.reranked.mean)
        if b_agg.reranked is not None and c_agg.reranked is not None
        else None
    )

    base_recall = {q.id: _final_recall(q) for q in baseline.results.queries}
    cand_recall = {q.id: _final_recall(q) for q in candidate.results.queries}
    ids = list(dict.fromkeys([*base_recall, *cand_recall]))
    regressions = sorted(
        (
            RecallRegression(
                id=qid,
                delta_recall_at_k=cand_recall.get(qid, 0.0) - base_recall.get(qid, 0.0),
                baseline_recall_at_k=base_recall.get(qid, 0.0),
                candidate_recall_at_k=cand_recall.get(qid, 0.0),
            )
            for qid in ids
        ),
        key=lambda r: r.delta_recall_at_k,
    )[:WORST_REGRESSIONS]

    return EvalDiff(
        created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        baseline=EvalDiffSide(
            report_path=baseline_path, dataset_id=baseline.dataset.id, created_at=baseline.created_at
        ),
        candidate=EvalDiffSide(
            report_path=candidate_path, dataset_id=candidate.dataset.id, created_at=candidate.created_at
        ),
        deltas=EvalDiffDeltas(
            retrieved=_delta(b_agg.retrieved.mean, c_agg.retrieved.mean),
            reranked=reranked,
            p95_total_ms=candidate.results.timings.total_ms.p95 - baseline.results.timings.total_ms.p95,
        ),
        worst_regressions=regressions,
    )


def write_eval_diff_json(output_dir: str | Path, diff: EvalDiff) -> Path:
    return _write(output_dir, "diff.json", json.dumps(to_wire(diff), indent=2) + "\n")


def write_eval_diff_md(output_dir: str | Path, diff: EvalDiff) -> Path:
    """Write ``diff.md`` with aggregate deltas and the worst recall regressions."""

    def fmt(x: float | None) -> str:
        return f"{x:.3f}" if x is not None else "—"

    ret, rr = diff.deltas.retrieved, diff.deltas.reranked
    lines = [
        "# ragkit Eval Diff",
        "",
        f"- Baseline: `{diff.baseline.dataset_id}`",
        f"- Candidate: `{diff.candidate.dataset_id}`",
        "",
        "## Aggregate deltas (mean)",
        "",
        "| metric | retrieved Δ | reranked Δ |",
        "| --- | ---: | ---: |",
        f"| hit@k | {fmt(ret.hit_at_k)} | {fmt(rr.hit_at_k if rr else None)} |",
        f"| recall@k | {fmt(ret.recall_at_k)} | {fmt(rr.recall_at_k if rr else None)} |",
        f"| precision@k | {fmt(ret.precision_at_k)} | {fmt(rr.precision_at_k if rr else None)} |",
        f"| mrr@k | {fmt(ret.mrr_at_k)} | {fmt(rr.mrr_at_k if rr else None)} |",
        "",
    ]
    if diff.deltas.p95_total_ms is not None:
        lines.extend([f"- p95 total ms Δ: `{diff.deltas.p95_total_ms:.1f}ms`", ""])
    lines.extend(
        ["## Worst recall regressions", "", "| id | Δ recall@k | baseline | candidate |", "| --- | ---: | ---: | ---: |"]
    )
    for r in diff.worst_regressions:
        lines.append(
            f"| `{r.id}` | {r.delta_recall_at_k:.3f} | {r.baseline_recall_at_k:.3f} | {r.candidate_recall_at_k:.3f} |"
        )
    lines.append("")
    return _write(output_dir, "diff.md", "\n".join(lines) + "\n")
