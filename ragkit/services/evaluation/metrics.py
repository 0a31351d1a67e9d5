"""Ranking metrics and distribution summaries for retrieval evaluation.

All metrics are computed over *documents* (source ids), not chunks: the
ranked list is first reduced to unique source ids in first-seen order.
Relevance is binary.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np

from ragkit.models.evaluation import EvalAggregatesForStage, EvalMetricsAtK, Percentiles


def unique_source_ids_in_order(source_ids: Iterable[str]) -> list[str]:
    """Drop empty and repeated ids, keeping the first occurrence of each."""
    seen: set[str] = set()
    out: list[str] = []
    for sid in source_ids:
        if not sid or sid in seen:
            continue
        seen.add(sid)
        out.append(sid)
    return out


def _ndcg_at_k(ranked: Sequence[str], relevant: set[str], k: int) -> float:
    dcg = sum(1.0 / math.log2(i + 2) for i, sid in enumerate(ranked[:k]) if sid in relevant)
    idcg = sum(1.0 / math.log2(i + 2) for i in range(min(len(relevant), k)))
    return dcg / idcg if idcg else 0.0


def compute_metrics_at_k(
    retrieved: Sequence[str],
    relevant: Sequence[str],
    k: float,
    include_ndcg: bool = False,
) -> EvalMetricsAtK:
    """Score one ranked list of source ids against the labeled relevant set.

    Parameters
    ----------
    retrieved:
        Ranked source ids, best first.  Deduplicated internally.
    relevant:
        Source ids labeled relevant for the query.
    k:
        Cutoff; floored and clamped to at least 1.
    include_ndcg:
        Also compute binary-relevance nDCG@k.

    Returns
    -------
    EvalMetricsAtK
        hit@k, recall@k (hits / |relevant|, 0 when nothing is relevant),
        precision@k (hits / k), mrr@k and optionally ndcg@k.
    """
    k = max(1, math.floor(k))
    relevant_set = set(relevant)
    ranked = unique_source_ids_in_order(retrieved)[:k]

    hits = 0
    first_rank: int | None = None
    for i, sid in enumerate(ranked):
        if sid in relevant_set:
            hits += 1
            if first_rank is None:
                first_rank = i + 1

    return EvalMetricsAtK(
        hit_at_k=1.0 if hits else 0.0,
        recall_at_k=hits / len(relevant) if relevant else 0.0,
        precision_at_k=hits / k,
        mrr_at_k=1.0 / first_rank if first_rank else 0.0,
        ndcg_at_k=_ndcg_at_k(ranked, relevant_set, k) if include_ndcg else None,
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
def _finite(values: Iterable[float]) -> np.ndarray:
    xs = np.asarray(list(values), dtype=float)
    return xs[np.isfinite(xs)]


def mean_of(values: Iterable[float]) -> float:
    xs = _finite(values)
    return float(xs.mean()) if xs.size else 0.0


def median_of(values: Iterable[float]) -> float:
    xs = _finite(values)
    return float(np.median(xs)) if xs.size else 0.0


def percentiles(values: Iterable[float]) -> Percentiles:
    """p50/p95 with linear interpolation between closest ranks."""
    xs = _finite(values)
    if not xs.size:
        return Percentiles(p50=0.0, p95=0.0)
    p50, p95 = np.percentile(xs, [50, 95])
    return Percentiles(p50=float(p50), p95=float(p95))


def aggregate_metrics(metrics: Sequence[EvalMetricsAtK]) -> EvalAggregatesForStage:
    """Mean and median of each metric across queries."""
    with_ndcg = any(m.ndcg_at_k is not None for m in metrics)

    def summarize(fn) -> EvalMetricsAtK:
        return EvalMetricsAtK(
            hit_at_k=fn(m.hit_at_k for m in metrics),
            recall_at_k=fn(m.recall_at_k for m in metrics),
            precision_at_k=fn(m.precision_at_k for m in metrics),
            mrr_at_k=fn(m.mrr_at_k for m in metrics),
            ndcg_at_k=fn(m.ndcg_at_k or 0.0 for m in metrics) if with_ndcg else None,
        )

    return EvalAggregatesForStage(mean=summarize(mean_of), median=summarize(median_of))
