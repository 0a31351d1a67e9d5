"""Evaluation dataset, report and diff models.

These models mirror versioned JSON files on disk (``dataset.json``,
``report.json``, ``diff.json``).  Python attributes are snake_case; the
serialized form is camelCase through ``alias_generator=to_camel``.  Dump
with :func:`to_wire` so optional blocks that were never set are omitted.

Structural validation of hand-written datasets (with ``$.path`` error
messages) happens in :mod:`ragkit.services.evaluation.dataset`; these
models are the already-validated shape.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

EvalMode = Literal["retrieve", "retrieve+rerank"]
EvalCleanupPolicy = Literal["none", "on-success", "always"]

_WIRE = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


def to_wire(model: BaseModel) -> dict[str, Any]:
    """Serialize *model* to its camelCase JSON form."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------
class MinThresholds(BaseModel):
    model_config = _WIRE

    hit_at_k: float | None = None
    recall_at_k: float | None = None
    mrr_at_k: float | None = None


class MaxThresholds(BaseModel):
    model_config = _WIRE

    p95_total_ms: float | None = None


class EvalThresholds(BaseModel):
    """Pass/fail gates: ``min`` on final-stage mean metrics, ``max`` on latency."""

    model_config = _WIRE

    minimum: MinThresholds | None = Field(default=None, alias="min")
    maximum: MaxThresholds | None = Field(default=None, alias="max")


class EvalDatasetDefaults(BaseModel):
    model_config = _WIRE

    scope_prefix: str = Field(description="Source id prefix isolating this dataset's documents.")
    top_k: int | None = None
    mode: EvalMode | None = None
    rerank_top_k: int | None = None
    thresholds: EvalThresholds | None = None


class EvalDatasetDocument(BaseModel):
    model_config = _WIRE

    source_id: str
    content: str | None = None
    loader_ref: str | None = Field(default=None, description="Key resolved by the document loader hook.")
    metadata: dict[str, Any] | None = None
    assets: Any = None


class EvalRelevant(BaseModel):
    model_config = _WIRE

    source_ids: list[str]


class EvalDatasetQuery(BaseModel):
    model_config = _WIRE

    id: str
    query: str
    top_k: int | None = None
    scope_prefix: str | None = None
    rerank_top_k: int | None = None
    relevant: EvalRelevant
    notes: str | None = None


class EvalDataset(BaseModel):
    """Version 1 of the labeled retrieval dataset."""

    model_config = _WIRE

    version: Literal["1"] = "1"
    id: str
    description: str | None = None
    defaults: EvalDatasetDefaults
    documents: list[EvalDatasetDocument] | None = None
    queries: list[EvalDatasetQuery]


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
class EvalMetricsAtK(BaseModel):
    model_config = _WIRE

    hit_at_k: float
    recall_at_k: float
    precision_at_k: float
    mrr_at_k: float
    ndcg_at_k: float | None = None


class EvalAggregatesForStage(BaseModel):
    model_config = _WIRE

    mean: EvalMetricsAtK
    median: EvalMetricsAtK


class EvalAggregateBlock(BaseModel):
    model_config = _WIRE

    retrieved: EvalAggregatesForStage
    reranked: EvalAggregatesForStage | None = None


class Percentiles(BaseModel):
    model_config = _WIRE

    p50: float = 0.0
    p95: float = 0.0


class EvalTimingAggregates(BaseModel):
    model_config = _WIRE

    embedding_ms: Percentiles
    retrieval_ms: Percentiles
    retrieve_total_ms: Percentiles
    rerank_ms: Percentiles | None = None
    rerank_total_ms: Percentiles | None = None
    total_ms: Percentiles = Field(description="End-to-end per query: retrieve total plus rerank total.")


# ---------------------------------------------------------------------------
# Per-query results
# ---------------------------------------------------------------------------
class RetrievedDurations(BaseModel):
    model_config = _WIRE

    embedding_ms: float
    retrieval_ms: float
    total_ms: float


class RerankedDurations(BaseModel):
    model_config = _WIRE

    rerank_ms: float
    total_ms: float


class RetrievedStage(BaseModel):
    model_config = _WIRE

    source_ids: list[str]
    metrics: EvalMetricsAtK
    durations_ms: RetrievedDurations


class RerankedMeta(BaseModel):
    model_config = _WIRE

    reranker_name: str | None = None
    model: str | None = None


class RerankedStage(BaseModel):
    model_config = _WIRE

    source_ids: list[str]
    metrics: EvalMetricsAtK
    durations_ms: RerankedDurations
    meta: RerankedMeta | None = None
    warnings: list[str] | None = None


class EvalQueryResult(BaseModel):
    model_config = _WIRE

    id: str
    query: str
    top_k: int
    rerank_top_k: int | None = None
    scope_prefix: str
    relevant: EvalRelevant
    retrieved: RetrievedStage
    reranked: RerankedStage | None = None
    notes: str | None = None

    @property
    def final_metrics(self) -> EvalMetricsAtK:
        """Post-rerank metrics when present, else retrieval metrics."""
        return self.reranked.metrics if self.reranked else self.retrieved.metrics


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------
class EvalReportDataset(BaseModel):
    model_config = _WIRE

    id: str
    version: Literal["1"] = "1"
    description: str | None = None


class EvalReportConfig(BaseModel):
    model_config = _WIRE

    mode: EvalMode
    top_k: int
    rerank_top_k: int | None = None
    scope_prefix: str
    ingest: bool
    cleanup: EvalCleanupPolicy
    include_ndcg: bool


class EvalReportEngine(BaseModel):
    model_config = _WIRE

    embedding_model: str | None = None
    reranker_name: str | None = None
    reranker_model: str | None = None


class EvalReportResults(BaseModel):
    model_config = _WIRE

    queries: list[EvalQueryResult]
    aggregates: EvalAggregateBlock
    timings: EvalTimingAggregates
    thresholds_applied: EvalThresholds | None = None
    threshold_failures: list[str] | None = None
    passed: bool | None = None


class EvalReport(BaseModel):
    """Version 1 eval report, written as ``report.json``."""

    model_config = _WIRE

    version: Literal["1"] = "1"
    created_at: str = Field(description="ISO-8601 UTC timestamp.")
    dataset: EvalReportDataset
    config: EvalReportConfig
    engine: EvalReportEngine
    results: EvalReportResults


class EvalRunOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    report: EvalReport
    exit_code: int
    threshold_failures: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------
class MetricDeltas(BaseModel):
    model_config = _WIRE

    hit_at_k: float | None = None
    recall_at_k: float | None = None
    precision_at_k: float | None = None
    mrr_at_k: float | None = None
    ndcg_at_k: float | None = None


class EvalDiffDeltas(BaseModel):
    model_config = _WIRE

    retrieved: MetricDeltas
    reranked: MetricDeltas | None = None
    p95_total_ms: float | None = None


class EvalDiffSide(BaseModel):
    model_config = _WIRE

    report_path: str | None = None
    dataset_id: str
    created_at: str | None = None


class RecallRegression(BaseModel):
    model_config = _WIRE

    id: str
    delta_recall_at_k: float
    baseline_recall_at_k: float
    candidate_recall_at_k: float


class EvalDiff(BaseModel):
    """Version 1 diff between two eval reports, written as ``diff.json``."""

    model_config = _WIRE

    version: Literal["1"] = "1"
    created_at: str
    baseline: EvalDiffSide
    candidate: EvalDiffSide
    deltas: EvalDiffDeltas
    worst_regressions: list[RecallRegression] = Field(default_factory=list)
