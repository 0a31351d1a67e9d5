"""Run a labeled dataset against a :class:`ContextEngine` and score it.

Orchestrator pattern: the runner owns no retrieval logic of its own.  It
drives the engine through four stages and turns what comes back into an
:class:`EvalReport`.

    1. Guard -- refuse scope prefixes outside ``eval:`` unless opted in,
       since ingest starts with a delete-by-prefix
    2. Ingest -- optional; wipe the prefix, then ingest dataset documents
    3. Query loop -- retrieve (and rerank) each query, score both stages
    4. Report -- aggregates, latency percentiles, threshold checks

Dataset documents must live under the dataset scope prefix so an eval
run never touches production source ids.
"""

from __future__ import annotations

import inspect
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from ragkit.config.loader import deep_merge
from ragkit.models.assets import Asset
from ragkit.models.evaluation import (
    EvalAggregateBlock,
    EvalAggregatesForStage,
    EvalCleanupPolicy,
    EvalDataset,
    EvalDatasetDocument,
    EvalMode,
    EvalQueryResult,
    EvalRelevant,
    EvalReport,
    EvalReportConfig,
    EvalReportDataset,
    EvalReportEngine,
    EvalReportResults,
    EvalRunOutput,
    EvalThresholds,
    EvalTimingAggregates,
    RerankedDurations,
    RerankedMeta,
    RerankedStage,
    RetrievedDurations,
    RetrievedStage,
)
from ragkit.services.context_engine import ContextEngine
from ragkit.services.evaluation.metrics import (
    aggregate_metrics,
    compute_metrics_at_k,
    percentiles,
    unique_source_ids_in_order,
)
from ragkit.utils.errors import ValidationError
from ragkit.utils.timing import elapsed_ms, now

logger = structlog.get_logger(logger_name=__name__)

EVAL_PREFIX = "eval:"
DEFAULT_EVAL_TOP_K = 10

DocumentLoader = Callable[[str], "Awaitable[str] | str"]


@dataclass
class EvalRunOptions:
    """Caller overrides for one eval run.  ``None`` defers to the dataset."""

    mode: EvalMode | None = None
    top_k: int | None = None
    rerank_top_k: int | None = None
    scope_prefix: str | None = None
    ingest: bool | None = None
    cleanup: EvalCleanupPolicy = "none"
    thresholds: EvalThresholds | dict[str, Any] | None = None
    include_ndcg: bool = False
    allow_assets: bool = False
    allow_non_eval_prefix: bool = False
    confirmed_dangerous_delete: bool = False
    load_document_by_ref: DocumentLoader | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def clamp_rerank_top_k(top_k: int, rerank_top_k: float) -> int:
    """Candidate count for rerank mode: at least ``top_k``, ``top_k * 3`` if unusable."""
    top_k = max(1, math.floor(top_k))
    if not math.isfinite(rerank_top_k) or math.floor(rerank_top_k) <= 0:
        return top_k * 3
    return max(top_k, math.floor(rerank_top_k))


def merge_thresholds(
    base: EvalThresholds | None,
    override: EvalThresholds | dict[str, Any] | None,
) -> EvalThresholds:
    """Deep-merge *override* onto *base*; keys set in *override* win."""
    merged = base.model_dump(by_alias=True, exclude_none=True) if base else {}
    if isinstance(override, EvalThresholds):
        override = override.model_dump(by_alias=True, exclude_none=True)
    return EvalThresholds.model_validate(deep_merge(merged, override or {}))


def evaluate_thresholds(
    thresholds: EvalThresholds,
    final: EvalAggregatesForStage,
    p95_total_ms: float,
) -> list[str]:
    """Return one message per failed gate; empty means passed."""
    failures: list[str] = []
    lo = thresholds.minimum
    hi = thresholds.maximum
    if lo is not None:
        for key, floor_value, actual in (
            ("hitAtK", lo.hit_at_k, final.mean.hit_at_k),
            ("recallAtK", lo.recall_at_k, final.mean.recall_at_k),
            ("mrrAtK", lo.mrr_at_k, final.mean.mrr_at_k),
        ):
            if floor_value is not None and actual < floor_value:
                failures.append(f"min.{key}: expected >= {floor_value:g}, got {actual:.3f}")
    if hi is not None and hi.p95_total_ms is not None and p95_total_ms > hi.p95_total_ms:
        failures.append(f"max.p95TotalMs: expected <= {hi.p95_total_ms:g}, got {p95_total_ms:.1f}ms")
    return failures


def normalize_metadata(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    """Keep scalar values and lists of scalars; nested objects are dropped."""
    if not isinstance(raw, dict):
        return None
    scalar = (str, int, float, bool, type(None))
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, scalar):
            out[key] = value
        elif isinstance(value, list):
            out[key] = [x for x in value if isinstance(x, scalar)]
    return out


async def _resolve_content(doc: EvalDatasetDocument, loader: DocumentLoader | None) -> str:
    if doc.content and doc.content.strip():
        return doc.content
    if doc.loader_ref and doc.loader_ref.strip():
        if loader is None:
            raise ValidationError(
                f'Dataset document uses loaderRef="{doc.loader_ref}" but no load_document_by_ref hook was provided.'
            )
        content = loader(doc.loader_ref)
        if inspect.isawaitable(content):
            content = await content
        if not isinstance(content, str) or not content.strip():
            raise ValidationError(f'load_document_by_ref("{doc.loader_ref}") returned empty content.')
        return content
    raise ValidationError("Dataset document is missing both content and loaderRef.")


def _timings(mode: EvalMode, queries: list[EvalQueryResult]) -> EvalTimingAggregates:
    def rerank_part(q: EvalQueryResult, attr: str) -> float:
        return getattr(q.reranked.durations_ms, attr) if q.reranked else 0.0

    block: dict[str, Any] = {
        "embedding_ms": percentiles(q.retrieved.durations_ms.embedding_ms for q in queries),
        "retrieval_ms": percentiles(q.retrieved.durations_ms.retrieval_ms for q in queries),
        "retrieve_total_ms": percentiles(q.retrieved.durations_ms.total_ms for q in queries),
        "total_ms": percentiles(
            q.retrieved.durations_ms.total_ms + rerank_part(q, "total_ms") for q in queries
        ),
    }
    if mode == "retrieve+rerank":
        block["rerank_ms"] = percentiles(rerank_part(q, "rerank_ms") for q in queries)
        block["rerank_total_ms"] = percentiles(rerank_part(q, "total_ms") for q in queries)
    return EvalTimingAggregates(**block)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------
async def _ingest_documents(
    engine: ContextEngine,
    dataset: EvalDataset,
    scope_prefix: str,
    options: EvalRunOptions,
) -> None:
    await engine.delete(source_id_prefix=scope_prefix)
    for doc in dataset.documents or []:
        if not doc.source_id.startswith(scope_prefix):
            raise ValidationError(
                f'Dataset document sourceId "{doc.source_id}" does not start with scopePrefix '
                f'"{scope_prefix}". Namespace dataset documents under defaults.scopePrefix.'
            )
        content = await _resolve_content(doc, options.load_document_by_ref)
        assets: list[Asset] = []
        if doc.assets is not None:
            if not options.allow_assets:
                raise ValidationError(
                    "Dataset includes documents[].assets but assets are disabled by default. "
                    "Re-run with --allow-assets if URL fetching during eval is acceptable."
                )
            assets = [Asset.model_validate(a) for a in doc.assets]
        await engine.ingest(
            source_id=doc.source_id,
            content=content,
            assets=assets,
            metadata=normalize_metadata(doc.metadata),
        )
    logger.info("eval_ingest_complete", scope_prefix=scope_prefix, documents=len(dataset.documents or []))


async def _run_queries(
    engine: ContextEngine,
    dataset: EvalDataset,
    mode: EvalMode,
    top_k: int,
    scope_prefix: str,
    options: EvalRunOptions,
) -> tuple[list[EvalQueryResult], str | None]:
    results: list[EvalQueryResult] = []
    embedding_model: str | None = None
    rerank = mode == "retrieve+rerank"

    for q in dataset.queries:
        q_top_k = q.top_k or top_k
        q_prefix = (q.scope_prefix or scope_prefix).strip()
        q_rerank_top_k: int | None = None
        if rerank:
            requested = next(
                (v for v in (q.rerank_top_k, options.rerank_top_k, dataset.defaults.rerank_top_k) if v is not None),
                q_top_k * 3,
            )
            q_rerank_top_k = clamp_rerank_top_k(q_top_k, requested)

        retrieved = await engine.retrieve(
            q.query, top_k=q_rerank_top_k if rerank else q_top_k, scope=q_prefix
        )
        embedding_model = embedding_model or retrieved.embedding_model
        retrieved_ids = unique_source_ids_in_order(c.source_id for c in retrieved.chunks)
        retrieved_stage = RetrievedStage(
            source_ids=retrieved_ids,
            metrics=compute_metrics_at_k(retrieved_ids, q.relevant.source_ids, q_top_k, options.include_ndcg),
            durations_ms=RetrievedDurations(
                embedding_ms=retrieved.durations.embedding_ms,
                retrieval_ms=retrieved.durations.retrieval_ms,
                total_ms=retrieved.durations.total_ms,
            ),
        )

        reranked_stage: RerankedStage | None = None
        if rerank:
            start = now()
            reranked = await engine.rerank(
                q.query,
                retrieved.chunks,
                top_k=q_top_k,
                on_missing_reranker="throw",
                on_missing_text="skip",
            )
            wall_ms = elapsed_ms(start)
            reranked_ids = unique_source_ids_in_order(c.source_id for c in reranked.chunks)
            reranked_stage = RerankedStage(
                source_ids=reranked_ids,
                metrics=compute_metrics_at_k(reranked_ids, q.relevant.source_ids, q_top_k, options.include_ndcg),
                durations_ms=RerankedDurations(
                    rerank_ms=reranked.durations.rerank_ms,
                    total_ms=max(reranked.durations.total_ms, wall_ms),
                ),
                meta=RerankedMeta(reranker_name=reranked.meta.reranker_name, model=reranked.meta.model),
                warnings=list(reranked.warnings),
            )

        result = EvalQueryResult(
            id=q.id,
            query=q.query,
            top_k=q_top_k,
            rerank_top_k=q_rerank_top_k,
            scope_prefix=q_prefix,
            relevant=EvalRelevant(source_ids=list(q.relevant.source_ids)),
            retrieved=retrieved_stage,
            reranked=reranked_stage,
            notes=q.notes,
        )
        results.append(result)
        logger.info(
            "eval_query_complete",
            query_id=q.id,
            recall_at_k=round(result.final_metrics.recall_at_k, 4),
            mrr_at_k=round(result.final_metrics.mrr_at_k, 4),
        )
    return results, embedding_model


async def run_eval(
    engine: ContextEngine,
    dataset: EvalDataset,
    options: EvalRunOptions | None = None,
) -> EvalRunOutput:
    """Evaluate *engine* on *dataset*.

    Parameters
    ----------
    engine:
        The context engine under test.
    dataset:
        A parsed dataset (see :func:`~ragkit.services.evaluation.dataset.read_eval_dataset`).
    options:
        Overrides for mode, cutoffs, prefix, ingest, cleanup and thresholds.

    Returns
    -------
    EvalRunOutput
        The report plus ``exit_code`` (0 when every threshold passed) and
        the threshold failure messages.

    Raises
    ------
    ValidationError
        On an unsafe scope prefix, a document outside the prefix, an
        unresolvable ``loaderRef`` or assets without ``allow_assets``.
    """
    options = options or EvalRunOptions()
    defaults = dataset.defaults
    mode: EvalMode = options.mode or defaults.mode or "retrieve"
    top_k = options.top_k or defaults.top_k or DEFAULT_EVAL_TOP_K
    scope_prefix = (options.scope_prefix or defaults.scope_prefix).strip()
    if not scope_prefix:
        raise ValidationError("Missing scopePrefix (dataset.defaults.scopePrefix).")

    is_eval_namespaced = scope_prefix.startswith(EVAL_PREFIX)
    if not is_eval_namespaced and not options.allow_non_eval_prefix:
        raise ValidationError(
            f'Refusing to run with scopePrefix="{scope_prefix}" because it does not start with '
            f'"{EVAL_PREFIX}". Use --allow-non-eval-prefix and --yes only if you accept the '
            "delete-by-prefix risk."
        )

    has_docs = bool(dataset.documents)
    ingest = options.ingest if options.ingest is not None else has_docs
    will_ingest = ingest and has_docs
    thresholds = merge_thresholds(defaults.thresholds, options.thresholds)

    if will_ingest:
        if not is_eval_namespaced and not options.confirmed_dangerous_delete:
            raise ValidationError(
                f'Refusing to delete non-eval scopePrefix="{scope_prefix}" without confirmation. '
                "Re-run with --yes and keep the prefix narrowly scoped."
            )
        await _ingest_documents(engine, dataset, scope_prefix, options)

    succeeded = False
    try:
        queries, embedding_model = await _run_queries(engine, dataset, mode, top_k, scope_prefix, options)
        succeeded = True
    finally:
        if will_ingest and (options.cleanup == "always" or (options.cleanup == "on-success" and succeeded)):
            await engine.delete(source_id_prefix=scope_prefix)
            logger.info("eval_cleanup_complete", scope_prefix=scope_prefix, cleanup=options.cleanup)

    retrieved_agg = aggregate_metrics([q.retrieved.metrics for q in queries])
    reranked_agg = (
        aggregate_metrics([q.reranked.metrics for q in queries if q.reranked])
        if mode == "retrieve+rerank"
        else None
    )
    timings = _timings(mode, queries)
    failures = evaluate_thresholds(thresholds, reranked_agg or retrieved_agg, timings.total_ms.p95)
    passed = not failures

    config_rerank_top_k = options.rerank_top_k if options.rerank_top_k is not None else defaults.rerank_top_k
    first_reranked = next((q.reranked for q in queries if q.reranked), None)
    report = EvalReport(
        created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        dataset=EvalReportDataset(id=dataset.id, description=dataset.description),
        config=EvalReportConfig(
            mode=mode,
            top_k=top_k,
            rerank_top_k=(
                clamp_rerank_top_k(
                    top_k, config_rerank_top_k if config_rerank_top_k is not None else top_k * 3
                )
                if mode == "retrieve+rerank"
                else None
            ),
            scope_prefix=scope_prefix,
            ingest=ingest,
            cleanup=options.cleanup,
            include_ndcg=options.include_ndcg,
        ),
        engine=EvalReportEngine(
            embedding_model=embedding_model,
            reranker_name=first_reranked.meta.reranker_name if first_reranked and first_reranked.meta else None,
            reranker_model=first_reranked.meta.model if first_reranked and first_reranked.meta else None,
        ),
        results=EvalReportResults(
            queries=queries,
            aggregates=EvalAggregateBlock(retrieved=retrieved_agg, reranked=reranked_agg),
            timings=timings,
            thresholds_applied=thresholds,
            threshold_failures=failures,
            passed=passed,
        ),
    )
    logger.info(
        "eval_run_complete",
        dataset_id=dataset.id,
        mode=mode,
        queries=len(queries),
        passed=passed,
        failures=len(failures),
    )
    return EvalRunOutput(report=report, exit_code=0 if passed else 1, threshold_failures=failures)
