"""Second-pass reranking of retrieval candidates.

:func:`rerank_candidates` resolves each candidate's text, asks the
configured :class:`IReranker` for an order, maps that order back onto the
candidate list and selects the top ``k``.  Every degraded path (no
candidates, no reranker under ``skip``, missing texts) returns a result
with warnings instead of raising.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Literal, Union

import structlog

from ragkit.interfaces.reranker import IReranker
from ragkit.models.chunks import ScoredChunk
from ragkit.models.results import RerankDurations, RerankMeta, RerankRankingItem, RerankResult
from ragkit.utils.concurrency import run_with_timeout
from ragkit.utils.errors import RerankError, RerankerNotConfiguredError, ValidationError
from ragkit.utils.timing import elapsed_ms, now

logger = structlog.get_logger(logger_name=__name__)

MissingPolicy = Literal["throw", "skip"]
TextResolver = Callable[[ScoredChunk], Union[str, None, Awaitable[Union[str, None]]]]

NO_RERANKER = "none"
DEFAULT_RERANK_TIMEOUT_S = 30.0


def _passthrough(
    candidates: Sequence[ScoredChunk],
    top_k: int,
    reranker_name: str,
    warnings: list[str],
    start: float,
) -> RerankResult:
    selected = list(candidates[:top_k])
    return RerankResult(
        chunks=selected,
        ranking=[RerankRankingItem(index=i) for i in range(len(selected))],
        meta=RerankMeta(reranker_name=reranker_name),
        durations=RerankDurations(rerank_ms=0.0, total_ms=elapsed_ms(start)),
        warnings=warnings,
    )


async def _resolve_text(
    index: int,
    candidate: ScoredChunk,
    resolve_text: TextResolver | None,
    warnings: list[str],
) -> str:
    text = (candidate.content or "").strip()
    if text or resolve_text is None:
        return text
    try:
        resolved = resolve_text(candidate)
        if inspect.isawaitable(resolved):
            resolved = await resolved
    except Exception as exc:
        warnings.append(f"resolve_text failed for candidate {index}: {exc}")
        logger.warning("rerank_resolve_text_failed", index=index, chunk_id=candidate.id, error=str(exc))
        return ""
    return (resolved or "").strip()


async def rerank_candidates(
    reranker: IReranker | None,
    query: str,
    candidates: Sequence[ScoredChunk],
    top_k: int | None = None,
    on_missing_reranker: MissingPolicy = "throw",
    on_missing_text: MissingPolicy = "throw",
    resolve_text: TextResolver | None = None,
    timeout_s: float | None = DEFAULT_RERANK_TIMEOUT_S,
) -> RerankResult:
    """Rerank *candidates* for *query*.

    Parameters
    ----------
    reranker:
        The configured reranker, or ``None``.
    top_k:
        Number of chunks to return, clamped to ``1..len(candidates)``.
        Defaults to all candidates.
    on_missing_reranker:
        ``"throw"`` raises :class:`RerankerNotConfiguredError` when
        *reranker* is ``None``; ``"skip"`` returns the first ``top_k``
        candidates in their original order.
    on_missing_text:
        What to do with a candidate whose text is empty after
        *resolve_text*: ``"throw"`` raises :class:`ValidationError`,
        ``"skip"`` keeps it out of the reranker call and appends it after
        the ranked candidates.
    resolve_text:
        Optional hook (sync or async) returning the text of a candidate
        stored without content.
    timeout_s:
        Deadline for the reranker call.  On expiry the call is cancelled
        and :class:`RerankError` with ``kind="timeout"`` is raised.
        ``None`` disables the deadline.
    """
    start = now()
    warnings: list[str] = []

    if not candidates:
        return RerankResult(
            meta=RerankMeta(reranker_name=NO_RERANKER),
            durations=RerankDurations(rerank_ms=0.0, total_ms=elapsed_ms(start)),
            warnings=["No candidates provided for reranking."],
        )

    k = max(1, min(top_k if top_k is not None else len(candidates), len(candidates)))

    if reranker is None:
        if on_missing_reranker == "skip":
            warnings.append("Reranker not configured; returning original order.")
            logger.warning("rerank_skipped", reason="no_reranker", candidates=len(candidates))
            return _passthrough(candidates, k, NO_RERANKER, warnings, start)
        raise RerankerNotConfiguredError()

    documents: list[str] = []
    doc_to_candidate: list[int] = []
    skipped: list[int] = []
    for i, candidate in enumerate(candidates):
        text = await _resolve_text(i, candidate, resolve_text, warnings)
        if not text:
            if on_missing_text == "skip":
                skipped.append(i)
                warnings.append(f"Candidate {i} has no text; skipped.")
                continue
            raise ValidationError(
                f"Candidate {i} (id={candidate.id}) has empty content. Enable "
                "store_chunk_content in the engine config, provide a resolve_text hook, "
                'or use on_missing_text="skip".'
            )
        documents.append(text)
        doc_to_candidate.append(i)

    if not documents:
        warnings.append("All candidates have missing text; returning original order.")
        return _passthrough(candidates, k, reranker.name, warnings, start)

    rerank_start = now()
    try:
        output = await run_with_timeout(
            reranker.rerank(query, documents),
            timeout_s,
            lambda: RerankError(
                message=f"Reranker {reranker.name!r} timed out after {timeout_s}s",
                provider_name=reranker.name,
                kind="timeout",
            ),
        )
    except RerankError:
        raise
    except Exception as exc:
        raise RerankError(
            message=f"Reranker {reranker.name!r} failed: {exc}",
            provider_name=reranker.name,
        ) from exc
    rerank_ms = elapsed_ms(rerank_start)

    ranking: list[RerankRankingItem] = []
    seen: set[int] = set()
    for rank, doc_index in enumerate(output.order):
        if not 0 <= doc_index < len(doc_to_candidate):
            continue
        candidate_index = doc_to_candidate[doc_index]
        if candidate_index in seen:
            continue
        seen.add(candidate_index)
        score = output.scores[rank] if output.scores is not None and rank < len(output.scores) else None
        ranking.append(RerankRankingItem(index=candidate_index, rerank_score=score))
    ranking.extend(RerankRankingItem(index=i) for i in skipped)

    chunks = [candidates[item.index] for item in ranking[:k]]
    total_ms = elapsed_ms(start)
    logger.info(
        "rerank_complete",
        reranker=reranker.name,
        model=output.model,
        input_count=len(candidates),
        output_count=len(chunks),
        rerank_ms=round(rerank_ms, 2),
    )
    return RerankResult(
        chunks=chunks,
        ranking=ranking,
        meta=RerankMeta(reranker_name=reranker.name, model=output.model),
        durations=RerankDurations(rerank_ms=rerank_ms, total_ms=total_ms),
        warnings=warnings,
    )
