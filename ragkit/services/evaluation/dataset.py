"""Loading and structural validation of eval datasets (version ``"1"``).

Validation runs before any ingestion and reports the first problem with a
JSONPath-like location, e.g.::

    Invalid dataset at $.queries[2].relevant.sourceIds: must be an array
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from ragkit.models.evaluation import (
    EvalDataset,
    EvalDatasetDefaults,
    EvalDatasetDocument,
    EvalDatasetQuery,
    EvalRelevant,
    EvalThresholds,
    MaxThresholds,
    MinThresholds,
)
from ragkit.utils.errors import ValidationError

_MODES = ("retrieve", "retrieve+rerank")


def _err(path: str, msg: str) -> ValidationError:
    return ValidationError(f"Invalid dataset at {path}: {msg}")


def _is_object(x: Any) -> bool:
    return isinstance(x, dict)


def _non_empty_string(x: Any, path: str) -> str:
    if not isinstance(x, str) or not x.strip():
        raise _err(path, "must be a non-empty string")
    return x


def _optional_string(x: Any, path: str) -> str | None:
    return None if x is None else _non_empty_string(x, path)


def _optional_number(x: Any, path: str) -> float | None:
    if x is None:
        return None
    if isinstance(x, bool) or not isinstance(x, (int, float)) or not math.isfinite(x):
        raise _err(path, "must be a finite number")
    return float(x)


def _optional_int(x: Any, path: str) -> int | None:
    value = _optional_number(x, path)
    return None if value is None else math.floor(value)


def _optional_top_k(x: Any, path: str) -> int | None:
    value = _optional_int(x, path)
    if value is not None and value < 1:
        raise _err(path, "must be at least 1")
    return value


def _string_array(x: Any, path: str) -> list[str]:
    if not isinstance(x, list):
        raise _err(path, "must be an array")
    return [_non_empty_string(v, f"{path}[{i}]") for i, v in enumerate(x)]


def parse_thresholds(x: Any, path: str) -> EvalThresholds | None:
    """Parse a ``{min: {...}, max: {...}}`` block; non-object halves are ignored."""
    if x is None:
        return None
    if not _is_object(x):
        raise _err(path, "must be an object")
    minimum = None
    maximum = None
    if _is_object(x.get("min")):
        m = x["min"]
        minimum = MinThresholds(
            hit_at_k=_optional_number(m.get("hitAtK"), f"{path}.min.hitAtK"),
            recall_at_k=_optional_number(m.get("recallAtK"), f"{path}.min.recallAtK"),
            mrr_at_k=_optional_number(m.get("mrrAtK"), f"{path}.min.mrrAtK"),
        )
    if _is_object(x.get("max")):
        maximum = MaxThresholds(
            p95_total_ms=_optional_number(x["max"].get("p95TotalMs"), f"{path}.max.p95TotalMs"),
        )
    return EvalThresholds(minimum=minimum, maximum=maximum)


def _parse_defaults(x: Any) -> EvalDatasetDefaults:
    if not _is_object(x):
        raise _err("$.defaults", "must be an object")
    mode = x.get("mode")
    if mode is not None:
        _non_empty_string(mode, "$.defaults.mode")
        if mode not in _MODES:
            raise _err("$.defaults.mode", 'must be "retrieve" or "retrieve+rerank"')
    return EvalDatasetDefaults(
        scope_prefix=_non_empty_string(x.get("scopePrefix"), "$.defaults.scopePrefix"),
        top_k=_optional_top_k(x.get("topK"), "$.defaults.topK"),
        mode=mode,
        rerank_top_k=_optional_int(x.get("rerankTopK"), "$.defaults.rerankTopK"),
        thresholds=parse_thresholds(x.get("thresholds"), "$.defaults.thresholds"),
    )


def _parse_documents(x: Any) -> list[EvalDatasetDocument] | None:
    if x is None:
        return None
    if not isinstance(x, list):
        raise _err("$.documents", "must be an array")
    documents: list[EvalDatasetDocument] = []
    for i, d in enumerate(x):
        path = f"$.documents[{i}]"
        if not _is_object(d):
            raise _err(path, "must be an object")
        source_id = _non_empty_string(d.get("sourceId"), f"{path}.sourceId")
        content = _optional_string(d.get("content"), f"{path}.content")
        loader_ref = _optional_string(d.get("loaderRef"), f"{path}.loaderRef")
        if not content and not loader_ref:
            raise _err(path, 'must include "content" or "loaderRef"')
        metadata = d.get("metadata")
        if metadata is not None and not _is_object(metadata):
            raise _err(f"{path}.metadata", "must be an object")
        documents.append(
            EvalDatasetDocument(
                source_id=source_id,
                content=content,
                loader_ref=loader_ref,
                metadata=metadata,
                assets=d.get("assets"),
            )
        )
    return documents


def _parse_queries(x: Any) -> list[EvalDatasetQuery]:
    if not isinstance(x, list) or not x:
        raise _err("$.queries", "must be a non-empty array")
    queries: list[EvalDatasetQuery] = []
    for i, q in enumerate(x):
        path = f"$.queries[{i}]"
        if not _is_object(q):
            raise _err(path, "must be an object")
        relevant = q.get("relevant")
        if not _is_object(relevant):
            raise _err(f"{path}.relevant", "must be an object")
        queries.append(
            EvalDatasetQuery(
                id=_non_empty_string(q.get("id"), f"{path}.id"),
                query=_non_empty_string(q.get("query"), f"{path}.query"),
                top_k=_optional_top_k(q.get("topK"), f"{path}.topK"),
                scope_prefix=_optional_string(q.get("scopePrefix"), f"{path}.scopePrefix"),
                rerank_top_k=_optional_int(q.get("rerankTopK"), f"{path}.rerankTopK"),
                relevant=EvalRelevant(
                    source_ids=_string_array(relevant.get("sourceIds"), f"{path}.relevant.sourceIds")
                ),
                notes=_optional_string(q.get("notes"), f"{path}.notes"),
            )
        )
    return queries


def parse_eval_dataset(raw: Any) -> EvalDataset:
    """Validate a decoded JSON value and return an :class:`EvalDataset`.

    Raises
    ------
    ValidationError
        On the first structural problem found.
    """
    if not _is_object(raw):
        raise _err("$", "must be an object")
    if raw.get("version") != "1":
        raise _err("$.version", 'must be "1"')
    return EvalDataset(
        id=_non_empty_string(raw.get("id"), "$.id"),
        description=_optional_string(raw.get("description"), "$.description"),
        defaults=_parse_defaults(raw.get("defaults")),
        documents=_parse_documents(raw.get("documents")),
        queries=_parse_queries(raw.get("queries")),
    )


def read_eval_dataset(path: str | Path) -> EvalDataset:
    """Read and validate a dataset JSON file.

    Raises
    ------
    ValidationError
        If the file cannot be read, is not JSON or fails validation.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Cannot read dataset file ({path}): {exc}") from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Failed to parse dataset JSON ({path}): {exc}") from exc
    return parse_eval_dataset(raw)
