"""Unit tests for eval metrics, dataset validation, thresholds and report files."""

from __future__ import annotations

import json
import math

import pytest

from ragkit.models.evaluation import (
    EvalAggregatesForStage,
    EvalMetricsAtK,
    EvalReport,
    EvalThresholds,
    to_wire,
)
from ragkit.services.evaluation.dataset import parse_eval_dataset, read_eval_dataset
from ragkit.services.evaluation.metrics import (
    aggregate_metrics,
    compute_metrics_at_k,
    percentiles,
    unique_source_ids_in_order,
)
from ragkit.services.evaluation.report import (
    diff_eval_reports,
    read_eval_report,
    write_eval_diff_json,
    write_eval_diff_md,
    write_eval_report,
    write_eval_summary_md,
)
from ragkit.services.evaluation.runner import (
    clamp_rerank_top_k,
    evaluate_thresholds,
    merge_thresholds,
    normalize_metadata,
)
from ragkit.utils.errors import ValidationError


def _metrics(hit: float, recall: float, mrr: float, precision: float = 0.0) -> EvalMetricsAtK:
    return EvalMetricsAtK(hit_at_k=hit, recall_at_k=recall, precision_at_k=precision, mrr_at_k=mrr)


def _report_dict() -> dict:
    """A hand-written report.json with two queries in retrieve mode."""
    metrics_q1 = {"hitAtK": 1, "recallAtK": 1, "precisionAtK": 0.5, "mrrAtK": 1}
    metrics_q2 = {"hitAtK": 0, "recallAtK": 0, "precisionAtK": 0, "mrrAtK": 0}
    pct = {"p50": 10.0, "p95": 20.0}

    def query(qid: str, metrics: dict) -> dict:
        return {
            "id": qid,
            "query": f"query {qid}",
            "topK": 2,
            "scopePrefix": "eval:t:",
            "relevant": {"sourceIds": [f"eval:t:{qid}"]},
            "retrieved": {
                "sourceIds": [f"eval:t:{qid}"],
                "metrics": metrics,
                "durationsMs": {"embeddingMs": 1.0, "retrievalMs": 2.0, "totalMs": 3.0},
            },
        }

    return {
        "version": "1",
        "createdAt": "2026-01-01T00:00:00Z",
        "dataset": {"id": "t", "version": "1"},
        "config": {
            "mode": "retrieve",
            "topK": 2,
            "scopePrefix": "eval:t:",
            "ingest": True,
            "cleanup": "none",
            "includeNdcg": False,
        },
        "engine": {"embeddingModel": "hashing:test"},
        "results": {
            "queries": [query("q1", metrics_q1), query("q2", metrics_q2)],
            "aggregates": {
                "retrieved": {
                    "mean": {"hitAtK": 0.5, "recallAtK": 0.5, "precisionAtK": 0.25, "mrrAtK": 0.5},
                    "median": {"hitAtK": 0.5, "recallAtK": 0.5, "precisionAtK": 0.25, "mrrAtK": 0.5},
                }
            },
            "timings": {
                "embeddingMs": pct,
                "retrievalMs": pct,
                "retrieveTotalMs": pct,
                "totalMs": pct,
            },
            "thresholdFailures": [],
            "passed": True,
        },
    }


# ======================================================================
# Metrics
# ======================================================================


class TestMetrics:
    def test_basic_metrics(self) -> None:
        m = compute_metrics_at_k(["A", "C", "B", "D"], ["A", "B"], 4)
        assert m.hit_at_k == 1.0
        assert m.recall_at_k == 1.0
        assert m.precision_at_k == 0.5
        assert m.mrr_at_k == 1.0
        assert m.ndcg_at_k is None

    def test_duplicates_collapse_before_cutoff(self) -> None:
        m = compute_metrics_at_k(["C", "C", "A"], ["A"], 2)
        assert m.mrr_at_k == 0.5
        assert m.precision_at_k == 0.5

    def test_no_relevant_documents(self) -> None:
        m = compute_metrics_at_k(["A"], [], 3)
        assert m.recall_at_k == 0.0
        assert m.hit_at_k == 0.0

    def test_k_is_floored_and_at_least_one(self) -> None:
        assert compute_metrics_at_k(["X", "A"], ["A"], 2.9).hit_at_k == 1.0
        assert compute_metrics_at_k(["X", "A"], ["A"], 1.9).hit_at_k == 0.0
        assert compute_metrics_at_k(["A"], ["A"], 0).precision_at_k == 1.0

    def test_ndcg(self) -> None:
        assert compute_metrics_at_k(["A"], ["A"], 3, include_ndcg=True).ndcg_at_k == pytest.approx(1.0)
        m = compute_metrics_at_k(["C", "A"], ["A"], 2, include_ndcg=True)
        assert m.ndcg_at_k == pytest.approx(1 / math.log2(3))

    def test_unique_source_ids_in_order(self) -> None:
        assert unique_source_ids_in_order(["b", "", "a", "b"]) == ["b", "a"]

    def test_percentiles_interpolate(self) -> None:
        p = percentiles([4, 1, 3, 2])
        assert p.p50 == pytest.approx(2.5)
        assert p.p95 == pytest.approx(3.85)

    def test_percentiles_ignore_non_finite(self) -> None:
        assert percentiles([1.0, float("nan"), 3.0]).p50 == pytest.approx(2.0)
        assert percentiles([]).p95 == 0.0

    def test_aggregate_mean_and_median(self) -> None:
        agg = aggregate_metrics([_metrics(1, 1, 1), _metrics(0, 0, 0), _metrics(1, 0.5, 0.5)])
        assert agg.mean.recall_at_k == pytest.approx(0.5)
        assert agg.median.mrr_at_k == pytest.approx(0.5)
        assert agg.mean.ndcg_at_k is None


# ======================================================================
# Dataset validation
# ======================================================================


class TestDataset:
    def test_minimal_dataset_parses(self, minimal_dataset) -> None:
        dataset = parse_eval_dataset(minimal_dataset)
        assert dataset.defaults.scope_prefix == "eval:sample:"
        assert dataset.defaults.top_k == 3
        assert [q.id for q in dataset.queries] == ["q1", "q2"]

    def test_missing_scope_prefix(self, minimal_dataset) -> None:
        del minimal_dataset["defaults"]["scopePrefix"]
        with pytest.raises(ValidationError, match=r"\$\.defaults\.scopePrefix"):
            parse_eval_dataset(minimal_dataset)

    def test_document_needs_content_or_loader_ref(self, minimal_dataset) -> None:
        minimal_dataset["documents"][1] = {"sourceId": "eval:sample:empty"}
        with pytest.raises(ValidationError, match=r"\$\.documents\[1\]"):
            parse_eval_dataset(minimal_dataset)

    def test_queries_must_be_non_empty(self, minimal_dataset) -> None:
        minimal_dataset["queries"] = []
        with pytest.raises(ValidationError, match=r"\$\.queries"):
            parse_eval_dataset(minimal_dataset)

    def test_relevant_source_ids_must_be_array(self, minimal_dataset) -> None:
        minimal_dataset["queries"][0]["relevant"]["sourceIds"] = "eval:sample:doc-cats"
        with pytest.raises(ValidationError, match="must be an array"):
            parse_eval_dataset(minimal_dataset)

    @pytest.mark.parametrize("version", [None, 1, "2"])
    def test_version_must_be_one(self, minimal_dataset, version) -> None:
        minimal_dataset["version"] = version
        with pytest.raises(ValidationError, match=r"\$\.version"):
            parse_eval_dataset(minimal_dataset)

    def test_invalid_mode(self, minimal_dataset) -> None:
        minimal_dataset["defaults"]["mode"] = "rerank-only"
        with pytest.raises(ValidationError, match="mode"):
            parse_eval_dataset(minimal_dataset)

    def test_top_k_is_floored(self, minimal_dataset) -> None:
        minimal_dataset["defaults"]["topK"] = 3.7
        minimal_dataset["queries"][0]["rerankTopK"] = 9.2
        dataset = parse_eval_dataset(minimal_dataset)
        assert dataset.defaults.top_k == 3
        assert dataset.queries[0].rerank_top_k == 9

    @pytest.mark.parametrize("top_k", [0, -2, 0.5])
    def test_top_k_must_be_positive(self, minimal_dataset, top_k) -> None:
        minimal_dataset["queries"][1]["topK"] = top_k
        with pytest.raises(ValidationError, match=r"\$\.queries\[1\]\.topK: must be at least 1"):
            parse_eval_dataset(minimal_dataset)

    def test_default_top_k_must_be_positive(self, minimal_dataset) -> None:
        minimal_dataset["defaults"]["topK"] = -1
        with pytest.raises(ValidationError, match=r"\$\.defaults\.topK"):
            parse_eval_dataset(minimal_dataset)

    def test_thresholds_parsed(self, minimal_dataset) -> None:
        minimal_dataset["defaults"]["thresholds"] = {"min": {"recallAtK": 0.8}, "max": {"p95TotalMs": 500}}
        thresholds = parse_eval_dataset(minimal_dataset).defaults.thresholds
        assert thresholds.minimum.recall_at_k == 0.8
        assert thresholds.maximum.p95_total_ms == 500

    def test_read_from_file(self, tmp_path, minimal_dataset) -> None:
        path = tmp_path / "dataset.json"
        path.write_text(json.dumps(minimal_dataset), encoding="utf-8")
        assert read_eval_dataset(path).id == "sample"

        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationError, match="Failed to parse dataset JSON"):
            read_eval_dataset(path)

    def test_unreadable_file(self, tmp_path) -> None:
        with pytest.raises(ValidationError, match="Cannot read dataset file"):
            read_eval_dataset(tmp_path / "absent.json")

        latin1 = tmp_path / "latin1.json"
        latin1.write_bytes('{"id": "caf\xe9"}'.encode("latin-1"))
        with pytest.raises(ValidationError, match="Cannot read dataset file"):
            read_eval_dataset(latin1)


# ======================================================================
# Runner helpers
# ======================================================================


class TestRunnerHelpers:
    @pytest.mark.parametrize(
        ("top_k", "requested", "expected"),
        [(5, float("nan"), 15), (5, 0, 15), (5, -3, 15), (5, 2, 5), (5, 7.9, 7), (5, 20, 20)],
    )
    def test_clamp_rerank_top_k(self, top_k, requested, expected) -> None:
        assert clamp_rerank_top_k(top_k, requested) == expected

    def test_merge_thresholds_override_wins(self) -> None:
        base = EvalThresholds.model_validate({"min": {"recallAtK": 0.5, "hitAtK": 0.9}})
        merged = merge_thresholds(base, {"min": {"recallAtK": 0.7}, "max": {"p95TotalMs": 100}})
        assert merged.minimum.recall_at_k == 0.7
        assert merged.minimum.hit_at_k == 0.9
        assert merged.maximum.p95_total_ms == 100

    def test_merge_thresholds_without_base(self) -> None:
        assert merge_thresholds(None, None) == EvalThresholds()

    def test_evaluate_thresholds_messages(self) -> None:
        agg = EvalAggregatesForStage(mean=_metrics(1.0, 0.5, 0.25), median=_metrics(1.0, 0.5, 0.25))
        thresholds = EvalThresholds.model_validate(
            {"min": {"recallAtK": 0.75, "hitAtK": 0.5}, "max": {"p95TotalMs": 800}}
        )
        failures = evaluate_thresholds(thresholds, agg, 812.34)
        assert failures == [
            "min.recallAtK: expected >= 0.75, got 0.500",
            "max.p95TotalMs: expected <= 800, got 812.3ms",
        ]

    def test_evaluate_thresholds_pass(self) -> None:
        agg = EvalAggregatesForStage(mean=_metrics(1.0, 1.0, 1.0), median=_metrics(1.0, 1.0, 1.0))
        thresholds = EvalThresholds.model_validate({"min": {"recallAtK": 1.0}})
        assert evaluate_thresholds(thresholds, agg, 5.0) == []

    def test_normalize_metadata(self) -> None:
        raw = {"a": 1, "b": "x", "c": {"nested": True}, "d": [1, {"no": 1}, "y"], "e": None}
        assert normalize_metadata(raw) == {"a": 1, "b": "x", "d": [1, "y"], "e": None}
        assert normalize_metadata(None) is None


# ======================================================================
# Reports and diffs
# ======================================================================


class TestReportFiles:
    def test_report_round_trip(self, tmp_path) -> None:
        report = EvalReport.model_validate(_report_dict())
        path = write_eval_report(tmp_path / "run", report)
        assert path.name == "report.json"
        assert path.read_text(encoding="utf-8").endswith("\n")
        assert read_eval_report(path) == report

    def test_missing_report_file(self, tmp_path) -> None:
        with pytest.raises(ValidationError, match="Cannot read report file"):
            read_eval_report(tmp_path / "report.json")

    def test_wire_form_is_camel_case(self) -> None:
        wire = to_wire(EvalReport.model_validate(_report_dict()))
        assert "createdAt" in wire
        assert "scopePrefix" in wire["config"]
        assert "rerankTopK" not in wire["config"]

    def test_summary_lists_worst_queries_first(self, tmp_path) -> None:
        report = EvalReport.model_validate(_report_dict())
        text = write_eval_summary_md(tmp_path, report).read_text(encoding="utf-8")
        assert text.startswith("# ragkit Eval Report\n")
        assert "- Dataset: `t`" in text
        assert "| recall@k | 0.500 | 0.500 |" in text
        worst = text.split("## Worst queries", 1)[1]
        assert worst.index("`q2`") < worst.index("`q1`")
        assert "## Reranked" not in text

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ("{oops", "Failed to parse report JSON"),
            ("[]", "must be an object"),
            ('{"version": "2"}', "Unsupported report version"),
            ('{"version": "1"}', "Invalid report JSON"),
        ],
    )
    def test_read_errors(self, tmp_path, content, message) -> None:
        path = tmp_path / "report.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValidationError, match=message):
            read_eval_report(path)

    def test_diff_finds_recall_regressions(self, tmp_path) -> None:
        baseline = EvalReport.model_validate(_report_dict())
        candidate_raw = _report_dict()
        candidate_raw["results"]["queries"][0]["retrieved"]["metrics"]["recallAtK"] = 0
        candidate_raw["results"]["queries"].append(
            {**candidate_raw["results"]["queries"][1], "id": "q3"}
        )
        candidate_raw["results"]["aggregates"]["retrieved"]["mean"]["recallAtK"] = 0.0
        candidate_raw["results"]["timings"]["totalMs"] = {"p50": 10.0, "p95": 35.5}
        candidate = EvalReport.model_validate(candidate_raw)

        diff = diff_eval_reports(baseline, candidate, "base/report.json", "cand/report.json")

        assert diff.deltas.retrieved.recall_at_k == pytest.approx(-0.5)
        assert diff.deltas.reranked is None
        assert diff.deltas.p95_total_ms == pytest.approx(15.5)
        assert [r.id for r in diff.worst_regressions] == ["q1", "q2", "q3"]
        assert diff.worst_regressions[0].delta_recall_at_k == -1.0
        assert diff.baseline.report_path == "base/report.json"

        json_path = write_eval_diff_json(tmp_path, diff)
        assert json.loads(json_path.read_text(encoding="utf-8"))["worstRegressions"][0]["id"] == "q1"

        md = write_eval_diff_md(tmp_path, diff).read_text(encoding="utf-8")
        assert md.startswith("# ragkit Eval Diff\n")
        assert "| recall@k | -0.500 | — |" in md
        assert "- p95 total ms Δ: `15.5ms`" in md


def test_bundled_sample_dataset_parses(project_root) -> None:
    dataset = read_eval_dataset(project_root / "eval" / "datasets" / "sample.json")
    assert dataset.defaults.scope_prefix == "eval:sample:"
    assert dataset.defaults.thresholds.minimum.recall_at_k == 0.5
    assert len(dataset.documents) == 3
    assert [q.id for q in dataset.queries] == ["q-onboarding", "q-deploy-time", "q-incident"]
