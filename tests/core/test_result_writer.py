"""Tests for ResultWriter and ProgressTracker."""

import io
import json

import yaml
from rich.console import Console

from agent_tuner.core import ProgressTracker, ResultWriter
from agent_tuner.models import (
    GridSearchResult,
    ImprovementStep,
    OptimizationResult,
    ProgressEvent,
    TestMetrics,
    TestResult,
)

from conftest import make_configuration


def optimization_result():
    configuration = make_configuration(temperature=0.3)
    return OptimizationResult(
        run_id="tune_run_1",
        final_configuration=configuration,
        final_score=0.82,
        iterations=1,
        history=[ImprovementStep(iteration=0, configuration=configuration, score=0.82, improvement=0.82)],
        total_improvement=0.0,
        converged=False,
        stopped_reason="max-iterations",
        best_configuration=configuration,
        best_score=0.82,
        insights=["Lower temperature"]
    )


def writer(tmp_path):
    output = io.StringIO()
    return ResultWriter(str(tmp_path), console=Console(file=output, width=200)), output


class TestResultWriter:
    """save_* and print_*"""

    def test_save_optimization_result(self, tmp_path):
        result_writer, _ = writer(tmp_path)
        run_dir = result_writer.save_optimization_result(optimization_result())

        assert run_dir == tmp_path / "tune_run_1"
        metrics = json.loads((run_dir / "metrics.json").read_text(encoding="utf-8"))
        assert metrics["stopped_reason"] == "max-iterations"
        assert metrics["final_score"] == 0.82
        details = yaml.safe_load((run_dir / "results.yaml").read_text(encoding="utf-8"))
        assert details["final_configuration"]["temperature"] == 0.3
        assert details["insights"] == ["Lower temperature"]

    def test_save_grid_result(self, tmp_path):
        result_writer, _ = writer(tmp_path)
        tested = TestResult(
            configuration=make_configuration(key=None),
            metrics=TestMetrics(score=0.9, error=0.1, rmse=0.1, sample_count=10),
            duration_ms=12.0
        )
        run_dir = result_writer.save_grid_result(GridSearchResult(estimated_cost=0.01, results=[tested], best_result=tested), "grid_1")

        metrics = json.loads((run_dir / "metrics.json").read_text(encoding="utf-8"))
        assert metrics["best_metrics"]["score"] == 0.9
        details = yaml.safe_load((run_dir / "results.yaml").read_text(encoding="utf-8"))
        assert "key" not in details["results"][0]["configuration"]

    def test_print_estimate_only(self, tmp_path):
        result_writer, output = writer(tmp_path)
        result_writer.print_grid_result(GridSearchResult(estimate_only=True, estimated_cost=0.25))
        assert "$0.2500" in output.getvalue()

    def test_print_optimization_result(self, tmp_path):
        result_writer, output = writer(tmp_path)
        analysis = {"trend": "stable", "recommendations": ["Limited improvement achieved"]}
        result_writer.print_optimization_result(optimization_result(), analysis=analysis)

        text = output.getvalue()
        assert "max-iterations" in text
        assert "Limited improvement achieved" in text


class TestProgressTracker:
    """ProgressTracker as a progress sink"""

    def test_tracks_best_score_without_bar(self):
        tracker = ProgressTracker()
        tracker(ProgressEvent(type="progress", completed=1, total=3, best_score=0.7))
        assert tracker.best_score == 0.7

    def test_bar_follows_events(self):
        with ProgressTracker(desc="Grid search") as tracker:
            tracker(ProgressEvent(type="started", total=4))
            tracker(ProgressEvent(type="progress", completed=3, total=4, best_score=0.8))
            assert tracker.total == 4
            assert tracker._pbar.n == 3
        assert tracker._pbar is None
