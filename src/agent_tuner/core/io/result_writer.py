"""Printing and saving grid search and optimization results."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger
from rich.console import Console
from rich.table import Table

from ...models import GridSearchResult, OptimizationResult

MAX_TABLE_ROWS = 10


class ResultWriter:
    """Rich console summaries plus metrics.json and results.yaml under runs_dir/<run_id>."""

    def __init__(self, runs_dir: str = "runs", console: Optional[Console] = None):
        """Initialize writer with output directory and console."""
        self.runs_dir = Path(runs_dir)
        self.console = console or Console()

    def save_grid_result(self, result: GridSearchResult, run_id: str) -> Path:
        """Save grid search metrics and ranked results."""
        best = result.best_result
        metrics = {
            "run_id": run_id,
            "estimate_only": result.estimate_only,
            "estimated_cost": result.estimated_cost,
            "best_configuration": best.configuration.model_dump(mode="json") if best else None,
            "best_metrics": best.metrics.model_dump() if best else None,
            "statistics": result.statistics.model_dump(mode="json") if result.statistics else None,
            "recommendation": result.recommendation.model_dump(mode="json") if result.recommendation else None,
        }
        ranked = {
            "results": [
                {
                    "configuration": r.configuration.model_dump(mode="json", exclude_none=True),
                    "metrics": r.metrics.model_dump(),
                    "duration_ms": r.duration_ms,
                    "estimated_cost": r.estimated_cost,
                }
                for r in result.results
            ],
            "parameter_impact": [p.model_dump(mode="json") for p in result.parameter_impact],
        }
        return self._write(run_id, metrics, ranked)

    def save_optimization_result(self, result: OptimizationResult) -> Path:
        """Save optimization outcome and iteration history."""
        run_id = result.run_id or "tune_run"
        metrics = {
            "run_id": run_id,
            "final_score": result.final_score,
            "best_score": result.best_score,
            "iterations": result.iterations,
            "total_improvement": result.total_improvement,
            "converged": result.converged,
            "stopped_reason": result.stopped_reason,
        }
        details = {
            "final_configuration": result.final_configuration.model_dump(mode="json", exclude_none=True),
            "best_configuration": (
                result.best_configuration.model_dump(mode="json", exclude_none=True)
                if result.best_configuration else None
            ),
            "history": [step.model_dump(mode="json", exclude_none=True) for step in result.history],
            "insights": result.insights,
        }
        return self._write(run_id, metrics, details)

    def print_grid_result(self, result: GridSearchResult) -> None:
        """Print ranked configurations and the recommendation."""
        if result.estimate_only:
            self.console.print(
                f"\n[bold yellow]Estimate only:[/bold yellow] "
                f"${result.estimated_cost:.4f} for this grid"
            )
            return

        table = Table(title="Grid Search Results")
        table.add_column("#", justify="right")
        table.add_column("Configuration")
        table.add_column("Score", justify="right")
        table.add_column("RMSE", justify="right")
        table.add_column("Samples", justify="right")
        table.add_column("Cost", justify="right")
        for i, r in enumerate(result.results[:MAX_TABLE_ROWS], 1):
            table.add_row(
                str(i),
                str(r.configuration),
                f"{r.metrics.score:.3f}",
                f"{r.metrics.rmse:.3f}",
                str(r.metrics.sample_count),
                f"${r.estimated_cost:.4f}",
            )
        self.console.print(table)

        if result.statistics:
            stats = result.statistics
            self.console.print(
                f"Configurations: [cyan]{stats.total_configurations}[/cyan]  "
                f"Average score: [cyan]{stats.average_score:.3f}[/cyan]  "
                f"Estimated cost: [cyan]${stats.total_estimated_cost:.4f}[/cyan]"
            )

        recommendation = result.recommendation
        if recommendation:
            self.console.print(f"\n[bold green]{recommendation.action}[/bold green]: {recommendation.summary}")
            for insight in recommendation.parameter_insights:
                self.console.print(f"  - {insight}")
            for step in recommendation.next_steps:
                self.console.print(f"  > {step}")
        self.console.print()

    def print_optimization_result(self, result: OptimizationResult, analysis: Optional[Dict[str, Any]] = None) -> None:
        """Print iteration history and the final outcome."""
        table = Table(title=f"Optimization {result.run_id or ''}".strip())
        table.add_column("Iteration", justify="right")
        table.add_column("Configuration")
        table.add_column("Score", justify="right")
        table.add_column("Change", justify="right")
        table.add_column("Strategies")
        for step in result.history:
            table.add_row(
                str(step.iteration + 1),
                str(step.configuration),
                f"{step.score:.3f}",
                f"{step.improvement:+.3f}",
                ", ".join(step.strategies_used),
            )
        self.console.print(table)

        self.console.print(f"Stopped: [cyan]{result.stopped_reason}[/cyan]  Converged: [cyan]{result.converged}[/cyan]")
        self.console.print(
            f"Final score: [cyan]{result.final_score:.3f}[/cyan]  "
            f"Best score: [cyan]{result.best_score:.3f}[/cyan]  "
            f"Improvement: [cyan]{result.total_improvement:+.3f}[/cyan]"
        )
        if result.best_configuration:
            self.console.print(f"Best configuration: [bold]{result.best_configuration}[/bold]")
        if analysis:
            self.console.print(f"Trend: [cyan]{analysis['trend']}[/cyan]")
            for recommendation in analysis.get("recommendations", []):
                self.console.print(f"  > {recommendation}")
        self.console.print()

    def _write(self, run_id: str, metrics: Dict[str, Any], details: Dict[str, Any]) -> Path:
        run_dir = self.runs_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        with open(run_dir / "metrics.json", "w", encoding="utf-8") as f:
            json.dump(metrics, f, indent=2, ensure_ascii=False)

        with open(run_dir / "results.yaml", "w", encoding="utf-8") as f:
            yaml.safe_dump(details, f, allow_unicode=True, default_flow_style=False, sort_keys=False)

        logger.success(f"Results saved to: {run_dir}")
        return run_dir
