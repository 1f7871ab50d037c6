"""Optimization state persistence."""

import json
from pathlib import Path
from typing import Optional

from loguru import logger

from ...errors import ConfigurationError
from .optimization_state import OptimizationState

STATE_FILENAME = "state.json"


class CheckpointStore:
    """Persist and restore optimization state under a runs directory."""

    def __init__(self, runs_dir: Optional[str] = None):
        """Initialize store; defaults to ./runs."""
        self.runs_dir = Path(runs_dir) if runs_dir else Path.cwd() / "runs"

    def resolve_state_path(self, resume_from: str) -> Path:
        """Resolve resume state path from a run directory or a state file."""
        path = Path(resume_from)
        if path.is_dir():
            return path / STATE_FILENAME
        return path

    def run_dir(self, run_id: str) -> Path:
        return self.runs_dir / run_id

    def save(self, state: OptimizationState) -> Path:
        """Write state to <runs_dir>/<run_id>/state.json."""
        run_dir = self.run_dir(state.run_id)
        run_dir.mkdir(parents=True, exist_ok=True)
        state_path = run_dir / STATE_FILENAME
        state_path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        logger.debug(f"Checkpoint saved: {state_path} (iteration {state.iteration_count})")
        return state_path

    def load(self, resume_from: str) -> OptimizationState:
        """Load state for resume."""
        state_path = self.resolve_state_path(resume_from)
        if not state_path.exists():
            raise ConfigurationError(f"State file not found: {state_path}")
        state = OptimizationState.from_dict(json.loads(state_path.read_text(encoding="utf-8")))
        logger.info(f"Loaded state {state.run_id} at iteration {state.iteration_count}")
        return state
