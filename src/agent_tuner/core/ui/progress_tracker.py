"""Progress bar for grid search and optimization runs using tqdm."""

from types import TracebackType
from typing import Optional, Type

from tqdm import tqdm

from ...models import ProgressEvent


class ProgressTracker:
    """tqdm bar that consumes ProgressEvents; pass the instance as a progress sink."""

    def __init__(self, total: int = 0, desc: str = "Tuning", unit: str = "cfg"):
        """Initialize tracker; total may be corrected by the first event."""
        self.total = total
        self.desc = desc
        self.unit = unit
        self.best_score: Optional[float] = None
        self._pbar: Optional[tqdm] = None

    def start(self) -> None:
        """Start the progress bar."""
        self._pbar = tqdm(
            total=self.total or None,
            desc=self.desc,
            unit=self.unit,
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]",
            dynamic_ncols=True,
        )

    def close(self) -> None:
        """Close the progress bar."""
        if self._pbar:
            self._pbar.close()
            self._pbar = None

    def __enter__(self) -> "ProgressTracker":
        """Enter progress context."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        """Exit progress context."""
        self.close()

    def __call__(self, event: ProgressEvent) -> None:
        self.handle(event)

    def handle(self, event: ProgressEvent) -> None:
        """Advance the bar to the event's completed count and refresh the postfix."""
        if event.best_score is not None:
            self.best_score = event.best_score
        if self._pbar is None:
            return

        if event.total and self._pbar.total != event.total:
            self._pbar.total = event.total
            self.total = event.total
        if event.completed > self._pbar.n:
            self._pbar.update(event.completed - self._pbar.n)

        postfix = {"status": event.type}
        if self.best_score is not None:
            postfix["best"] = f"{self.best_score:.3f}"
        self._pbar.set_postfix(postfix, refresh=True)
