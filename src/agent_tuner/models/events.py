"""Progress events emitted by long-running operations."""

from datetime import datetime
from typing import Any, Callable, Dict, Literal, Optional

from pydantic import BaseModel, Field

EventType = Literal["started", "progress", "completed", "error", "early_stop"]


class ProgressEvent(BaseModel):
    """Typed progress notification."""

    type: EventType
    message: str = ""
    completed: int = 0
    total: int = 0
    best_score: Optional[float] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


ProgressSink = Callable[[ProgressEvent], None]
