"""Progress event delivery."""

from typing import Any, Optional

from loguru import logger

from ..models import ProgressEvent, ProgressSink
from ..models.events import EventType


class EventEmitter:
    """Builds typed events and hands them to an optional sink."""

    def __init__(self, sink: Optional[ProgressSink] = None, enabled: bool = True):
        self.sink = sink
        self.enabled = enabled

    def emit(self, event_type: EventType, message: str = "", **fields: Any) -> None:
        """Deliver an event; sink errors are logged and never reach the caller."""
        if self.sink is None or not self.enabled:
            return
        event = ProgressEvent(type=event_type, message=message, **fields)
        try:
            self.sink(event)
        except Exception as e:
            logger.warning(f"Progress sink failed on '{event_type}' event: {e}")
