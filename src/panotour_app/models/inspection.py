"""Injectable inspection context for navigation diagnostics."""
from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any, Callable, Dict, List

from loguru import logger


@dataclass(slots=True, frozen=True)
class InspectionEvent:
    timestamp: float
    name: str
    fields: Dict[str, Any]


@dataclass(slots=True)
class InspectionContext:
    """Collects navigation events for the component it is handed to.

    Components accept an optional context; tests and the debug overlay pass
    one in and read :attr:`events` afterwards.
    """

    max_events: int = 500
    clock: Callable[[], float] = time.monotonic
    events: List[InspectionEvent] = field(default_factory=list)

    def record(self, name: str, **fields: Any) -> None:
        event = InspectionEvent(self.clock(), name, fields)
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]
        logger.debug("{} {}", name, fields)

    def names(self) -> List[str]:
        return [event.name for event in self.events]

    def last(self, name: str) -> InspectionEvent | None:
        for event in reversed(self.events):
            if event.name == name:
                return event
        return None

    def clear(self) -> None:
        self.events.clear()
