"""Telemetry/event bus."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from rag_engine.schemas import EngineError, Event, EventType


def _now_iso() -> str:
    """Generate ISO-8601 timestamp."""
    return datetime.now(ZoneInfo("UTC")).isoformat()


@dataclass
class TelemetryBus:
    events: List[Event] = field(default_factory=list)
    max_events: Optional[int] = None

    def __post_init__(self):
        self._lock = threading.Lock()

    def emit(self, event: Event) -> None:
        """Record an event, dropping the oldest when ``max_events`` is exceeded."""
        with self._lock:
            self.events.append(event)
            if self.max_events is not None and len(self.events) > self.max_events:
                del self.events[: len(self.events) - self.max_events]

    def _event(self, type_: EventType, name: str, payload: Dict[str, Any]) -> None:
        self.emit(Event(
            event_id=f"{name}-{len(self.events)}",
            type=type_,
            timestamp=_now_iso(),
            payload={"event": name, **payload},
        ))

    def state_changed(self, previous: str, current: str) -> None:
        self._event(EventType.STATE, "state_changed", {"from": previous, "to": current})

    def ingest_completed(self, documents: int, chunks_added: int, durable_chunks: int, duration_ms: int) -> None:
        self._event(EventType.INGEST, "ingest_completed", {
            "documents": documents,
            "chunks_added": chunks_added,
            "durable_chunks": durable_chunks,
            "duration_ms": duration_ms,
        })

    def query_completed(self, top_k: int, results: int, reranked: bool, duration_ms: int) -> None:
        self._event(EventType.QUERY, "query_completed", {
            "top_k": top_k,
            "results": results,
            "reranked": reranked,
            "duration_ms": duration_ms,
        })

    def error(self, operation: str, error: EngineError) -> None:
        self._event(EventType.ERROR, "error", {
            "operation": operation,
            "kind": error.kind.value,
            "message": error.message,
        })

    def of_type(self, type_: EventType) -> List[Event]:
        with self._lock:
            return [e for e in self.events if e.type == type_]
