"""
Event Model for the Semaphore Contention Simulator.

Defines the records produced by resource accesses and a thread-safe log
that collects them.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Union


class EventType(Enum):
    """Types of events produced by the access protocols."""
    ACCESS = "access"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class AccessRecord:
    """
    One completed resource access.

    Attributes:
        worker_id: Container/client that performed the access
        resource_id: Resource accessed
        acquire_ms: Time from request start until admission
        processing_ms: Drawn in-resource work time (>= 1)
        total_ms: Time from request start until release completed
    """
    worker_id: int
    resource_id: str
    acquire_ms: float
    processing_ms: float
    total_ms: float
    event_type: EventType = EventType.ACCESS

    def __str__(self) -> str:
        return (
            f"Container {self.worker_id} accessed {self.resource_id} "
            f"(acquire={self.acquire_ms:.1f}ms, processing={self.processing_ms:.0f}ms, "
            f"total={self.total_ms:.1f}ms)"
        )


@dataclass(frozen=True)
class ConflictRecord:
    """A worker observed more concurrent users than the resource allows."""
    worker_id: int
    resource_id: str
    event_type: EventType = EventType.CONFLICT

    def __str__(self) -> str:
        return f"Container {self.worker_id} - CONFLICT on {self.resource_id}"


@dataclass(frozen=True)
class TimeoutRecord:
    """A worker failed to acquire the resource's gate within its budget."""
    worker_id: int
    resource_id: str
    event_type: EventType = EventType.TIMEOUT

    def __str__(self) -> str:
        return f"Container {self.worker_id} - TIMEOUT on {self.resource_id}"


SimulationEvent = Union[AccessRecord, ConflictRecord, TimeoutRecord]


class EventLog:
    """
    Append-only collection of simulation events.

    Safe to append from any worker thread. Order follows append order, which
    need not match wall-clock order across workers.
    """

    def __init__(self):
        self._events: List[SimulationEvent] = []
        self._lock = threading.Lock()

    def add(self, event: SimulationEvent) -> None:
        """Add an event to the log."""
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[SimulationEvent]:
        """Snapshot copy of all events."""
        with self._lock:
            return list(self._events)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_worker(self, worker_id: int) -> list:
        """Get all events produced by one worker."""
        return [e for e in self.events if e.worker_id == worker_id]

    def get_events_by_resource(self, resource_id: str) -> list:
        """Get all events concerning one resource."""
        return [e for e in self.events if e.resource_id == resource_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.events)
