"""
Run State Module

Phase, progress and record set of a run, plus the read-only views handed to
observers. Only the crawl controller mutates a RunState.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from harvester.models import Record


def copy_record(record: Record) -> Record:
    """Copy a record so list values are not shared with the run state."""
    return {
        key: list(value) if isinstance(value, list) else value
        for key, value in record.items()
    }


class RunPhase(Enum):
    """Phase of the crawl controller."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in (RunPhase.RUNNING, RunPhase.PAUSED)


@dataclass(frozen=True)
class Progress:
    """
    Progress counters of a run.

    current counts processed pages; total is the page budget or None when
    pagination is unbounded.
    """

    current: int = 0
    total: Optional[int] = None
    record_count: int = 0
    started_at: Optional[float] = None
    ended_at: Optional[float] = None

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        if self.started_at is None:
            return 0.0
        end = self.ended_at if self.ended_at is not None else time.time()
        return end - self.started_at

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "current": self.current,
            "total": self.total,
            "record_count": self.record_count,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_seconds": round(self.duration, 2),
        }


@dataclass(frozen=True)
class RunSnapshot:
    """Consistent, immutable view of a RunState."""

    phase: RunPhase
    records: Tuple[Record, ...]
    error: Optional[str]
    progress: Progress


@dataclass
class RunState:
    """Mutable run state owned by the crawl controller."""

    phase: RunPhase = RunPhase.IDLE
    records: List[Record] = field(default_factory=list)
    error: Optional[str] = None
    progress: Progress = field(default_factory=Progress)

    def reset(self, total: Optional[int]) -> None:
        """Start a fresh run."""
        self.phase = RunPhase.RUNNING
        self.records = []
        self.error = None
        self.progress = Progress(total=total, started_at=time.time())

    def add_page(self, records: List[Record]) -> None:
        """Append one page worth of records and count the page."""
        self.records.extend(records)
        self.progress = replace(
            self.progress,
            current=self.progress.current + 1,
            record_count=len(self.records),
        )

    def finish(self, phase: RunPhase, error: Optional[str] = None) -> None:
        """Move to a phase that ends the run."""
        self.phase = phase
        self.error = error
        self.progress = replace(self.progress, ended_at=time.time())

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            phase=self.phase,
            records=tuple(copy_record(record) for record in self.records),
            error=self.error,
            progress=self.progress,
        )


class EventKind(Enum):
    """Kinds of events delivered to controller subscribers."""
    PHASE = "phase"
    RECORDS = "records"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class CrawlEvent:
    """
    A notification from the crawl controller.

    records holds the page batch for RECORDS events and the final record
    set for COMPLETED events.
    """

    kind: EventKind
    snapshot: RunSnapshot
    records: Tuple[Record, ...] = ()


Listener = Callable[[CrawlEvent], None]


@dataclass(frozen=True)
class HistoryEntry:
    """A completed run."""

    id: str
    address: str
    timestamp: float
    record_count: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "address": self.address,
            "timestamp": self.timestamp,
            "record_count": self.record_count,
        }


class RunHistory:
    """
    Append-only log of completed runs.

    One instance can be shared by several controllers so the whole
    process sees a single history.
    """

    def __init__(self):
        self._entries: List[HistoryEntry] = []

    def record(self, address: str, record_count: int) -> HistoryEntry:
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            address=address,
            timestamp=time.time(),
            record_count=record_count,
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
