"""
In-Memory Stores

Playbook catalog, execution ledger and response action ledger.
Each store guards its container with a lock so executions started
from different threads can share them. Readers get list snapshots.
"""

import threading
from typing import TYPE_CHECKING, Generic, Iterator, Optional, TypeVar

from soar_engine.store.models import ExecutionStatus, PlaybookExecution, ResponseAction

if TYPE_CHECKING:
    from soar_engine.orchestrator.playbooks import Playbook


T = TypeVar("T")


class _AppendOnlyLedger(Generic[T]):
    """Ordered, append-only record list."""

    def __init__(self):
        self._records: list[T] = []
        self._lock = threading.Lock()

    def append(self, record: T) -> None:
        with self._lock:
            self._records.append(record)

    def all(self) -> list[T]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self.all())


class ActionLedger(_AppendOnlyLedger[ResponseAction]):
    """Every response action the executor has run."""


class ExecutionLedger(_AppendOnlyLedger[PlaybookExecution]):
    """Every playbook execution, including ones still running."""

    def get(self, execution_id: str) -> Optional[PlaybookExecution]:
        with self._lock:
            for execution in self._records:
                if execution.execution_id == execution_id:
                    return execution
        return None

    def count_by_status(self) -> dict[ExecutionStatus, int]:
        counts = {status: 0 for status in ExecutionStatus}
        with self._lock:
            for execution in self._records:
                counts[execution.status] += 1
        return counts


class PlaybookCatalog:
    """Playbooks keyed by id, kept in registration order."""

    def __init__(self):
        self._playbooks: dict[str, "Playbook"] = {}
        self._lock = threading.Lock()

    def register(self, playbook: "Playbook") -> Optional["Playbook"]:
        """Add or replace a playbook. Returns the replaced entry, if any."""
        with self._lock:
            previous = self._playbooks.get(playbook.id)
            self._playbooks[playbook.id] = playbook
            return previous

    def get(self, playbook_id: str) -> Optional["Playbook"]:
        with self._lock:
            return self._playbooks.get(playbook_id)

    def all(self) -> list["Playbook"]:
        with self._lock:
            return list(self._playbooks.values())

    def clear(self) -> None:
        with self._lock:
            self._playbooks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._playbooks)

    def __contains__(self, playbook_id: object) -> bool:
        with self._lock:
            return playbook_id in self._playbooks
