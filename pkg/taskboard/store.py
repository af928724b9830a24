"""
Task store: the authoritative in-memory collection of tasks.

Every mutation goes through the backend first. The collection is only
touched after the backend call returns, so a failed call leaves it exactly
as it was. Committed mutations are reported to subscribers (the board view)
as a Change, in commit order.

Mutations on the same task id are serialized: while one is in flight a
second raises MutationInFlight. Mutations on different ids do not block
each other.
"""
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from .errors import MutationInFlight, NotFound
from .schema import Assignee, Priority, Task, TaskStatus
from .sync import CREATE, DELETE, RESET, UPDATE, Change

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "assignee", "due_date", "priority", "status")
DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")

_COERCE = {
    "assignee": Assignee.from_str,
    "priority": Priority.from_str,
    "status": TaskStatus.from_str,
}


@dataclass
class UpdateResult:
    task: Task
    previous_status: TaskStatus

    @property
    def status_changed(self) -> bool:
        return self.task.status != self.previous_status


def _coerce(name: str, value: Any) -> Any:
    if name in _COERCE and not isinstance(value, (Assignee, Priority, TaskStatus)):
        return _COERCE[name](value)
    if name == "due_date":
        value = (value or "").strip()
        if value and not DATE_RE.fullmatch(value):
            raise ValueError(f"due_date must be YYYY-MM-DD, got {value!r}")
        return value
    if name in ("title", "description"):
        return (value or "").strip()
    return value


def build_draft(data: Union[Task, Dict[str, Any]]) -> Task:
    """Validate a new-task form. Title is required; everything else has a default."""
    if isinstance(data, Task):
        data = data.to_dict()
    unknown = set(data) - set(EDITABLE_FIELDS) - {"id", "created_at", "number", "url"}
    if unknown:
        raise ValueError(f"Unknown task fields: {sorted(unknown)}")

    fields = {name: _coerce(name, data.get(name)) for name in EDITABLE_FIELDS}
    if not fields["title"]:
        raise ValueError("title is required")
    return Task(id="", **fields)


def merge(task: Task, changes: Dict[str, Any]) -> Task:
    """Shallow merge: every given field replaces the old value, the rest is kept."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {sorted(unknown)}")
    merged = replace(task, **{name: _coerce(name, value) for name, value in changes.items()})
    if not merged.title:
        raise ValueError("title is required")
    return merged


class TaskStore:
    """In-memory task collection kept in step with a backend."""

    def __init__(self, backend):
        self.backend = backend
        self._tasks: List[Task] = []
        self._lock = threading.Lock()
        # Held from commit until every subscriber saw the change, so
        # subscribers receive changes in commit order
        self._emit_lock = threading.RLock()
        self._in_flight: Set[str] = set()
        self.subscribers: List[Callable[[Change, Tuple[Task, ...]], Any]] = []

    def subscribe(self, callback: Callable[[Change, Tuple[Task, ...]], Any]) -> None:
        """Register a callback receiving (change, collection) after each commit."""
        self.subscribers.append(callback)

    def _emit(self, change: Change) -> None:
        snapshot = self.list()
        for callback in self.subscribers:
            try:
                callback(change, snapshot)
            except Exception:
                logger.exception(f"Error in {change.kind} subscriber")

    @contextmanager
    def _claim(self, task_id: str):
        with self._lock:
            if task_id in self._in_flight:
                raise MutationInFlight(task_id)
            self._in_flight.add(task_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(task_id)

    def _index(self, task_id: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        return -1

    # ──────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────

    def list(self) -> Tuple[Task, ...]:
        with self._lock:
            return tuple(self._tasks)

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            i = self._index(task_id)
            return self._tasks[i] if i >= 0 else None

    def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Board statistics grouped by status and assignee."""
        today = (today or date.today()).isoformat()
        tasks = self.list()
        by_assignee: Dict[str, int] = {}
        for t in tasks:
            key = t.assignee.value or "unassigned"
            by_assignee[key] = by_assignee.get(key, 0) + 1
        return {
            "total": len(tasks),
            "by_status": {s.value: sum(1 for t in tasks if t.status == s) for s in TaskStatus},
            "by_assignee": by_assignee,
            "overdue": sum(
                1 for t in tasks
                if t.due_date and t.due_date < today and t.status != TaskStatus.DONE
            ),
        }

    # ──────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────

    def create(self, draft: Union[Task, Dict[str, Any]]) -> Task:
        """Create through the backend, then append the returned record."""
        task = self.backend.create(build_draft(draft))
        with self._emit_lock:
            with self._lock:
                if self._index(task.id) >= 0:
                    raise ValueError(f"Backend returned duplicate id {task.id!r}")
                self._tasks.append(task)
            self._emit(Change(CREATE, task))
        logger.info(f"Created task {task.id}: {task.title} [{task.status.value}]")
        return task

    def update(self, task_id: str, changes: Dict[str, Any]) -> UpdateResult:
        """
        Merge `changes` over the task and send the full merged record.

        Raises NotFound for an unknown id. On backend failure the collection
        is unchanged and the error propagates.
        """
        with self._claim(task_id):
            current = self.get(task_id)
            if current is None:
                raise NotFound(task_id)
            saved = self.backend.update(merge(current, changes))
            with self._emit_lock:
                with self._lock:
                    i = self._index(task_id)
                    if i >= 0:
                        self._tasks[i] = saved
                    else:
                        self._tasks.append(saved)
                if i >= 0:
                    self._emit(Change(UPDATE, saved, previous_status=current.status))
                else:
                    # dropped by a refresh while the update was in flight
                    logger.debug(f"Task {task_id} re-added after a refresh")
                    self._emit(Change(CREATE, saved))

        result = UpdateResult(saved, previous_status=current.status)
        if result.status_changed:
            logger.info(f"Moved task {task_id}: {current.status.value} → {saved.status.value}")
        else:
            logger.info(f"Updated task {task_id}")
        return result

    def delete(self, task_id: str) -> Optional[Task]:
        """
        Tombstone the task on the backend, then drop it locally.

        Unknown ids are a no-op. The local removal only happens once the
        backend confirmed; a failure propagates and keeps the task.
        """
        with self._claim(task_id):
            current = self.get(task_id)
            if current is None:
                logger.debug(f"Delete of unknown task {task_id} ignored")
                return None
            self.backend.remove(current)
            with self._emit_lock:
                with self._lock:
                    self._tasks = [t for t in self._tasks if t.id != task_id]
                self._emit(Change(DELETE, current))

        logger.info(f"Deleted task {task_id}")
        return current

    def refresh_all(self) -> Tuple[Task, ...]:
        """Replace the whole collection with what the backend holds now."""
        tasks = self.backend.fetch_all()
        with self._emit_lock:
            with self._lock:
                self._tasks = list(tasks)
            self._emit(Change(RESET))
            snapshot = self.list()
        logger.info(f"Loaded {len(tasks)} tasks")
        return snapshot
