"""
View sync: keeps the board view consistent with the task store.

The store reports each committed mutation as a Change. plan() turns a change
plus the current collection into a list of Patch operations touching only the
affected cards and columns. BoardView applies patches to a column model that
the server renders; it is never a source of truth.

Column counts are always recomputed from the collection, never incremented.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)

CREATE = "create"
UPDATE = "update"
DELETE = "delete"
RESET = "reset"

APPEND = "append"
REPLACE = "replace"
REMOVE = "remove"
COUNT = "count"
CLEAR = "clear"


@dataclass
class Change:
    """One committed mutation of the store."""
    kind: str                                  # create | update | delete | reset
    task: Optional[Task] = None
    previous_status: Optional[TaskStatus] = None

    @property
    def status_changed(self) -> bool:
        return (
            self.kind == UPDATE
            and self.task is not None
            and self.previous_status is not None
            and self.previous_status != self.task.status
        )


@dataclass
class Patch:
    op: str                                    # append | replace | remove | count | clear
    column: TaskStatus
    task_id: Optional[str] = None
    task: Optional[Task] = None
    count: Optional[int] = None

    def to_dict(self) -> Dict:
        data = {"op": self.op, "column": self.column.value}
        if self.task_id is not None:
            data["task_id"] = self.task_id
        if self.task is not None:
            data["task"] = self.task.to_dict()
        if self.count is not None:
            data["count"] = self.count
        return data


def column_count(tasks: Sequence[Task], status: TaskStatus) -> int:
    return sum(1 for t in tasks if t.status == status)


def column_counts(tasks: Sequence[Task]) -> Dict[TaskStatus, int]:
    return {status: column_count(tasks, status) for status in TaskStatus}


def _count(tasks: Sequence[Task], status: TaskStatus) -> Patch:
    return Patch(COUNT, status, count=column_count(tasks, status))


def plan(change: Change, tasks: Sequence[Task]) -> List[Patch]:
    """Patches that bring the view in line with `tasks` after `change`."""
    task = change.task

    if change.kind == CREATE:
        return [Patch(APPEND, task.status, task.id, task), _count(tasks, task.status)]

    if change.kind == UPDATE:
        if change.status_changed:
            old = change.previous_status
            return [
                Patch(REMOVE, old, task.id),
                Patch(APPEND, task.status, task.id, task),
                _count(tasks, old),
                _count(tasks, task.status),
            ]
        return [Patch(REPLACE, task.status, task.id, task)]

    if change.kind == DELETE:
        return [Patch(REMOVE, task.status, task.id), _count(tasks, task.status)]

    if change.kind == RESET:
        patches = [Patch(CLEAR, status) for status in TaskStatus]
        patches += [Patch(APPEND, t.status, t.id, t) for t in tasks]
        patches += [_count(tasks, status) for status in TaskStatus]
        return patches

    raise ValueError(f"Unknown change kind: {change.kind}")


class BoardView:
    """
    Column model of the board: ordered card ids per column, the card
    content keyed by id, and the displayed count per column.

    Applies patches in place. Each thread keeps the patches it applied since
    its last drain(), so a request only hands its own changes to the browser.
    """

    def __init__(self):
        self.columns: Dict[TaskStatus, List[str]] = {s: [] for s in TaskStatus}
        self.cards: Dict[str, Task] = {}
        self.counts: Dict[TaskStatus, int] = {s: 0 for s in TaskStatus}
        self._local = threading.local()
        self._lock = threading.Lock()

    def _pending(self) -> List[Patch]:
        if not hasattr(self._local, "patches"):
            self._local.patches = []
        return self._local.patches

    def on_change(self, change: Change, tasks: Sequence[Task]) -> List[Patch]:
        """Store subscriber: plan and apply the patches for one change."""
        patches = plan(change, tasks)
        self.apply(patches)
        return patches

    def apply(self, patches: Sequence[Patch]) -> None:
        with self._lock:
            for patch in patches:
                self._apply_one(patch)
            self._pending().extend(patches)

    def _apply_one(self, patch: Patch) -> None:
        column = self.columns[patch.column]
        if patch.op == APPEND:
            if patch.task_id in column:
                column.remove(patch.task_id)
            column.append(patch.task_id)
            self.cards[patch.task_id] = patch.task
        elif patch.op == REPLACE:
            if patch.task_id not in column:
                logger.debug(f"Replace for card {patch.task_id} not shown in {patch.column.value}")
                return
            self.cards[patch.task_id] = patch.task
        elif patch.op == REMOVE:
            if patch.task_id in column:
                column.remove(patch.task_id)
            if not any(patch.task_id in ids for ids in self.columns.values()):
                self.cards.pop(patch.task_id, None)
        elif patch.op == COUNT:
            self.counts[patch.column] = patch.count
        elif patch.op == CLEAR:
            for task_id in column:
                self.cards.pop(task_id, None)
            column.clear()
        else:
            raise ValueError(f"Unknown patch op: {patch.op}")

    def drain(self) -> List[Patch]:
        """Return and forget the patches this thread applied since its last call."""
        patches = self._pending()
        self._local.patches = []
        return patches

    def column(self, status: TaskStatus) -> List[Task]:
        return [self.cards[task_id] for task_id in self.columns[status]]

