"""
Task board schema.

Board columns:
  To Do → In Progress → Done

Tasks move freely between the three columns. A task in Done is closed on the
issue tracker; moving it out of Done reopens it. Tips are backlog ideas kept
alongside tasks that can later be converted into a task.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class TaskStatus(Enum):
    """Board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.TODO


class Assignee(Enum):
    """People a task can be assigned to."""
    NONE = ""
    SAM = "sam"
    MILO = "milo"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Assignee":
        try:
            return cls(value or "")
        except ValueError:
            return cls.NONE


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


class TipState(Enum):
    """Tip lifecycle: active → archived (converted) → deleted."""
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Issue tracker records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class IssueRecord:
    """One issue as returned by the issue tracker."""
    number: int
    title: str
    body: str = ""
    labels: List[str] = field(default_factory=list)
    state: str = "open"            # "open" | "closed"
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""
    is_pull_request: bool = False
    comments: int = 0

    @property
    def closed(self) -> bool:
        return self.state == "closed"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "IssueRecord":
        """Build from a GitHub issue JSON object."""
        labels = []
        for label in data.get("labels") or []:
            name = label.get("name") if isinstance(label, dict) else label
            if name:
                labels.append(name)
        return cls(
            number=int(data.get("number", 0)),
            title=data.get("title") or "",
            body=data.get("body") or "",
            labels=labels,
            state=data.get("state") or "open",
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
            html_url=data.get("html_url") or "",
            # GitHub lists pull requests through the issues endpoint
            is_pull_request="pull_request" in data,
            comments=int(data.get("comments") or 0),
        )


@dataclass
class Comment:
    author: str
    body: str
    created_at: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Comment":
        user = data.get("user") or {}
        return cls(
            author=user.get("login", ""),
            body=data.get("body") or "",
            created_at=data.get("created_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"author": self.author, "body": self.body, "created_at": self.created_at}


@dataclass
class IssueEvent:
    """Timeline event (labeled, unlabeled, assigned, closed, reopened, ...)."""
    event_type: str
    actor: str = ""
    label: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "IssueEvent":
        actor = data.get("actor") or {}
        label = data.get("label") or {}
        return cls(
            event_type=data.get("event", ""),
            actor=actor.get("login", ""),
            label=label.get("name"),
            created_at=data.get("created_at") or "",
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Board items
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class Task:
    """A card on the board."""

    id: str
    title: str
    description: str = ""
    assignee: Assignee = Assignee.NONE
    due_date: str = ""             # YYYY-MM-DD or ""
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    created_at: str = field(default_factory=utc_now)

    # Issue tracker reference (None for the offline board)
    number: Optional[int] = None
    url: Optional[str] = None

    @property
    def closed(self) -> bool:
        """Done tasks are closed on the issue tracker."""
        return self.status == TaskStatus.DONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "assignee": self.assignee.value,
            "due_date": self.due_date,
            "priority": self.priority.value,
            "status": self.status.value,
            "created_at": self.created_at,
            "number": self.number,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict. Unknown enum values fall back to defaults."""
        number = data.get("number")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            description=data.get("description") or "",
            assignee=Assignee.from_str(data.get("assignee")),
            due_date=data.get("due_date") or data.get("dueDate") or "",
            priority=Priority.from_str(data.get("priority")),
            status=TaskStatus.from_str(data.get("status")),
            created_at=data.get("created_at") or data.get("createdAt") or utc_now(),
            number=int(number) if number is not None else None,
            url=data.get("url"),
        )


@dataclass
class Tip:
    """A backlog idea. Archived when converted into a task."""

    id: str
    title: str
    description: str = ""
    complexity: Optional[int] = None
    references: List[str] = field(default_factory=list)
    comment_count: int = 0
    state: TipState = TipState.ACTIVE
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    number: Optional[int] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "complexity": self.complexity,
            "references": list(self.references),
            "comment_count": self.comment_count,
            "state": self.state.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "number": self.number,
            "url": self.url,
        }
