"""
Label/body codec between board items and issue tracker records.

An issue only stores a title, a free-text body, a label set and an
open/closed state. Status, assignee and priority travel as labels; due date,
complexity and references travel as marker lines inside the body:

    Buy milk

    📅 Due: 2024-03-01

Decoding never fails. Missing or malformed markers leave the field at its
default and the marker text is left in the description untouched.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .schema import (
    Assignee,
    IssueRecord,
    Priority,
    Task,
    TaskStatus,
    Tip,
    TipState,
)

logger = logging.getLogger(__name__)

DUE_MARKER = "📅 Due:"
COMPLEXITY_MARKER = "📊 Complexity:"

DUE_RE = re.compile(r"\n?^📅 Due: (\d{4}-\d{2}-\d{2})[ \t]*$", re.MULTILINE)
COMPLEXITY_RE = re.compile(r"📊 Complexity: (\d+)(?: points?)?[ \t]*\n?")
REFERENCE_RE = re.compile(r"^https?://\S+$")

TIP_LABEL = "tip"
ARCHIVED_LABEL = "archived"
DELETED_LABEL = "deleted"

# Decoding scans each table top to bottom; the first label present wins.
STATUS_LABELS: List[Tuple[TaskStatus, str]] = [
    (TaskStatus.DONE, "done"),
    (TaskStatus.IN_PROGRESS, "in-progress"),
    (TaskStatus.TODO, "todo"),
]
ASSIGNEE_LABELS: List[Tuple[Assignee, str]] = [
    (Assignee.SAM, "assigned:sam"),
    (Assignee.MILO, "assigned:milo"),
]
PRIORITY_LABELS: List[Tuple[Priority, str]] = [
    (Priority.HIGH, "priority:high"),
    (Priority.LOW, "priority:low"),
    (Priority.MEDIUM, "priority:medium"),
]


@dataclass
class IssuePayload:
    """Everything the issue tracker needs to create or fully replace an issue."""
    title: str
    body: str
    labels: List[str] = field(default_factory=list)
    state: str = "open"


def _first_match(labels: Iterable[str], table):
    present = set(labels)
    found = [value for value, label in table if label in present]
    if len(found) > 1:
        logger.debug(f"Conflicting labels {sorted(present)}, using {found[0].value!r}")
    return found[0] if found else None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Labels
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def decode_status(labels: Iterable[str], closed: bool = False) -> TaskStatus:
    """done > in-progress > todo. A closed issue counts as done."""
    if closed:
        return TaskStatus.DONE
    return _first_match(labels, STATUS_LABELS) or TaskStatus.TODO


def decode_assignee(labels: Iterable[str]) -> Assignee:
    return _first_match(labels, ASSIGNEE_LABELS) or Assignee.NONE


def decode_priority(labels: Iterable[str]) -> Priority:
    return _first_match(labels, PRIORITY_LABELS) or Priority.MEDIUM


def encode_labels(status: TaskStatus, assignee: Assignee, priority: Priority) -> List[str]:
    labels = [status.value]
    if assignee != Assignee.NONE:
        labels.append(f"assigned:{assignee.value}")
    labels.append(f"priority:{priority.value}")
    return labels


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Body markers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    """Split a body into (description, due_date). Only the first whole marker line is taken out."""
def extract_due_date(body: str) -> Tuple[str, str]:
    """Split a body into (description, due_date). The first marker's date wins."""
    body = body or ""
    match = DUE_RE.search(body)
    if not match:
        return body.strip(), ""
    description = body[:match.start()] + body[match.end():]
    return description.strip(), match.group(1)


def encode_task_body(description: str, due_date: str) -> str:
    body = description or ""
    if due_date:
        marker = f"{DUE_MARKER} {due_date}"
        body = f"{body}\n\n{marker}" if body else marker
    return body


def extract_complexity(body: str) -> Tuple[str, Optional[int]]:
    body = body or ""
    match = COMPLEXITY_RE.search(body)
    if not match:
        return body, None
    return COMPLEXITY_RE.sub("", body, count=1), int(match.group(1))


def extract_references(body: str) -> Tuple[str, List[str]]:
    """Pull out every line that is a bare URL, in the order they appear."""
    references = []
    kept = []
    for line in (body or "").splitlines():
        if REFERENCE_RE.match(line.strip()):
            references.append(line.strip())
        else:
            kept.append(line)
    return "\n".join(kept).strip(), references


def complexity_marker(points: int) -> str:
    unit = "point" if points == 1 else "points"
    return f"{COMPLEXITY_MARKER} {points} {unit}"


def encode_tip_body(description: str, complexity: Optional[int], references: List[str]) -> str:
    parts = []
    if complexity is not None:
        parts.append(complexity_marker(complexity))
    if description:
        parts.append(description)
    if references:
        parts.append("\n".join(references))
    return "\n\n".join(parts)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tasks
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def decode_task(issue: IssueRecord) -> Task:
    description, due_date = extract_due_date(issue.body)
    return Task(
        id=str(issue.number),
        title=issue.title,
        description=description,
        assignee=decode_assignee(issue.labels),
        due_date=due_date,
        priority=decode_priority(issue.labels),
        status=decode_status(issue.labels, closed=issue.closed),
        created_at=issue.created_at,
        number=issue.number,
        url=issue.html_url or None,
    )


def encode_task(task: Task) -> IssuePayload:
    return IssuePayload(
        title=task.title,
        body=encode_task_body(task.description, task.due_date),
        labels=encode_labels(task.status, task.assignee, task.priority),
        state="closed" if task.closed else "open",
    )


def tombstone() -> IssuePayload:
    """Labels/state that mark an issue as deleted. Title and body are left alone."""
    return IssuePayload(title="", body="", labels=[DELETED_LABEL], state="closed")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tips
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def is_tip(issue: IssueRecord, tip_label: str = TIP_LABEL) -> bool:
    return tip_label in issue.labels


def decode_tip_state(labels: Iterable[str]) -> TipState:
    labels = set(labels)
    if DELETED_LABEL in labels:
        return TipState.DELETED
    if ARCHIVED_LABEL in labels:
        return TipState.ARCHIVED
    return TipState.ACTIVE


def decode_tip(issue: IssueRecord) -> Tip:
    body, complexity = extract_complexity(issue.body)
    description, references = extract_references(body)
    return Tip(
        id=str(issue.number),
        title=issue.title,
        description=description,
        complexity=complexity,
        references=references,
        comment_count=issue.comments,
        state=decode_tip_state(issue.labels),
        created_at=issue.created_at,
        updated_at=issue.updated_at,
        number=issue.number,
        url=issue.html_url or None,
    )


def encode_tip(tip: Tip, tip_label: str = TIP_LABEL) -> IssuePayload:
    labels = [tip_label]
    if tip.state == TipState.ARCHIVED:
        labels.append(ARCHIVED_LABEL)
    elif tip.state == TipState.DELETED:
        labels.append(DELETED_LABEL)
    return IssuePayload(
        title=tip.title,
        body=encode_tip_body(tip.description, tip.complexity, tip.references),
        labels=labels,
        state="open" if tip.state == TipState.ACTIVE else "closed",
    )
