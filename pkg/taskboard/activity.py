"""
Activity feed for one issue: comments and timeline events in time order.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .github import GitHubIssues

EVENT_EMOJI = {
    "labeled": "🏷️",
    "unlabeled": "🏷️",
    "assigned": "👤",
    "unassigned": "👤",
    "closed": "✅",
    "reopened": "🔄",
    "comment": "💬",
}


@dataclass
class ActivityEntry:
    kind: str           # "comment" or the event type
    actor: str
    text: str
    created_at: str

    def format(self) -> str:
        emoji = EVENT_EMOJI.get(self.kind, "•")
        return f"{emoji} {self.actor or 'someone'} {self.text}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "actor": self.actor,
            "text": self.text,
            "created_at": self.created_at,
            "line": self.format(),
        }


def _describe(event_type: str, label: Optional[str] = None) -> str:
    if event_type == "labeled":
        return f"added {label}"
    if event_type == "unlabeled":
        return f"removed {label}"
    if event_type == "closed":
        return "closed this"
    if event_type == "reopened":
        return "reopened this"
    return event_type.replace("_", " ")


def build_feed(client: GitHubIssues, number: int) -> List[ActivityEntry]:
    """Comments and events of issue `number`, oldest first."""
    entries = [
        ActivityEntry("comment", c.author, f"commented: {c.body}", c.created_at)
        for c in client.list_comments(number)
    ]
    entries += [
        ActivityEntry(e.event_type, e.actor, _describe(e.event_type, e.label), e.created_at)
        for e in client.list_events(number)
    ]
    # stable sort keeps comment-before-event order on equal timestamps
    entries.sort(key=lambda entry: entry.created_at)
    return entries


def add_comment(client: GitHubIssues, number: int, body: str) -> ActivityEntry:
    body = (body or "").strip()
    if not body:
        raise ValueError("comment body is required")
    comment = client.create_comment(number, body)
    return ActivityEntry("comment", comment.author, f"commented: {comment.body}", comment.created_at)
