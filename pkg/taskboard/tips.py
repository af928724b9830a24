"""
Tip backlog: workshop ideas kept as labelled issues next to the tasks.

Lifecycle:
  active → archived (converted into a task) → deleted

Archived tips stay in the collection so the backlog keeps a record of what
was converted. Deleted tips are closed with the tombstone label and dropped.
"""
import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set, Tuple

from .codec import ARCHIVED_LABEL, decode_tip, encode_tip, is_tip
from .errors import MutationInFlight, NotFound, RemoteRejected, Unauthenticated
from .github import GitHubIssues
from .schema import Task, Tip, TipState
from .store import build_draft

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "complexity", "references")


def _newest_first(tips: List[Tip]) -> List[Tip]:
    """Most recently updated first, most recently created breaks ties."""
    return sorted(tips, key=lambda t: (t.updated_at, t.created_at), reverse=True)


def _clean(changes: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown tip fields: {sorted(unknown)}")
    cleaned = dict(changes)
    if "title" in cleaned:
        cleaned["title"] = (cleaned["title"] or "").strip()
        if not cleaned["title"]:
            raise ValueError("title is required")
    if "description" in cleaned:
        cleaned["description"] = (cleaned["description"] or "").strip()
    if cleaned.get("complexity") is not None:
        cleaned["complexity"] = int(cleaned["complexity"])
    if "references" in cleaned:
        cleaned["references"] = [r.strip() for r in cleaned["references"] or [] if r.strip()]
    return cleaned


class TipStore:
    """In-memory tip collection backed by the issue tracker."""

    def __init__(self, client: GitHubIssues, tip_label: str = "tip"):
        self.client = client
        self.tip_label = tip_label
        self._tips: List[Tip] = []
        self._lock = threading.Lock()
        self._converting: Set[str] = set()

    def refresh_all(self) -> List[Tip]:
        issues = self.client.list_issues(state="open", labels=[self.tip_label])
        issues += self.client.list_issues(state="closed", labels=[self.tip_label, ARCHIVED_LABEL])

        tips = []
        seen = set()
        for issue in issues:
            if issue.is_pull_request or issue.number in seen or not is_tip(issue, self.tip_label):
                continue
            seen.add(issue.number)
            tip = decode_tip(issue)
            if tip.state != TipState.DELETED:
                tips.append(tip)
        with self._lock:
            self._tips = tips
        logger.info(f"Loaded {len(tips)} tips")
        return self.list()

    def list(self) -> List[Tip]:
        """Active tips, newest activity first."""
        with self._lock:
            return _newest_first([t for t in self._tips if t.state == TipState.ACTIVE])

    def archived(self) -> List[Tip]:
        with self._lock:
            return _newest_first([t for t in self._tips if t.state == TipState.ARCHIVED])

    def get(self, tip_id: str) -> Optional[Tip]:
        with self._lock:
            for tip in self._tips:
                if tip.id == tip_id:
                    return tip
        return None

    def _commit(self, tip: Tip) -> None:
        with self._lock:
            self._tips = [tip if t.id == tip.id else t for t in self._tips]

    def _push(self, tip: Tip) -> Tip:
        payload = encode_tip(tip, self.tip_label)
        issue = self.client.update_issue(
            tip.number,
            title=payload.title,
            body=payload.body,
            labels=payload.labels,
            state=payload.state,
        )
        return decode_tip(issue)

    # ──────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────

    def create(self, title: str, description: str = "", complexity: Optional[int] = None,
               references: Optional[List[str]] = None) -> Tip:
        fields = _clean({
            "title": title,
            "description": description,
            "complexity": complexity,
            "references": references or [],
        })
        payload = encode_tip(Tip(id="", **fields), self.tip_label)
        tip = decode_tip(self.client.create_issue(payload.title, payload.body, payload.labels))
        with self._lock:
            self._tips.append(tip)
        logger.info(f"Created tip {tip.id}: {tip.title}")
        return tip

    def update(self, tip_id: str, changes: Dict[str, Any]) -> Tip:
        current = self.get(tip_id)
        if current is None:
            raise NotFound(tip_id)
        saved = self._push(replace(current, **_clean(changes)))
        self._commit(saved)
        return saved

    def archive(self, tip_id: str) -> Tip:
        current = self.get(tip_id)
        if current is None:
            raise NotFound(tip_id)
        saved = self._push(replace(current, state=TipState.ARCHIVED))
        self._commit(saved)
        logger.info(f"Archived tip {tip_id}")
        return saved

    def convert_to_task(self, tip_id: str, task_store,
                        task_fields: Optional[Dict[str, Any]] = None) -> Tuple[Task, Tip]:
        """
        Create a task from a tip and archive the tip.

        The task gets the tip's title and description with references
        appended; `task_fields` (assignee, priority, due_date, status)
        override the defaults. A comment on the tip links to the new task.

        The tip is archived before the task is created, so a retry after a
        partial failure cannot convert it twice. If the task cannot be
        created the tip is made active again.
        """
        with self._lock:
            if tip_id in self._converting:
                raise MutationInFlight(tip_id)
            self._converting.add(tip_id)
        try:
            tip = self.get(tip_id)
            if tip is None:
                raise NotFound(tip_id)
            if tip.state != TipState.ACTIVE:
                raise ValueError(f"Tip {tip_id} is already {tip.state.value}")

            description = "\n\n".join(
                part for part in (tip.description, "\n".join(tip.references)) if part
            )
            draft = {"title": tip.title, "description": description}
            draft.update(task_fields or {})
            build_draft(draft)

            archived = self.archive(tip_id)
            try:
                task = task_store.create(draft)
            except Exception:
                self._reactivate(archived)
                raise
        finally:
            with self._lock:
                self._converting.discard(tip_id)

        if task.number is not None:
            try:
                self.client.create_comment(tip.number, f"Converted to task #{task.number}")
            except (RemoteRejected, Unauthenticated) as e:
                logger.warning(f"Could not link tip {tip_id} to task #{task.number}: {e}")
        return task, archived

    def _reactivate(self, tip: Tip) -> None:
        try:
            self._commit(self._push(replace(tip, state=TipState.ACTIVE)))
        except (RemoteRejected, Unauthenticated) as e:
            logger.error(f"Tip {tip.id} stays archived without a task: {e}")
        else:
            logger.info(f"Reactivated tip {tip.id} after a failed conversion")

    def delete(self, tip_id: str) -> Optional[Tip]:
        """Close with the tombstone label and drop locally. Unknown ids are a no-op."""
        current = self.get(tip_id)
        if current is None:
            return None
        self._push(replace(current, state=TipState.DELETED))
        with self._lock:
            self._tips = [t for t in self._tips if t.id != tip_id]
        logger.info(f"Deleted tip {tip_id}")
        return current
