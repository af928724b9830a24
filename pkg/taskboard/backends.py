"""
Backends for the task store.

IssueBackend  - tasks live as issues on the issue tracker
LocalBackend  - tasks live in a single local document (offline board)

Both expose the same four calls: fetch_all, create, update, remove. Each
returns the authoritative record the store should commit.
"""
import logging
import time
from dataclasses import replace
from typing import List

from .codec import DELETED_LABEL, decode_task, encode_task, is_tip, tombstone
from .github import GitHubIssues
from .local import LocalStorage
from .schema import Task, TaskStatus, utc_now

logger = logging.getLogger(__name__)

DONE_LABEL = TaskStatus.DONE.value


class IssueBackend:
    """Maps tasks onto issues through the label/body codec."""

    def __init__(self, client: GitHubIssues, tip_label: str = "tip"):
        self.client = client
        self.tip_label = tip_label

    def fetch_all(self) -> List[Task]:
        """Open issues plus closed issues carrying the done label, minus PRs and tips."""
        issues = self.client.list_issues(state="open")
        issues += self.client.list_issues(state="closed", labels=[DONE_LABEL])

        tasks = []
        seen = set()
        for issue in issues:
            if issue.is_pull_request or issue.number in seen:
                continue
            if is_tip(issue, self.tip_label) or DELETED_LABEL in issue.labels:
                continue
            seen.add(issue.number)
            tasks.append(decode_task(issue))
        logger.debug(f"Fetched {len(tasks)} tasks from {len(issues)} issues")
        return tasks

    def create(self, task: Task) -> Task:
        payload = encode_task(task)
        if payload.state != "closed":
            issue = self.client.create_issue(payload.title, payload.body, payload.labels)
            return decode_task(issue)

        # Issues are always created open. A done task starts out hidden under
        # the tombstone label and gets its labels together with the close, so
        # a failed close never leaves an open issue labelled done.
        issue = self.client.create_issue(payload.title, payload.body, tombstone().labels)
        issue = self.client.update_issue(issue.number, labels=payload.labels, state="closed")
        return decode_task(issue)

    def update(self, task: Task) -> Task:
        """Send the whole record: the tracker replaces the label set, it does not patch it."""
        payload = encode_task(task)
        issue = self.client.update_issue(
            task.number,
            title=payload.title,
            body=payload.body,
            labels=payload.labels,
            state=payload.state,
        )
        return decode_task(issue)

    def remove(self, task: Task) -> None:
        """Issues cannot be deleted; close them with the tombstone label instead."""
        payload = tombstone()
        self.client.update_issue(task.number, labels=payload.labels, state=payload.state)


class LocalBackend:
    """Offline board: ids are millisecond timestamps, every change rewrites the document."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self._saved: List[Task] = []

    def fetch_all(self) -> List[Task]:
        self._saved = self.storage.load()
        return [replace(t) for t in self._saved]

    def _next_id(self) -> str:
        taken = {t.id for t in self._saved}
        candidate = int(time.time() * 1000)
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def create(self, task: Task) -> Task:
        created = replace(task, id=self._next_id(), created_at=utc_now(), number=None, url=None)
        self.storage.save(self._saved + [created])
        self._saved.append(created)
        return replace(created)

    def update(self, task: Task) -> Task:
        saved = [replace(task) if t.id == task.id else t for t in self._saved]
        self.storage.save(saved)
        self._saved = saved
        return replace(task)

    def remove(self, task: Task) -> None:
        saved = [t for t in self._saved if t.id != task.id]
        self.storage.save(saved)
        self._saved = saved
