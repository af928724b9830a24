"""Shared fixtures: an in-memory issue tracker and stores wired to it."""

import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure the repo root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.taskboard.backends import IssueBackend, LocalBackend
from pkg.taskboard.errors import AuthExpired
from pkg.taskboard.local import LocalStorage
from pkg.taskboard.schema import Comment, IssueEvent, IssueRecord
from pkg.taskboard.store import TaskStore
from pkg.taskboard.sync import BoardView


class FakeIssueTracker:
    """Stands in for GitHubIssues: same calls, issues kept in a dict."""

    def __init__(self):
        self.issues = {}
        self.comments = {}
        self.events = {}
        self.calls = []
        self.fail_with: Optional[Exception] = None
        # When set, fail_with is held back until a call with this name
        self.fail_on: Optional[str] = None
        self.authenticated = True
        self._clock = 0
        self._next_number = 1

    def _tick(self) -> str:
        self._clock += 1
        return f"2024-01-01T00:{self._clock // 60:02d}:{self._clock % 60:02d}Z"

    def _check(self, name):
        self.calls.append(name)
        if self.fail_with is not None and self.fail_on in (None, name):
            error, self.fail_with, self.fail_on = self.fail_with, None, None
            if isinstance(error, AuthExpired):
                self.authenticated = False
            raise error

    def add(self, title, body="", labels=(), state="open", pull_request=False):
        """Seed an issue directly, bypassing the call log."""
        now = self._tick()
        issue = IssueRecord(
            number=self._next_number,
            title=title,
            body=body,
            labels=list(labels),
            state=state,
            created_at=now,
            updated_at=now,
            html_url=f"https://github.com/o/r/issues/{self._next_number}",
            is_pull_request=pull_request,
        )
        self.issues[issue.number] = issue
        self._next_number += 1
        return issue

    def set_token(self, token):
        self.authenticated = True

    def list_issues(self, state="open", labels: Optional[List[str]] = None):
        self._check("list_issues")
        found = []
        for issue in self.issues.values():
            if state != "all" and issue.state != state:
                continue
            if labels and not set(labels) <= set(issue.labels):
                continue
            found.append(replace(issue, labels=list(issue.labels)))
        return found

    def create_issue(self, title, body, labels):
        self._check("create_issue")
        return replace(self.add(title, body, labels))

    def update_issue(self, number, title=None, body=None, labels=None, state=None):
        self._check("update_issue")
        issue = self.issues[number]
        if title is not None:
            issue.title = title
        if body is not None:
            issue.body = body
        if labels is not None:
            issue.labels = list(labels)
        if state is not None:
            issue.state = state
        issue.updated_at = self._tick()
        return replace(issue, labels=list(issue.labels))

    def list_comments(self, number):
        self._check("list_comments")
        return list(self.comments.get(number, []))

    def create_comment(self, number, body):
        self._check("create_comment")
        comment = Comment(author="sam", body=body, created_at=self._tick())
        self.comments.setdefault(number, []).append(comment)
        self.issues[number].comments += 1
        return comment

    def list_events(self, number):
        self._check("list_events")
        return list(self.events.get(number, []))

    def add_event(self, number, event_type, actor="milo", label=None):
        self.events.setdefault(number, []).append(
            IssueEvent(event_type=event_type, actor=actor, label=label, created_at=self._tick())
        )


@pytest.fixture
def tracker():
    return FakeIssueTracker()


@pytest.fixture
def view():
    return BoardView()


@pytest.fixture
def issue_store(tracker, view):
    store = TaskStore(IssueBackend(tracker))
    store.subscribe(view.on_change)
    return store


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(str(tmp_path / "board.db"))


@pytest.fixture
def local_store(local_storage, view):
    store = TaskStore(LocalBackend(local_storage))
    store.subscribe(view.on_change)
    store.refresh_all()
    return store
