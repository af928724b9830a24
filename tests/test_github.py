"""
Tests for the issue tracker client with a mocked requests session.
"""
from unittest.mock import MagicMock

import pytest
import requests

from pkg.taskboard.errors import AuthExpired, RemoteRejected, Unauthenticated
from pkg.taskboard.github import GitHubIssues
from pkg.taskboard.schema import IssueRecord

BASE = "https://api.github.com/repos/sam/tasks"


def response(status=200, data=None, links=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = data if data is not None else {}
    resp.links = links or {}
    resp.text = ""
    return resp


def issue_json(number, **extra):
    data = {
        "number": number,
        "title": f"Issue {number}",
        "body": None,
        "labels": [{"name": "todo"}],
        "state": "open",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
        "html_url": f"https://github.com/sam/tasks/issues/{number}",
        "comments": 0,
    }
    data.update(extra)
    return data


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def client(session):
    return GitHubIssues("sam", "tasks", "secret", session=session, per_page=2)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Credential
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_missing_token_refuses_to_start(session):
    with pytest.raises(Unauthenticated):
        GitHubIssues("sam", "tasks", None, session=session)
    with pytest.raises(Unauthenticated):
        GitHubIssues("sam", "tasks", "", session=session)


def test_bearer_header(client, session):
    assert session.headers["Authorization"] == "Bearer secret"
    assert client.authenticated


def test_401_drops_credential(client, session):
    session.request.return_value = response(401, {"message": "Bad credentials"})
    with pytest.raises(AuthExpired) as exc:
        client.list_issues()
    assert exc.value.status == 401
    assert "Bad credentials" in str(exc.value)
    assert not client.authenticated
    assert "Authorization" not in session.headers

    # Further calls fail fast without touching the network
    session.request.reset_mock()
    with pytest.raises(Unauthenticated):
        client.list_issues()
    session.request.assert_not_called()

    client.set_token("fresh")
    assert session.headers["Authorization"] == "Bearer fresh"


def test_403_is_auth_expired(client, session):
    session.request.return_value = response(403, {"message": "Forbidden"})
    with pytest.raises(AuthExpired):
        client.create_issue("t", "b", [])


def test_auth_expired_is_a_remote_rejection():
    assert issubclass(AuthExpired, RemoteRejected)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Failures
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_non_success_status(client, session):
    session.request.return_value = response(422, {"message": "Validation Failed"})
    with pytest.raises(RemoteRejected) as exc:
        client.create_issue("", "", [])
    assert exc.value.status == 422
    assert not isinstance(exc.value, AuthExpired)
    assert client.authenticated


def test_non_json_error_body(client, session):
    resp = response(500)
    resp.json.side_effect = ValueError("not json")
    resp.text = "<html>oops</html>"
    session.request.return_value = resp
    with pytest.raises(RemoteRejected) as exc:
        client.list_issues()
    assert exc.value.message == "<html>oops</html>"


def test_connection_error(client, session):
    session.request.side_effect = requests.ConnectionError("unreachable")
    with pytest.raises(RemoteRejected) as exc:
        client.list_issues()
    assert exc.value.status == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Issues
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_list_issues_follows_pagination(client, session):
    next_url = f"{BASE}/issues?state=closed&labels=done&per_page=2&page=2"
    session.request.side_effect = [
        response(200, [issue_json(1), issue_json(2)], links={"next": {"url": next_url}}),
        response(200, [issue_json(3)]),
    ]

    issues = client.list_issues(state="closed", labels=["done"])

    assert [i.number for i in issues] == [1, 2, 3]
    first, second = session.request.call_args_list
    assert first.args == ("GET", f"{BASE}/issues")
    assert first.kwargs["params"] == {"state": "closed", "labels": "done", "per_page": 2}
    assert second.args == ("GET", next_url)
    assert second.kwargs["params"] is None


def test_create_issue(client, session):
    session.request.return_value = response(201, issue_json(5, labels=[{"name": "todo"}]))
    issue = client.create_issue("Buy milk", "2 litres", ["todo", "priority:medium"])
    assert issue.number == 5
    call = session.request.call_args
    assert call.args == ("POST", f"{BASE}/issues")
    assert call.kwargs["json"] == {
        "title": "Buy milk", "body": "2 litres", "labels": ["todo", "priority:medium"],
    }


def test_update_issue_sends_only_given_fields(client, session):
    session.request.return_value = response(200, issue_json(5, state="closed"))
    issue = client.update_issue(5, labels=["deleted"], state="closed")
    assert issue.closed
    call = session.request.call_args
    assert call.args == ("PATCH", f"{BASE}/issues/5")
    assert call.kwargs["json"] == {"labels": ["deleted"], "state": "closed"}


def test_comments_and_events(client, session):
    session.request.side_effect = [
        response(200, [{"user": {"login": "milo"}, "body": "on it", "created_at": "t1"}]),
        response(201, {"user": {"login": "sam"}, "body": "thanks", "created_at": "t2"}),
        response(200, [{"event": "labeled", "actor": {"login": "sam"},
                        "label": {"name": "done"}, "created_at": "t3"}]),
    ]
    comments = client.list_comments(5)
    assert comments[0].author == "milo"
    assert client.create_comment(5, "thanks").body == "thanks"
    events = client.list_events(5)
    assert events[0].event_type == "labeled"
    assert events[0].label == "done"


def test_per_page_is_clamped(session):
    assert GitHubIssues("o", "r", "t", session=session, per_page=500).per_page == 100
    assert GitHubIssues("o", "r", "t", session=session, per_page=0).per_page == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# IssueRecord
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_pull_request_discriminator():
    pr = IssueRecord.from_api(issue_json(9, pull_request={"url": "..."}))
    plain = IssueRecord.from_api(issue_json(10))
    assert pr.is_pull_request
    assert not plain.is_pull_request


def test_from_api_defaults():
    issue = IssueRecord.from_api({"number": 3, "title": "x", "body": None, "labels": ["todo"]})
    assert issue.body == ""
    assert issue.labels == ["todo"]
    assert issue.state == "open"
