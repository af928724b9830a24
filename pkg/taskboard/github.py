"""
Issue tracker client (GitHub REST API).

Only the calls the board needs: list/create/update issues, comments and
issue events. Every non-2xx response is raised as RemoteRejected; 401/403
are raised as AuthExpired and drop the stored credential so the next call
fails fast with Unauthenticated until a new token is supplied.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from .errors import AuthExpired, RemoteRejected, Unauthenticated
from .schema import Comment, IssueEvent, IssueRecord

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
MAX_PER_PAGE = 100


class GitHubIssues:
    """Issues of one repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str],
        api_url: str = DEFAULT_API_URL,
        per_page: int = MAX_PER_PAGE,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        if not token:
            raise Unauthenticated()
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.per_page = max(1, min(int(per_page), MAX_PER_PAGE))
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self.set_token(token)

    # ──────────────────────────────────────────
    # Credential
    # ──────────────────────────────────────────

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def set_token(self, token: str) -> None:
        if not token:
            raise Unauthenticated()
        self._token = token
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        })

    def invalidate(self) -> None:
        """Forget the credential after the tracker refused it."""
        self._token = None
        self.session.headers.pop("Authorization", None)

    # ──────────────────────────────────────────
    # HTTP plumbing
    # ──────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}{path}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        if not self._token:
            raise Unauthenticated()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise RemoteRejected(0, str(e)) from e

        if resp.status_code in (401, 403):
            logger.warning(f"{method} {url} → {resp.status_code}, dropping credential")
            self.invalidate()
            raise AuthExpired(resp.status_code, _error_message(resp))
        if resp.status_code >= 400:
            logger.warning(f"{method} {url} → {resp.status_code}")
            raise RemoteRejected(resp.status_code, _error_message(resp))
        return resp

    def _paginate(self, path: str, params: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        """Yield items across pages by following the Link: rel="next" header."""
        url = self._url(path)
        params = dict(params, per_page=self.per_page)
        while url:
            resp = self._request("GET", url, params=params)
            yield from resp.json()
            url = (resp.links or {}).get("next", {}).get("url")
            params = None  # the next link already carries the query string

    # ──────────────────────────────────────────
    # Issues
    # ──────────────────────────────────────────

    def list_issues(self, state: str = "open", labels: Optional[List[str]] = None) -> List[IssueRecord]:
        params: Dict[str, Any] = {"state": state}
        if labels:
            params["labels"] = ",".join(labels)
        return [IssueRecord.from_api(item) for item in self._paginate("/issues", params)]

    def create_issue(self, title: str, body: str, labels: List[str]) -> IssueRecord:
        resp = self._request("POST", self._url("/issues"),
                             json={"title": title, "body": body, "labels": labels})
        issue = IssueRecord.from_api(resp.json())
        logger.info(f"Created issue #{issue.number}: {issue.title}")
        return issue

    def update_issue(
        self,
        number: int,
        title: Optional[str] = None,
        body: Optional[str] = None,
        labels: Optional[List[str]] = None,
        state: Optional[str] = None,
    ) -> IssueRecord:
        """PATCH an issue. Labels replace the whole label set."""
        data: Dict[str, Any] = {}
        if title is not None:
            data["title"] = title
        if body is not None:
            data["body"] = body
        if labels is not None:
            data["labels"] = labels
        if state is not None:
            data["state"] = state
        resp = self._request("PATCH", self._url(f"/issues/{number}"), json=data)
        return IssueRecord.from_api(resp.json())

    # ──────────────────────────────────────────
    # Comments / events
    # ──────────────────────────────────────────

    def list_comments(self, number: int) -> List[Comment]:
        return [Comment.from_api(c) for c in self._paginate(f"/issues/{number}/comments", {})]

    def create_comment(self, number: int, body: str) -> Comment:
        resp = self._request("POST", self._url(f"/issues/{number}/comments"), json={"body": body})
        return Comment.from_api(resp.json())

    def list_events(self, number: int) -> List[IssueEvent]:
        return [IssueEvent.from_api(e) for e in self._paginate(f"/issues/{number}/events", {})]


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""
