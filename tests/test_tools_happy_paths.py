"""Happy-path tool execution tests.

These tests exercise each tool against an in-memory GitHub stub and pin the summary text
returned to the agent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import mcp_github.tools as tools
import pytest
from mcp_github.allowlist import RepoAllowlist
from mcp_github.audit import AuditEvent
from mcp_github.config import AppConfig
from mcp_github.errors import SafeError


@dataclass
class DummyAudit:
    events: list[AuditEvent] = field(default_factory=list)

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return 0.0

    def measure_duration_ms(self, start: float) -> int:
        return 0


class DummyGitHub:
    """Stands in for GitHubClient; routes by method name."""

    has_token = True

    def __init__(self, routes: dict[str, object | Exception]) -> None:
        self._routes = routes
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        async def call(*args: Any, **kwargs: Any) -> object:
            self.calls.append((name, args, kwargs))
            if name not in self._routes:
                raise AssertionError(f"Unexpected GitHub call: {name}")
            val = self._routes[name]
            if isinstance(val, Exception):
                raise val
            return val

        return call


def _runtime(routes: dict[str, object | Exception]) -> tuple[tools.Runtime, DummyGitHub]:
    cfg = AppConfig(token="tok", allowlist=RepoAllowlist.of("octo/repo"))
    github = DummyGitHub(routes)
    runtime = tools.Runtime(config=cfg, audit=DummyAudit(), github=github)  # type: ignore[arg-type]
    return runtime, github


def _issue(number: int, title: str) -> dict[str, Any]:
    return {
        "number": number,
        "title": title,
        "html_url": f"https://github.com/octo/repo/issues/{number}",
        "state": "open",
        "user": {"login": "alice"},
    }


@pytest.mark.asyncio
async def test_search_issues_lines() -> None:
    runtime, github = _runtime({"search_issues": {"total_count": 2, "items": [_issue(1, "Crash"), _issue(7, "Hang")]}})

    out = await tools.dispatch_tool(runtime, "search_issues", {"owner": "octo", "repo": "repo", "query": "crash"})

    assert out["ok"] is True
    assert out["text"] == (
        "#1 Crash – https://github.com/octo/repo/issues/1\n#7 Hang – https://github.com/octo/repo/issues/7"
    )
    assert out["total_count"] == 2
    assert github.calls == [("search_issues", ("octo", "repo", "crash"), {"per_page": 10})]


@pytest.mark.asyncio
async def test_search_issues_empty() -> None:
    runtime, _github = _runtime({"search_issues": {"total_count": 0, "items": []}})

    out = await tools.dispatch_tool(runtime, "search_issues", {"owner": "octo", "repo": "repo", "query": "zz", "per_page": 50})

    assert out["text"] == "No issues found."
    assert out["issues"] == []


@pytest.mark.asyncio
async def test_create_issue_summary() -> None:
    runtime, github = _runtime({"create_issue": {"number": 42, "html_url": "https://github.com/octo/repo/issues/42"}})

    out = await tools.dispatch_tool(
        runtime,
        "create_issue",
        {"owner": "octo", "repo": "repo", "title": "Crash on start", "body": "Steps: run the binary."},
    )

    assert out["text"] == "Created issue #42: https://github.com/octo/repo/issues/42"
    assert out["issue"] == {"number": 42, "url": "https://github.com/octo/repo/issues/42"}
    assert github.calls[0][1] == ("octo", "repo", "Crash on start", "Steps: run the binary.")


@pytest.mark.asyncio
async def test_create_issue_unexpected_response() -> None:
    runtime, _github = _runtime({"create_issue": ["not", "a", "dict"]})

    out = await tools.dispatch_tool(
        runtime,
        "create_issue",
        {"owner": "octo", "repo": "repo", "title": "Crash on start", "body": "Steps: run the binary."},
    )

    assert out["ok"] is False
    assert out["kind"] == "github_api_error"


@pytest.mark.asyncio
async def test_comment_summary() -> None:
    url = "https://github.com/octo/repo/issues/1#issuecomment-9"
    runtime, _github = _runtime({"comment_on_issue": {"id": 9, "html_url": url}})

    out = await tools.dispatch_tool(
        runtime, "comment_on_issue", {"owner": "octo", "repo": "repo", "issue_number": 1, "body": "+1"}
    )

    assert out["text"] == f"Commented: {url}"
    assert out["comment"] == {"id": 9, "url": url}


@pytest.mark.asyncio
async def test_add_label_summary() -> None:
    runtime, github = _runtime({"add_labels_to_issue": [{"name": "bug"}, {"name": "p1"}, {"name": "old"}]})

    out = await tools.dispatch_tool(
        runtime, "add_label_to_issue", {"owner": "octo", "repo": "repo", "issue_number": 3, "labels": ["bug", "p1"]}
    )

    assert out["text"] == "Added labels [bug, p1] to issue #3"
    assert out["labels"] == ["bug", "p1", "old"]
    assert github.calls[0][1] == ("octo", "repo", 3, ["bug", "p1"])


@pytest.mark.asyncio
async def test_remove_label_summary() -> None:
    runtime, _github = _runtime({"remove_label_from_issue": True})

    out = await tools.dispatch_tool(
        runtime, "remove_label_from_issue", {"owner": "octo", "repo": "repo", "issue_number": 3, "label_name": "bug"}
    )

    assert out["text"] == 'Removed label "bug" from issue #3'
    assert out["already_absent"] is False


@pytest.mark.asyncio
async def test_list_labels_lines() -> None:
    runtime, _github = _runtime(
        {
            "list_labels": [
                {"name": "bug", "color": "d73a4a", "description": "Something isn't working"},
                {"name": "chore", "color": "ededed", "description": None},
            ]
        }
    )

    out = await tools.dispatch_tool(runtime, "list_labels", {"owner": "octo", "repo": "repo"})

    assert out["text"] == "- bug (#d73a4a): Something isn't working\n- chore (#ededed): no description"


@pytest.mark.asyncio
async def test_list_milestones_lines() -> None:
    runtime, github = _runtime(
        {
            "list_milestones": [
                {
                    "number": 1,
                    "title": "v1.0",
                    "state": "open",
                    "open_issues": 4,
                    "closed_issues": 8,
                    "due_on": "2026-12-01T08:00:00Z",
                },
                {"number": 2, "title": "v2.0", "state": "open", "open_issues": 0, "closed_issues": 0, "due_on": None},
            ]
        }
    )

    out = await tools.dispatch_tool(runtime, "list_milestones", {"owner": "octo", "repo": "repo", "state": "all", "per_page": 5})

    assert out["text"] == (
        "#1 v1.0 (open) – 4 open, 8 closed – due 2026-12-01\n"
        "#2 v2.0 (open) – 0 open, 0 closed – due none"
    )
    assert github.calls[0][2] == {"state": "all", "per_page": 5}


@pytest.mark.asyncio
async def test_list_milestones_empty() -> None:
    runtime, _github = _runtime({"list_milestones": []})

    out = await tools.dispatch_tool(runtime, "list_milestones", {"owner": "octo", "repo": "repo"})

    assert out["text"] == "No milestones found."


@pytest.mark.asyncio
async def test_list_pull_requests_lines() -> None:
    pr = {**_issue(12, "Add feature"), "html_url": "https://github.com/octo/repo/pull/12", "draft": True,
          "head": {"ref": "feat"}, "base": {"ref": "main"}}
    runtime, _github = _runtime({"list_pull_requests": [pr]})

    out = await tools.dispatch_tool(runtime, "list_pull_requests", {"owner": "octo", "repo": "repo"})

    assert out["text"] == "#12 Add feature – https://github.com/octo/repo/pull/12"
    assert out["pull_requests"][0]["head"] == "feat"
    assert out["pull_requests"][0]["draft"] is True


@pytest.mark.asyncio
async def test_list_issues_lines() -> None:
    runtime, github = _runtime({"list_issues": [_issue(1, "Crash")]})

    out = await tools.dispatch_tool(runtime, "list_issues", {"owner": "octo", "repo": "repo", "state": "closed"})

    assert out["text"] == "#1 Crash – https://github.com/octo/repo/issues/1"
    assert out["issues"][0]["user"] == "alice"
    assert github.calls[0][2] == {"state": "closed", "per_page": 20}


@pytest.mark.asyncio
async def test_label_pr_summary() -> None:
    runtime, _github = _runtime({"label_pr": [{"name": "ready"}]})

    out = await tools.dispatch_tool(runtime, "label_pr", {"owner": "octo", "repo": "repo", "number": 12, "labels": ["ready"]})

    assert out["text"] == "Added labels [ready] to PR #12"


@pytest.mark.asyncio
async def test_request_review_summary() -> None:
    runtime, _github = _runtime({"request_review": {"requested_reviewers": [{"login": "alice"}, {"login": "bob"}]}})

    out = await tools.dispatch_tool(
        runtime, "request_review", {"owner": "octo", "repo": "repo", "number": 12, "reviewers": ["alice", "bob"]}
    )

    assert out["text"] == "Requested review from [alice, bob] on PR #12"
    assert out["requested_reviewers"] == ["alice", "bob"]


@pytest.mark.asyncio
async def test_merge_pr_default_method_is_squash() -> None:
    runtime, github = _runtime({"merge_pr": {"merged": True, "sha": "cafe"}})

    out = await tools.dispatch_tool(
        runtime, "merge_pr", {"owner": "octo", "repo": "repo", "number": 12, "require_confirmation": False}
    )

    assert out["text"] == "Successfully merged PR #12 using squash: cafe"
    assert github.calls == [("merge_pr", ("octo", "repo", 12), {"method": "squash"})]


@pytest.mark.asyncio
async def test_merge_pr_confirmation_is_stateless() -> None:
    runtime, github = _runtime({"merge_pr": {"merged": True, "sha": "cafe"}})
    args = {"owner": "octo", "repo": "repo", "number": 12}

    first = await tools.dispatch_tool(runtime, "merge_pr", args)
    again = await tools.dispatch_tool(runtime, "merge_pr", args)
    merged = await tools.dispatch_tool(runtime, "merge_pr", {**args, "require_confirmation": False})

    assert first["confirmation_required"] is True
    assert again["confirmation_required"] is True
    assert merged["text"].startswith("Successfully merged PR #12")
    assert len(github.calls) == 1


@pytest.mark.asyncio
async def test_github_errors_from_client_pass_through() -> None:
    err = SafeError(kind="github_api_error", message="GitHub label_pr failed: 404 x", hint="h", status=404)
    runtime, _github = _runtime({"label_pr": err})

    out = await tools.dispatch_tool(runtime, "label_pr", {"owner": "octo", "repo": "repo", "number": 1, "labels": ["x"]})

    assert out["ok"] is False
    assert out["kind"] == "github_api_error"
    assert out["message"] == "GitHub label_pr failed: 404 x"
    assert out["hint"] == "h"
    assert out["status"] == 404
