"""GitHub client error classification.

These tests focus on status-to-kind mapping, per-operation hints, idempotent label removal,
and the no-token short circuit for writes.
"""

from __future__ import annotations

import httpx
import pytest
from mcp_github.config import LimitsConfig
from mcp_github.errors import SafeError
from mcp_github.github_client import (DEFAULT_HINT, RATE_LIMIT_HINT, GitHubClient, ToleratedStatus,
                                      classify_error_response)


def _client(handler, *, token: str | None = "tok") -> GitHubClient:  # noqa: ANN001
    return GitHubClient(token=token, limits=LimitsConfig(), transport=httpx.MockTransport(handler))


def test_github_client_rejects_non_github_api_host() -> None:
    with pytest.raises(SafeError) as exc:
        _ = GitHubClient(token="tok", limits=LimitsConfig(), api_base_url="https://example.com")

    assert exc.value.kind == "config"


@pytest.mark.asyncio
async def test_403_with_exhausted_quota_is_rate_limited() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"X-RateLimit-Remaining": "0"}, json={"message": "API rate limit exceeded"})

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).create_issue("octo", "repo", "Title", "Body body body")

    assert exc.value.kind == "rate_limited"
    assert exc.value.status == 403
    assert exc.value.hint == RATE_LIMIT_HINT
    assert "retry later" in exc.value.hint


@pytest.mark.asyncio
async def test_403_with_quota_left_is_access_denied() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"X-RateLimit-Remaining": "42"}, json={"message": "Forbidden"})

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).list_issues("octo", "repo")

    assert exc.value.kind == "github_api_error"
    assert exc.value.status == 403
    assert exc.value.hint == "Access denied. Check repository permissions."


@pytest.mark.asyncio
async def test_write_403_hint_mentions_token_scopes() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Resource not accessible"})

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).comment_on_issue("octo", "repo", 1, "hi")

    assert "token scopes" in (exc.value.hint or "")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call,status,hint",
    [
        (lambda c: c.list_issues("o", "r"), 404, "Repository not found or access denied."),
        (lambda c: c.comment_on_issue("o", "r", 1, "x"), 404, "Issue not found or access denied."),
        (lambda c: c.label_pr("o", "r", 1, ["x"]), 404, "Pull request not found or access denied."),
        (lambda c: c.add_labels_to_issue("o", "r", 1, ["x"]), 422, "Invalid label name or label does not exist in repository."),
        (lambda c: c.label_pr("o", "r", 1, ["x"]), 422, "Invalid label name or label does not exist in repository."),
        (lambda c: c.request_review("o", "r", 1, ["x"]), 422, "Invalid reviewer username or user is not a collaborator."),
        (lambda c: c.search_issues("o", "r", "q q"), 422, "Invalid search query. Try adding 'is:issue' or 'is:pr' qualifiers."),
        (lambda c: c.merge_pr("o", "r", 1), 405, "Pull request cannot be merged. Check merge requirements."),
        (lambda c: c.merge_pr("o", "r", 1), 409, "Merge conflict detected. Resolve conflicts before merging."),
    ],
)
async def test_per_operation_hints(call, status: int, hint: str) -> None:  # noqa: ANN001
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"message": "nope"})

    with pytest.raises(SafeError) as exc:
        _ = await call(_client(handler))

    assert exc.value.kind == "github_api_error"
    assert exc.value.status == status
    assert exc.value.hint == hint


@pytest.mark.asyncio
async def test_other_status_includes_raw_body() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream exploded")

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).list_pull_requests("octo", "repo")

    assert exc.value.kind == "github_api_error"
    assert exc.value.status == 502
    assert "upstream exploded" in exc.value.message
    assert exc.value.message.startswith("GitHub list_pull_requests failed: 502")
    assert exc.value.hint == DEFAULT_HINT


@pytest.mark.asyncio
async def test_remove_label_404_is_success() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Label does not exist"})

    removed = await _client(handler).remove_label_from_issue("octo", "repo", 1, "bug")

    assert removed is False


@pytest.mark.asyncio
async def test_remove_label_other_errors_still_raise() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"X-RateLimit-Remaining": "0"})

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).remove_label_from_issue("octo", "repo", 1, "bug")

    assert exc.value.kind == "rate_limited"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.create_issue("o", "r", "Title", "Body body body"),
        lambda c: c.comment_on_issue("o", "r", 1, "x"),
        lambda c: c.add_labels_to_issue("o", "r", 1, ["x"]),
        lambda c: c.remove_label_from_issue("o", "r", 1, "x"),
        lambda c: c.label_pr("o", "r", 1, ["x"]),
        lambda c: c.request_review("o", "r", 1, ["x"]),
        lambda c: c.merge_pr("o", "r", 1),
    ],
)
async def test_writes_without_token_fail_before_network(call) -> None:  # noqa: ANN001
    calls = {"n": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200, json={})

    with pytest.raises(SafeError) as exc:
        _ = await call(_client(handler, token=None))

    assert exc.value.kind == "unauthorized"
    assert calls["n"] == 0


@pytest.mark.asyncio
async def test_transport_error_raises_network_error_once() -> None:
    calls = {"n": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("nope")

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).list_milestones("octo", "repo")

    assert exc.value.kind == "network_error"
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_server_errors_are_not_retried() -> None:
    calls = {"n": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(500, json={"message": "oops"})

    with pytest.raises(SafeError):
        _ = await _client(handler).list_labels("octo", "repo")

    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_invalid_json_on_success() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not-json")

    with pytest.raises(SafeError) as exc:
        _ = await _client(handler).list_issues("octo", "repo")

    assert exc.value.kind == "github_api_error"
    assert "invalid json" in exc.value.message.lower()


@pytest.mark.asyncio
async def test_execute_returns_tolerated_marker() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    out = await _client(handler).execute(
        operation="probe",
        method="GET",
        path="/repos/octo/repo",
        hints={},
        tolerated_statuses=frozenset({404}),
    )

    assert out == ToleratedStatus(404)


def test_classify_rate_limit_header_is_case_insensitive() -> None:
    headers = httpx.Headers({"x-ratelimit-remaining": "0"})

    err = classify_error_response(operation="list_issues", status_code=403, headers=headers, body_text="", hints={})

    assert err.kind == "rate_limited"
    assert err.message == "GitHub list_issues failed: 403"
