"""Read-only repository resources.

Resource URIs map onto list requests and run through the same gating as tools, so a
repository outside the allowlist is forbidden here too. Listings render as markdown.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qs, urlsplit

from mcp.server.lowlevel.helper_types import ReadResourceContents

from .errors import INVALID_INPUT, to_error_result
from .operations import ListIssues, ListLabels, ListPullRequests, OperationRequest
from .tools import Runtime, run_request

RESOURCE_PER_PAGE = 20
MARKDOWN_MIME = "text/markdown"
JSON_MIME = "application/json"
_VALID_STATES = ("open", "closed", "all")

RESOURCE_TEMPLATES: dict[str, dict[str, str]] = {
    "repo-issues": {
        "uriTemplate": "github://repos/{owner}/{repo}/issues?state={state}",
        "title": "GitHub Issues",
        "description": "List issues for an allowlisted repository.",
    },
    "repo-labels": {
        "uriTemplate": "github://repos/{owner}/{repo}/labels",
        "title": "GitHub Labels",
        "description": "List labels defined in an allowlisted repository.",
    },
    "repo-pulls": {
        "uriTemplate": "github://repos/{owner}/{repo}/pulls?state={state}",
        "title": "GitHub Pull Requests",
        "description": "List pull requests for an allowlisted repository.",
    },
}


def parse_resource_uri(uri: str) -> OperationRequest | None:
    """Map a `github://repos/...` URI to a list request, or None if it is not one."""
    parts = urlsplit(uri)
    if parts.scheme != "github" or parts.netloc != "repos":
        return None
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) != 3:
        return None
    owner, repo, listing = segments

    state = parse_qs(parts.query).get("state", ["open"])[0] or "open"
    if state not in _VALID_STATES:
        return None

    if listing == "issues":
        return ListIssues(owner=owner, repo=repo, state=state, per_page=RESOURCE_PER_PAGE)
    if listing == "labels":
        return ListLabels(owner=owner, repo=repo)
    if listing == "pulls":
        return ListPullRequests(owner=owner, repo=repo, state=state, per_page=RESOURCE_PER_PAGE)
    return None


def _render_issues(req: ListIssues, result: dict[str, Any]) -> str:
    lines = [f"- #{i['number']} {i['title']} (by @{i['user']})\n  {i['url']}" for i in result["issues"]]
    return f"# {req.owner}/{req.repo} issues (state={req.state})\n\n" + "\n".join(lines)


def _render_labels(req: ListLabels, result: dict[str, Any]) -> str:
    lines = []
    for label in result["labels"]:
        line = f"- **{label['name']}** (#{label['color']})"
        if label["description"]:
            line = f"{line}: {label['description']}"
        lines.append(line)
    return f"# {req.owner}/{req.repo} labels\n\n" + "\n".join(lines)


def _render_pulls(req: ListPullRequests, result: dict[str, Any]) -> str:
    lines = []
    for pr in result["pull_requests"]:
        draft = " [draft]" if pr["draft"] else ""
        lines.append(
            f"- #{pr['number']} {pr['title']}{draft} (by @{pr['user']}) {pr['head']} -> {pr['base']}\n  {pr['url']}"
        )
    return f"# {req.owner}/{req.repo} pull requests (state={req.state})\n\n" + "\n".join(lines)


async def read_repo_resource(runtime: Runtime, uri: str) -> ReadResourceContents:
    """Read a repository resource as markdown, or as a JSON error envelope on failure."""
    request = parse_resource_uri(uri)
    if request is None:
        error = to_error_result(kind=INVALID_INPUT, message="Unknown resource")
        return ReadResourceContents(content=json.dumps(error, indent=2), mime_type=JSON_MIME)

    result = await run_request(runtime, request)
    if not result["ok"]:
        return ReadResourceContents(content=json.dumps(result, indent=2), mime_type=JSON_MIME)

    if isinstance(request, ListIssues):
        text = _render_issues(request, result)
    elif isinstance(request, ListLabels):
        text = _render_labels(request, result)
    else:
        text = _render_pulls(request, result)
    return ReadResourceContents(content=text, mime_type=MARKDOWN_MIME)
