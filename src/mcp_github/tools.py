"""Tool registry and access mediation layer.

This module:
- defines the exposed tools (public contract surface) and their input schemas
- builds a runtime from an explicitly constructed AppConfig
- creates a correlation_id per operation attempt
- gates every operation: write requests need the token, every request needs an
  allowlisted repository, and only then does GitHub get called
- turns every outcome into an envelope; nothing raises past `run_request`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .allowlist import RepoAllowlist
from .audit import (CONFIRMATION_REQUIRED, DENIED, FAILED, SUCCEEDED, AuditLogger, build_event,
                    new_correlation_id)
from .config import AppConfig
from .errors import (DENIED_KINDS, GITHUB_API_ERROR, INTERNAL, INVALID_INPUT, SafeError, forbidden_repo_error,
                     internal_error, safe_error_to_result, unauthorized_error)
from .github_client import GitHubClient
from .operations import (AddLabel, CommentOnIssue, CreateIssue, LabelPR, ListIssues, ListLabels, ListMilestones,
                         ListPullRequests, MergePR, OperationRequest, RemoveLabel, RequestReview, SearchIssues,
                         WRITE_TOOLS, build_request)
from .safety import redact_text, validate_no_secrets

logger = logging.getLogger(__name__)

_OWNER = {"type": "string", "minLength": 1, "maxLength": 39}
_REPO = {"type": "string", "minLength": 1, "maxLength": 100}
_NUMBER = {"type": "integer", "minimum": 1}
_STATE = {"type": "string", "enum": ["open", "closed", "all"], "default": "open"}
_LABELS = {
    "type": "array",
    "minItems": 1,
    "maxItems": 10,
    "items": {"type": "string", "minLength": 1, "maxLength": 50},
}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "list_issues": {
        "description": "List issues for an allowlisted repository (basic fields only).",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "state": _STATE,
                "per_page": {"type": "integer", "minimum": 1, "maximum": 100, "default": 20},
            },
            "additionalProperties": False,
        },
    },
    "search_issues": {
        "description": "Full-text search within a repository's issues.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "query"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "query": {"type": "string", "minLength": 2, "maxLength": 256},
                "per_page": {"type": "integer", "minimum": 1, "maximum": 50, "default": 10},
            },
            "additionalProperties": False,
        },
    },
    "create_issue": {
        "description": "Create a new issue in a repository. Use only when confident and authorized.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "title", "body"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "title": {"type": "string", "minLength": 5, "maxLength": 120},
                "body": {"type": "string", "minLength": 10, "maxLength": 5000},
            },
            "additionalProperties": False,
        },
    },
    "comment_on_issue": {
        "description": "Add a comment to an existing issue.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "issue_number", "body"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "issue_number": _NUMBER,
                "body": {"type": "string", "minLength": 1, "maxLength": 5000},
            },
            "additionalProperties": False,
        },
    },
    "list_labels": {
        "description": "List the labels defined in a repository.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "per_page": {"type": "integer", "minimum": 1, "maximum": 100, "default": 100},
            },
            "additionalProperties": False,
        },
    },
    "add_label_to_issue": {
        "description": "Add one or more existing labels to an issue.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "issue_number", "labels"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "issue_number": _NUMBER,
                "labels": _LABELS,
            },
            "additionalProperties": False,
        },
    },
    "remove_label_from_issue": {
        "description": "Remove a label from an issue. Succeeds if the label is already absent.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "issue_number", "label_name"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "issue_number": _NUMBER,
                "label_name": {"type": "string", "minLength": 1, "maxLength": 50},
            },
            "additionalProperties": False,
        },
    },
    "list_milestones": {
        "description": "List milestones for a repository.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "state": _STATE,
                "per_page": {"type": "integer", "minimum": 1, "maximum": 100, "default": 100},
            },
            "additionalProperties": False,
        },
    },
    "list_pull_requests": {
        "description": "List pull requests for a repository (basic fields only).",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "state": _STATE,
                "per_page": {"type": "integer", "minimum": 1, "maximum": 100, "default": 20},
            },
            "additionalProperties": False,
        },
    },
    "label_pr": {
        "description": "Add one or more existing labels to a pull request.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "number", "labels"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "number": _NUMBER,
                "labels": _LABELS,
            },
            "additionalProperties": False,
        },
    },
    "request_review": {
        "description": "Request reviews on a pull request from collaborators.",
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "number", "reviewers"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "number": _NUMBER,
                "reviewers": {
                    "type": "array",
                    "minItems": 1,
                    "maxItems": 10,
                    "items": {"type": "string", "minLength": 1, "maxLength": 39},
                },
            },
            "additionalProperties": False,
        },
    },
    "merge_pr": {
        "description": (
            "Merge a pull request. The first call only returns a warning; call again with "
            "require_confirmation=false to merge."
        ),
        "inputSchema": {
            "type": "object",
            "required": ["owner", "repo", "number"],
            "properties": {
                "owner": _OWNER,
                "repo": _REPO,
                "number": _NUMBER,
                "method": {"type": "string", "enum": ["squash", "merge", "rebase"], "default": "squash"},
                "require_confirmation": {"type": "boolean", "default": True},
            },
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Dependencies shared across tool calls, built once at startup."""

    config: AppConfig
    audit: AuditLogger
    github: GitHubClient

    @property
    def allowlist(self) -> RepoAllowlist:
        return self.config.allowlist


def build_runtime(config: AppConfig) -> Runtime:
    """Wire a runtime from configuration."""
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    github = GitHubClient(token=config.token, limits=config.limits)
    return Runtime(config=config, audit=audit, github=github)


def _check_type(key: str, expected: str, v: Any) -> None:
    if expected == "string" and not isinstance(v, str):
        raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be a string")
    # bool is an int subclass; reject it explicitly.
    if expected == "integer" and (not isinstance(v, int) or isinstance(v, bool)):
        raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be an integer")
    if expected == "boolean" and not isinstance(v, bool):
        raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be a boolean")
    if expected == "array" and not isinstance(v, list):
        raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be an array")


def _check_bounds(key: str, spec: dict[str, Any], v: Any) -> None:
    expected = spec.get("type")
    if expected == "string":
        min_len = spec.get("minLength")
        max_len = spec.get("maxLength")
        if isinstance(min_len, int) and len(v) < min_len:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be at least {min_len} characters")
        if isinstance(max_len, int) and len(v) > max_len:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be at most {max_len} characters")
    elif expected == "integer":
        minimum = spec.get("minimum")
        maximum = spec.get("maximum")
        if isinstance(minimum, int) and v < minimum:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be >= {minimum}")
        if isinstance(maximum, int) and v > maximum:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must be <= {maximum}")
    elif expected == "array":
        min_items = spec.get("minItems")
        max_items = spec.get("maxItems")
        if isinstance(min_items, int) and len(v) < min_items:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must have at least {min_items} items")
        if isinstance(max_items, int) and len(v) > max_items:
            raise SafeError(kind=INVALID_INPUT, message=f"Field '{key}' must have at most {max_items} items")
        item_spec = spec.get("items")
        if isinstance(item_spec, dict):
            for item in v:
                _check_type(f"{key}[]", item_spec["type"], item)
                _check_bounds(f"{key}[]", item_spec, item)

    enum = spec.get("enum")
    if enum is not None and v not in enum:
        raise SafeError(
            kind=INVALID_INPUT,
            message=f"Field '{key}' must be one of: {', '.join(str(e) for e in enum)}",
        )


def validate_tool_arguments(tool_name: str, arguments: dict[str, Any]) -> None:
    """Validate tool arguments against the tool's declared input schema.

    Enforces required fields, no extra properties, basic JSON types, string lengths,
    integer ranges, array sizes (and their string items), and enumerations. It does NOT
    implement full JSON Schema.
    """
    if tool_name not in TOOL_METADATA:
        raise SafeError(kind=INVALID_INPUT, message="Unknown tool")

    schema = TOOL_METADATA[tool_name]["inputSchema"]
    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    for k in required:
        if k not in arguments:
            raise SafeError(kind=INVALID_INPUT, message=f"Missing required field: {k}")

    if schema.get("additionalProperties", True) is False:
        extras = [k for k in arguments if k not in props]
        if extras:
            raise SafeError(kind=INVALID_INPUT, message="Unexpected fields are not allowed")

    for k, spec in props.items():
        if k not in arguments:
            continue
        v = arguments[k]
        _check_type(k, spec["type"], v)
        _check_bounds(k, spec, v)


def _unexpected(what: str) -> SafeError:
    return SafeError(kind=GITHUB_API_ERROR, message=f"Unexpected {what} response from GitHub")


def _as_list(data: object, what: str) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        raise _unexpected(what)
    return [item for item in data if isinstance(item, dict)]


def _login(obj: object) -> str | None:
    if isinstance(obj, dict) and isinstance(obj.get("login"), str):
        return obj["login"]
    return None


def _issue_summary(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "number": item.get("number"),
        "title": item.get("title"),
        "url": item.get("html_url"),
        "state": item.get("state"),
        "user": _login(item.get("user")),
    }


def _issue_lines(issues: list[dict[str, Any]], empty: str) -> str:
    if not issues:
        return empty
    return "\n".join(f"#{i['number']} {i['title']} – {i['url']}" for i in issues)


def _label_names(data: object) -> list[str]:
    return [label["name"] for label in _as_list(data, "label") if isinstance(label.get("name"), str)]


async def _tool_list_issues(runtime: Runtime, req: ListIssues) -> dict[str, Any]:
    data = await runtime.github.list_issues(req.owner, req.repo, state=req.state, per_page=req.per_page)
    issues = [_issue_summary(i) for i in _as_list(data, "issue list")]
    return {"text": _issue_lines(issues, "No issues found."), "issues": issues}


async def _tool_search_issues(runtime: Runtime, req: SearchIssues) -> dict[str, Any]:
    data = await runtime.github.search_issues(req.owner, req.repo, req.query, per_page=req.per_page)
    if not isinstance(data, dict):
        raise _unexpected("search")
    issues = [_issue_summary(i) for i in _as_list(data.get("items"), "search")]
    return {
        "text": _issue_lines(issues, "No issues found."),
        "total_count": data.get("total_count"),
        "issues": issues,
    }


async def _tool_create_issue(runtime: Runtime, req: CreateIssue) -> dict[str, Any]:
    data = await runtime.github.create_issue(req.owner, req.repo, req.title, req.body)
    if not isinstance(data, dict):
        raise _unexpected("issue")
    number = data.get("number")
    url = data.get("html_url")
    if not isinstance(number, int) or not isinstance(url, str):
        raise _unexpected("issue")
    return {"text": f"Created issue #{number}: {url}", "issue": {"number": number, "url": url}}


async def _tool_comment_on_issue(runtime: Runtime, req: CommentOnIssue) -> dict[str, Any]:
    data = await runtime.github.comment_on_issue(req.owner, req.repo, req.issue_number, req.body)
    if not isinstance(data, dict):
        raise _unexpected("comment")
    url = data.get("html_url")
    if not isinstance(url, str):
        raise _unexpected("comment")
    return {"text": f"Commented: {url}", "comment": {"id": data.get("id"), "url": url}}


async def _tool_list_labels(runtime: Runtime, req: ListLabels) -> dict[str, Any]:
    data = await runtime.github.list_labels(req.owner, req.repo, per_page=req.per_page)
    labels = [
        {"name": label.get("name"), "color": label.get("color"), "description": label.get("description")}
        for label in _as_list(data, "label list")
    ]
    if not labels:
        return {"text": "No labels found.", "labels": labels}
    lines = [f"- {lb['name']} (#{lb['color']}): {lb['description'] or 'no description'}" for lb in labels]
    return {"text": "\n".join(lines), "labels": labels}


async def _tool_add_label_to_issue(runtime: Runtime, req: AddLabel) -> dict[str, Any]:
    data = await runtime.github.add_labels_to_issue(req.owner, req.repo, req.issue_number, list(req.labels))
    return {
        "text": f"Added labels [{', '.join(req.labels)}] to issue #{req.issue_number}",
        "labels": _label_names(data),
    }


async def _tool_remove_label_from_issue(runtime: Runtime, req: RemoveLabel) -> dict[str, Any]:
    removed = await runtime.github.remove_label_from_issue(req.owner, req.repo, req.issue_number, req.label_name)
    return {
        "text": f'Removed label "{req.label_name}" from issue #{req.issue_number}',
        "already_absent": not removed,
    }


async def _tool_list_milestones(runtime: Runtime, req: ListMilestones) -> dict[str, Any]:
    data = await runtime.github.list_milestones(req.owner, req.repo, state=req.state, per_page=req.per_page)
    milestones = [
        {
            "number": m.get("number"),
            "title": m.get("title"),
            "state": m.get("state"),
            "open_issues": m.get("open_issues"),
            "closed_issues": m.get("closed_issues"),
            "due_on": m.get("due_on"),
            "url": m.get("html_url"),
        }
        for m in _as_list(data, "milestone list")
    ]
    if not milestones:
        return {"text": "No milestones found.", "milestones": milestones}
    lines = [
        f"#{m['number']} {m['title']} ({m['state']}) – {m['open_issues']} open, "
        f"{m['closed_issues']} closed – due {(m['due_on'] or 'none')[:10]}"
        for m in milestones
    ]
    return {"text": "\n".join(lines), "milestones": milestones}


async def _tool_list_pull_requests(runtime: Runtime, req: ListPullRequests) -> dict[str, Any]:
    data = await runtime.github.list_pull_requests(req.owner, req.repo, state=req.state, per_page=req.per_page)
    pulls = []
    for pr in _as_list(data, "pull request list"):
        head = pr.get("head") if isinstance(pr.get("head"), dict) else {}
        base = pr.get("base") if isinstance(pr.get("base"), dict) else {}
        pulls.append(
            {
                **_issue_summary(pr),
                "draft": bool(pr.get("draft")),
                "head": head.get("ref"),
                "base": base.get("ref"),
            }
        )
    return {"text": _issue_lines(pulls, "No pull requests found."), "pull_requests": pulls}


async def _tool_label_pr(runtime: Runtime, req: LabelPR) -> dict[str, Any]:
    data = await runtime.github.label_pr(req.owner, req.repo, req.number, list(req.labels))
    return {
        "text": f"Added labels [{', '.join(req.labels)}] to PR #{req.number}",
        "labels": _label_names(data),
    }


async def _tool_request_review(runtime: Runtime, req: RequestReview) -> dict[str, Any]:
    data = await runtime.github.request_review(req.owner, req.repo, req.number, list(req.reviewers))
    requested: list[str] = []
    if isinstance(data, dict) and isinstance(data.get("requested_reviewers"), list):
        requested = [login for login in map(_login, data["requested_reviewers"]) if login]
    return {
        "text": f"Requested review from [{', '.join(req.reviewers)}] on PR #{req.number}",
        "requested_reviewers": requested,
    }


async def _tool_merge_pr(runtime: Runtime, req: MergePR) -> dict[str, Any]:
    if req.require_confirmation:
        # Stateless: a follow-up call with the flag cleared merges without any binding to this one.
        return {
            "text": (
                f"WARNING: merging PR #{req.number} in {req.owner}/{req.repo} using '{req.method}' "
                "cannot be undone. Call merge_pr again with require_confirmation=false to proceed."
            ),
            "confirmation_required": True,
        }

    data = await runtime.github.merge_pr(req.owner, req.repo, req.number, method=req.method)
    if not isinstance(data, dict):
        raise _unexpected("merge")
    sha = data.get("sha")
    text = f"Successfully merged PR #{req.number} using {req.method}"
    if isinstance(sha, str):
        text = f"{text}: {sha}"
    return {"text": text, "merge": {"merged": bool(data.get("merged", True)), "sha": sha}}


_TOOL_FUNCS: dict[str, Any] = {
    "list_issues": _tool_list_issues,
    "search_issues": _tool_search_issues,
    "create_issue": _tool_create_issue,
    "comment_on_issue": _tool_comment_on_issue,
    "list_labels": _tool_list_labels,
    "add_label_to_issue": _tool_add_label_to_issue,
    "remove_label_from_issue": _tool_remove_label_from_issue,
    "list_milestones": _tool_list_milestones,
    "list_pull_requests": _tool_list_pull_requests,
    "label_pr": _tool_label_pr,
    "request_review": _tool_request_review,
    "merge_pr": _tool_merge_pr,
}


async def mediate(runtime: Runtime, request: OperationRequest) -> dict[str, Any]:
    """Gate a request and delegate it to GitHub.

    Raises:
        SafeError: `unauthorized` for a write without token, `forbidden` for a repository
            outside the allowlist, or whatever the GitHub client raised.
    """
    if request.write and not runtime.github.has_token:
        raise unauthorized_error(request.tool)

    if not runtime.allowlist.is_allowed(request.owner, request.repo):
        raise forbidden_repo_error(request.owner, request.repo)

    func = _TOOL_FUNCS[request.tool]
    return await func(runtime, request)


def _target_repo_from_args(arguments: dict[str, Any]) -> str:
    owner = arguments.get("owner")
    repo = arguments.get("repo")
    if isinstance(owner, str) and isinstance(repo, str) and owner and repo:
        return f"{owner}/{repo}"
    return "<unknown>"


async def _run(runtime: Runtime, name: str, arguments: dict[str, Any], request: OperationRequest | None) -> dict[str, Any]:
    correlation_id = new_correlation_id()
    target_repo = _target_repo_from_args(arguments)
    write = request.write if request is not None else name in WRITE_TOOLS
    start = runtime.audit.measure_start()

    def audit(outcome: str, kind: str | None = None, status: int | None = None) -> None:
        runtime.audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target_repo=target_repo,
                write=write,
                outcome=outcome,
                kind=kind,
                status=status,
                duration_ms=runtime.audit.measure_duration_ms(start),
            )
        )

    try:
        if request is None:
            if name not in TOOL_METADATA:
                raise SafeError(
                    kind=INVALID_INPUT,
                    message=f"Unknown tool: {name}",
                    hint=f"Available tools: {', '.join(sorted(TOOL_METADATA))}",
                )
            validate_no_secrets(arguments)
            validate_tool_arguments(name, arguments)
            request = build_request(name, arguments)

        result = await mediate(runtime, request)

        audit(CONFIRMATION_REQUIRED if result.get("confirmation_required") else SUCCEEDED)
        out: dict[str, Any] = {"ok": True, "correlation_id": correlation_id}
        out.update(result)
        return out

    except SafeError as err:
        audit(DENIED if err.kind in DENIED_KINDS else FAILED, kind=err.kind, status=err.status)
        result = safe_error_to_result(err)
        result["correlation_id"] = correlation_id
        return result
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Tool %s failed unexpectedly: %s", name, redact_text(repr(exc), runtime.config.token))
        audit(FAILED, kind=INTERNAL)
        result = internal_error("Internal error")
        result["correlation_id"] = correlation_id
        return result


async def dispatch_tool(runtime: Runtime, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Dispatch a tool call from raw protocol arguments.

    Always returns an envelope that includes correlation_id.
    """
    return await _run(runtime, name, arguments, None)


async def run_request(runtime: Runtime, request: OperationRequest) -> dict[str, Any]:
    """Run an already-built request through the same gating and envelope as tools."""
    arguments = {"owner": request.owner, "repo": request.repo}
    return await _run(runtime, request.tool, arguments, request)
