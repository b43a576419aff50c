"""Operation request variants.

Each supported operation is a frozen dataclass carrying `owner`, `repo` and its own fields.
`tool` names the operation and `write` says whether it needs the GitHub token. Requests
are built from arguments that already passed schema validation, so bounds are not
re-checked here; defaults are applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from .errors import INVALID_INPUT, SafeError


@dataclass(frozen=True, slots=True)
class ListIssues:
    tool: ClassVar[str] = "list_issues"
    write: ClassVar[bool] = False

    owner: str
    repo: str
    state: str = "open"
    per_page: int = 20


@dataclass(frozen=True, slots=True)
class SearchIssues:
    tool: ClassVar[str] = "search_issues"
    write: ClassVar[bool] = False

    owner: str
    repo: str
    query: str
    per_page: int = 10


@dataclass(frozen=True, slots=True)
class CreateIssue:
    tool: ClassVar[str] = "create_issue"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    title: str
    body: str


@dataclass(frozen=True, slots=True)
class CommentOnIssue:
    tool: ClassVar[str] = "comment_on_issue"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    issue_number: int
    body: str


@dataclass(frozen=True, slots=True)
class ListLabels:
    tool: ClassVar[str] = "list_labels"
    write: ClassVar[bool] = False

    owner: str
    repo: str
    per_page: int = 100


@dataclass(frozen=True, slots=True)
class AddLabel:
    tool: ClassVar[str] = "add_label_to_issue"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    issue_number: int
    labels: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RemoveLabel:
    tool: ClassVar[str] = "remove_label_from_issue"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    issue_number: int
    label_name: str


@dataclass(frozen=True, slots=True)
class ListMilestones:
    tool: ClassVar[str] = "list_milestones"
    write: ClassVar[bool] = False

    owner: str
    repo: str
    state: str = "open"
    per_page: int = 100


@dataclass(frozen=True, slots=True)
class ListPullRequests:
    tool: ClassVar[str] = "list_pull_requests"
    write: ClassVar[bool] = False

    owner: str
    repo: str
    state: str = "open"
    per_page: int = 20


@dataclass(frozen=True, slots=True)
class LabelPR:
    tool: ClassVar[str] = "label_pr"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    number: int
    labels: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RequestReview:
    tool: ClassVar[str] = "request_review"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    number: int
    reviewers: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MergePR:
    tool: ClassVar[str] = "merge_pr"
    write: ClassVar[bool] = True

    owner: str
    repo: str
    number: int
    method: str = "squash"
    require_confirmation: bool = True


OperationRequest = Union[
    ListIssues,
    SearchIssues,
    CreateIssue,
    CommentOnIssue,
    ListLabels,
    AddLabel,
    RemoveLabel,
    ListMilestones,
    ListPullRequests,
    LabelPR,
    RequestReview,
    MergePR,
]

REQUEST_TYPES: dict[str, type] = {
    cls.tool: cls
    for cls in (
        ListIssues,
        SearchIssues,
        CreateIssue,
        CommentOnIssue,
        ListLabels,
        AddLabel,
        RemoveLabel,
        ListMilestones,
        ListPullRequests,
        LabelPR,
        RequestReview,
        MergePR,
    )
}

WRITE_TOOLS: frozenset[str] = frozenset(name for name, cls in REQUEST_TYPES.items() if cls.write)


def build_request(tool_name: str, arguments: dict[str, Any]) -> OperationRequest:
    """Build the request variant for a tool from validated arguments.

    Array arguments become tuples so requests stay immutable.
    """
    cls = REQUEST_TYPES.get(tool_name)
    if cls is None:
        raise SafeError(kind=INVALID_INPUT, message=f"Unknown tool: {tool_name}")
    values = {k: tuple(v) if isinstance(v, list) else v for k, v in arguments.items()}
    try:
        return cls(**values)
    except TypeError as exc:
        raise SafeError(kind=INVALID_INPUT, message=f"Invalid arguments for {tool_name}") from exc
