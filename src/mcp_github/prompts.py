"""Prompt templates."""

from __future__ import annotations

from typing import Any

PROMPT_METADATA: dict[str, dict[str, Any]] = {
    "triage_issue": {
        "title": "Triage Issue",
        "description": "Guide the model to safely decide whether to file a GitHub issue.",
        "arguments": [
            {"name": "owner", "description": "Repository owner", "required": True},
            {"name": "repo", "description": "Repository name", "required": True},
        ],
    },
}


def triage_issue_prompt(owner: str, repo: str) -> list[dict[str, str]]:
    """Return the triage conversation as (role, text) messages."""
    guidance = (
        f"You are helping triage bugs for {owner}/{repo}. Only call the tool create_issue if:\n"
        "- The report is reproducible OR clearly actionable, and\n"
        "- It is not a duplicate based on recent open issues returned by the resource "
        f"github://repos/{owner}/{repo}/issues?state=open.\n"
        "If uncertain, ask clarifying questions instead of creating an issue."
    )
    return [
        # MCP prompt messages only carry user/assistant roles; guidance goes first as the user turn.
        {"role": "user", "text": guidance},
        {"role": "user", "text": "Provide the user complaint and evidence here."},
    ]
