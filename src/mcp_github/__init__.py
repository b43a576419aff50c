"""GitHub MCP Server.

A Model Context Protocol server that lets an agent work with GitHub issues, labels,
milestones and pull requests in an allowlisted set of repositories.

Features:
- Repository allowlist, loaded once from config/allowed_repos.json (fail-closed)
- Read-only mode when GITHUB_TOKEN is not set
- Structured, actionable errors (forbidden, unauthorized, rate_limited, github_api_error)
- Two-step confirmation for merging pull requests
- One audit event per operation attempt

Run with: python -m mcp_github
"""

__version__ = "0.1.0"
