"""MCP server wiring for mcp-github.

Handlers are registered on a server built around an explicit Runtime, so configuration
is loaded once at startup and never read from module-level state.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterable
from typing import Any

try:
    from mcp.server import Server
    from mcp.server.lowlevel.helper_types import ReadResourceContents
    from mcp.types import (GetPromptResult, Prompt, PromptArgument, PromptMessage, Resource, ResourceTemplate,
                           TextContent, Tool)
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .allowlist import RepoAllowlist
from .config import AppConfig, load_config_from_env
from .errors import SafeError
from .operations import WRITE_TOOLS
from .prompts import PROMPT_METADATA, triage_issue_prompt
from .resources import JSON_MIME, MARKDOWN_MIME, RESOURCE_TEMPLATES, read_repo_resource
from .tools import TOOL_METADATA, Runtime, build_runtime, dispatch_tool

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-github"
STATUS_URI = "mcp-github://server-status"


def _status(runtime: Runtime) -> dict[str, Any]:
    return {
        "server": SERVER_NAME,
        "version": __version__,
        "tools_available": len(TOOL_METADATA),
        "tool_names": sorted(TOOL_METADATA),
        "write_tools": sorted(WRITE_TOOLS),
        "write_enabled": runtime.config.has_token,
        "allowlist": runtime.allowlist.describe(),
        "audit": {"file_sink_enabled": runtime.config.audit_log_path is not None},
    }


def list_tool_objects() -> list[Tool]:
    """Build the MCP Tool list from the registry."""
    return [
        Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
        for name, meta in TOOL_METADATA.items()
    ]


def create_server(runtime: Runtime) -> Server:
    """Create an MCP server whose handlers all go through `runtime`."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List all available tools."""
        tools = list_tool_objects()
        logger.info("Listed %s tools", len(tools))
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Execute a tool; success yields the summary text, failure the JSON error envelope."""
        if not isinstance(arguments, dict):
            arguments = {}

        logger.info("Tool called: %s", name)
        result = await dispatch_tool(runtime, name, arguments)
        if result["ok"]:
            return [TextContent(type="text", text=result["text"])]
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        """List static resources."""
        return [
            Resource(
                uri=STATUS_URI,
                name="Server Status",
                description="Non-secret server configuration: write mode and repository allowlist",
                mimeType=JSON_MIME,
            )
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> list[ResourceTemplate]:
        """List repository resource templates."""
        return [
            ResourceTemplate(
                name=name,
                title=meta["title"],
                uriTemplate=meta["uriTemplate"],
                description=meta["description"],
                mimeType=MARKDOWN_MIME,
            )
            for name, meta in RESOURCE_TEMPLATES.items()
        ]

    @server.read_resource()
    async def read_resource(uri: Any) -> Iterable[ReadResourceContents]:
        """Read resource content."""
        uri_s = uri if isinstance(uri, str) else str(uri)
        if uri_s == STATUS_URI:
            return [ReadResourceContents(content=json.dumps(_status(runtime), indent=2), mime_type=JSON_MIME)]
        return [await read_repo_resource(runtime, uri_s)]

    @server.list_prompts()
    async def list_prompts() -> list[Prompt]:
        """List prompt templates."""
        return [
            Prompt(
                name=name,
                title=meta["title"],
                description=meta["description"],
                arguments=[PromptArgument(**arg) for arg in meta["arguments"]],
            )
            for name, meta in PROMPT_METADATA.items()
        ]

    @server.get_prompt()
    async def get_prompt(name: str, arguments: dict[str, str] | None) -> GetPromptResult:
        """Render a prompt template."""
        if name not in PROMPT_METADATA:
            raise ValueError(f"Unknown prompt: {name}")
        args = arguments or {}
        owner = args.get("owner")
        repo = args.get("repo")
        if not owner or not repo:
            raise ValueError("Prompt triage_issue requires 'owner' and 'repo'")
        return GetPromptResult(
            description=PROMPT_METADATA[name]["description"],
            messages=[
                PromptMessage(role=m["role"], content=TextContent(type="text", text=m["text"]))
                for m in triage_issue_prompt(owner, repo)
            ],
        )

    return server


async def run_server(config: AppConfig | None = None) -> None:
    """Run the server over stdio."""
    try:
        config = config or load_config_from_env()
    except SafeError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    runtime = build_runtime(config)
    server = create_server(runtime)

    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        runtime.audit.close()


async def test_server() -> None:
    """Lightweight self-test: build a server with an empty allowlist and list its surface."""
    runtime = build_runtime(AppConfig(token=None, allowlist=RepoAllowlist()))
    _ = create_server(runtime)
    tools = list_tool_objects()
    print(f"{len(tools)} tools: {', '.join(t.name for t in tools)}", file=sys.stderr)
    print(f"{len(RESOURCE_TEMPLATES)} resource templates, {len(PROMPT_METADATA)} prompts", file=sys.stderr)
