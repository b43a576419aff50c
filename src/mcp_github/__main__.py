#!/usr/bin/env python3
"""mcp-github MCP Server entry point.

Run:
  python -m mcp_github                 # start server (stdio)
  python -m mcp_github --test          # run lightweight self-tests then exit
  python -m mcp_github --show-config   # print non-secret configuration then exit
"""

import argparse
import asyncio
import json
import sys

from mcp_github.config import load_config_from_env
from mcp_github.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="mcp_github", add_help=True)
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run built-in server self tests (tool, resource and prompt listing) then exit.",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Print the loaded allowlist and write mode (never the token) then exit.",
    )
    return parser.parse_args(argv)


def main() -> None:
    """CLI dispatcher for the MCP server."""
    args = parse_args(sys.argv[1:])
    try:
        if args.test:
            asyncio.run(test_server())
        elif args.show_config:
            config = load_config_from_env()
            summary = {"write_enabled": config.has_token, **config.allowlist.describe()}
            print(json.dumps(summary, indent=2))
        else:
            asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        print(f"Server error: {exc}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
