#!/usr/bin/env python3
"""
memory-bridge - command line access to the memory MCP server.

Usage:
    memory-bridge list --type preference --limit 10
    memory-bridge search "favourite editor" --limit 5
    memory-bridge stats
    memory-bridge --config bridge.yaml --verbose stats
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import structlog

from memory_bridge.config import MemoryMcpConfig
from memory_bridge.errors import MemoryBridgeError
from memory_bridge.memory_client import MemoryMcpClient

logger = structlog.get_logger()


def configure_logging(verbose: bool = False, json_logs: bool = False) -> None:
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memory-bridge", description="Memory MCP Bridge commands")
    parser.add_argument("--config", help="YAML config file path (defaults to MEMORY_MCP_* env vars)")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")

    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List memories")
    list_cmd.add_argument("--type", help="Filter by type")
    list_cmd.add_argument("--limit", type=int, default=20, help="Max results")

    search_cmd = commands.add_parser("search", help="Search memories")
    search_cmd.add_argument("query", help="Search query")
    search_cmd.add_argument("--limit", type=int, default=5, help="Max results")
    search_cmd.add_argument("--min-score", type=float, default=None,
                            help="Minimum similarity score (defaults to recallMinScore)")

    commands.add_parser("stats", help="Show memory statistics")
    return parser


async def run_command(args: argparse.Namespace, client: MemoryMcpClient, config: MemoryMcpConfig) -> int:
    logger.debug("Running command", command=args.command, mcp_command=config.mcp_command)
    try:
        if args.command == "list":
            memories = await client.list(args.type, args.limit)
            print(f"Total memories: {len(memories)}")
            for memory in memories:
                print(f"  [{memory.category.value}] {memory.content[:60]}...")
        elif args.command == "search":
            min_score = config.recall_min_score if args.min_score is None else args.min_score
            results = await client.search(args.query, args.limit, min_score)
            print(json.dumps([entry.model_dump(mode="json") for entry in results], indent=2, ensure_ascii=False))
        elif args.command == "stats":
            stats = await client.stats()
            print(json.dumps(stats, indent=2, ensure_ascii=False))
        return 0
    except MemoryBridgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.disconnect()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.json_logs)

    try:
        config = MemoryMcpConfig.from_yaml(args.config) if args.config else MemoryMcpConfig.from_env()
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    client = MemoryMcpClient(config)
    return asyncio.run(run_command(args, client, config))


if __name__ == "__main__":
    sys.exit(main())
