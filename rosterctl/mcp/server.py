"""
rosterctl MCP Server — member skill roster over the Model Context Protocol.

Architecture: thin MCP layer delegating to CommandHandler.
Zero business logic in this module — all logic lives in rosterctl/*.

Usage:
    python -m rosterctl.mcp.server --db /path/to/roster.db
    python -m rosterctl.mcp.server --backend sheets --spreadsheet-id ID --sheet-name Roster
    python -m rosterctl.mcp.server --config roster.json --log-dir logs
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

logger = logging.getLogger(__name__)

# Instructions embedded in FastMCP, always visible to any MCP client.
_MCP_INSTRUCTIONS = (
    "Member profession roster backed by a shared table (3 tools).\n"
    "\n"
    "UPDATE: member_update adds or updates a member's professions and levels.\n"
    "        Members may only update records they own; allowed roles may\n"
    "        pass target_identity to update someone else.\n"
    "SEARCH: member_search finds members by profession/name, optionally by level,\n"
    "        and returns the matching rows as a PNG table.\n"
    "ADMIN:  admin_logs views, downloads or clears the dated log files.\n"
)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser for the roster MCP server."""
    p = argparse.ArgumentParser(
        prog="rosterctl-mcp",
        description="rosterctl MCP Server — member profession roster",
    )
    p.add_argument(
        "--config",
        default=os.environ.get("ROSTERCTL_CONFIG"),
        help="JSON config file (default: $ROSTERCTL_CONFIG or compiled defaults)",
    )
    p.add_argument(
        "--backend",
        choices=("sqlite", "sheets"),
        default=os.environ.get("ROSTERCTL_BACKEND"),
        help="Backing store (default: config value, sqlite)",
    )
    p.add_argument(
        "--db",
        default=os.environ.get("ROSTERCTL_DB"),
        help="SQLite database path (sqlite backend)",
    )
    p.add_argument(
        "--spreadsheet-id",
        default=os.environ.get("ROSTERCTL_SPREADSHEET_ID"),
        help="Google spreadsheet ID (sheets backend)",
    )
    p.add_argument(
        "--sheet-name",
        default=os.environ.get("ROSTERCTL_SHEET_NAME"),
        help="Sheet (tab) name (sheets backend)",
    )
    p.add_argument(
        "--credentials",
        default=os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"),
        help="Service-account key file (default: $GOOGLE_APPLICATION_CREDENTIALS)",
    )
    p.add_argument(
        "--log-dir",
        default=os.environ.get("ROSTERCTL_LOG_DIR"),
        help="Directory for dated log files (default: config value, logs)",
    )
    p.add_argument(
        "--audit-log",
        default=None,
        help="Also append JSONL audit records to this file",
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return p


def resolve_config(args: argparse.Namespace):
    """Load the config file, then apply flag/env overrides."""
    from rosterctl.config import ValidationError, load_config

    config = load_config(args.config)
    if args.backend:
        config.store.backend = args.backend
    if args.db:
        config.store.db_path = args.db
    if args.spreadsheet_id:
        config.store.spreadsheet_id = args.spreadsheet_id
    if args.sheet_name:
        config.store.sheet_name = args.sheet_name
    if args.credentials:
        config.store.credentials_path = args.credentials
    if args.log_dir:
        config.logs.log_dir = args.log_dir

    errors = config.validate()
    if errors:
        raise ValidationError(f"Config validation failed: {'; '.join(errors)}")
    return config


def create_server(args=None):
    """
    Create and configure the FastMCP server with roster tools.

    Args:
        args: Parsed argparse.Namespace, or None to parse from sys.argv.

    Returns:
        (mcp_server, handler) tuple.
    """
    from mcp.server.fastmcp import FastMCP

    from rosterctl.audit import AuditReporter
    from rosterctl.commands import CommandHandler
    from rosterctl.mcp.tools import register_roster_tools
    from rosterctl.store import open_store

    if args is None:
        args = build_parser().parse_args()

    config = resolve_config(args)
    store = open_store(config.store)

    audit_output = None
    if args.audit_log:
        audit_output = open(args.audit_log, "a", encoding="utf-8")
    audit = AuditReporter(output=audit_output)

    handler = CommandHandler(store, config, audit=audit)

    mcp = FastMCP(
        name="rosterctl Roster",
        instructions=_MCP_INSTRUCTIONS,
    )
    register_roster_tools(mcp, handler)

    logger.info(
        "rosterctl MCP server ready: backend=%s, store=%s, log_dir=%s",
        config.store.backend, store.store_id, config.logs.log_dir,
    )
    return mcp, handler


def main():
    """CLI entry point — parse args, create server, run."""
    from rosterctl.config import ValidationError, load_config
    from rosterctl.logs import setup_logging

    parser = build_parser()
    args = parser.parse_args()

    file_cfg = load_config(args.config)
    setup_logging(args.log_dir or file_cfg.logs.log_dir, prefix=file_cfg.logs.prefix,
                  timezone=file_cfg.timezone, verbose=args.verbose)

    try:
        mcp, _handler = create_server(args)
    except ValidationError as e:
        logger.error("%s", e)
        sys.exit(1)
    mcp.run()


if __name__ == "__main__":
    main()
