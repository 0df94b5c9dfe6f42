"""
rosterctl CLI — local access to the member roster

Commands:
    rosterctl init   [--force]                         — create store + header row
    rosterctl update NAME --as ID [--profession-1 P]…  — member-update
    rosterctl search VALUE [--columns C] [--level L]   — member-search
    rosterctl logs   view|download|clear [--date D]    — admin-logs
    rosterctl serve                                    — start MCP server (foreground)

Environment variables:
    ROSTERCTL_CONFIG   JSON config file
    ROSTERCTL_DB       Path to SQLite database (default: .roster/roster.db)
    ROSTERCTL_LOG_DIR  Directory of dated log files (default: logs)

Precedence (invariant):
    CLI --flag  >  ROSTERCTL_* env var  >  config file  >  compiled default

Exit codes:
    0  Success
    1  Operational error (bad args, denied, not found, no results)
    2  Internal failure (unexpected exception, I/O error)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from rosterctl.types import FIELD_PAIRS, UPDATE_FIELDS

logger = logging.getLogger(__name__)


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    """Parse string env var with fallback."""
    return os.environ.get(name, default)


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _resolve_config(args: argparse.Namespace):
    """Config file, then ROSTERCTL_* env, then --flags."""
    from rosterctl.config import load_config

    config = load_config(getattr(args, "config", None) or _env_str("ROSTERCTL_CONFIG"))
    db = getattr(args, "db", None) or _env_str("ROSTERCTL_DB")
    if db:
        config.store.backend = "sqlite"
        config.store.db_path = db
    log_dir = getattr(args, "log_dir", None) or _env_str("ROSTERCTL_LOG_DIR")
    if log_dir:
        config.logs.log_dir = log_dir
    return config


def _open_handler(args: argparse.Namespace):
    from rosterctl.commands import CommandHandler
    from rosterctl.store import open_store

    config = _resolve_config(args)
    return CommandHandler(open_store(config.store), config)


def _acting(args: argparse.Namespace):
    from rosterctl.types import ActingAccount

    roles = [r.strip() for r in (args.roles or "").split(",") if r.strip()]
    return ActingAccount(id=args.acting_id, display_name=args.display_name or args.acting_id,
                         roles=roles)


def _warn(msg: str) -> None:
    """Print warning to stderr (always visible)."""
    print(msg, file=sys.stderr)


def _emit(reply, out_dir: Optional[str] = None) -> None:
    """Print the reply; save attachments; exit 1 when it reports failure."""
    print(reply.content)
    for f in reply.files:
        target = Path(out_dir or ".") / f.filename
        target.write_bytes(f.data)
        _warn(f"Saved {target}")
    if not reply.ok:
        sys.exit(1)


# ===========================================================================
# Commands
# ===========================================================================


def cmd_init(args: argparse.Namespace) -> None:
    """Create the SQLite store and seed the default header row."""
    from rosterctl.store import SqliteTableStore

    config = _resolve_config(args)
    db_path = Path(config.store.db_path)
    if args.force and db_path.exists():
        db_path.unlink()
    store = SqliteTableStore(str(db_path))
    seeded = store.initialize()
    store.close()
    _warn(f"Roster {'initialized' if seeded else 'exists'}: {db_path}")
    print(f'export ROSTERCTL_DB="{db_path}"')


def cmd_update(args: argparse.Namespace) -> None:
    """Run member-update as the given account."""
    options = {"name": args.name, "target_identity": args.target}
    for key in UPDATE_FIELDS:
        options[key] = getattr(args, key)
    _emit(_open_handler(args).handle_command("member-update", options, _acting(args)))


def cmd_search(args: argparse.Namespace) -> None:
    """Run member-search; the PNG result is written to --out."""
    options = {"search_for": args.value, "columns": args.columns, "level": args.level}
    _emit(_open_handler(args).handle_command("member-search", options, _acting(args)),
          args.out)


def cmd_logs(args: argparse.Namespace) -> None:
    """Run admin-logs (requires an allowed role in --roles)."""
    options = {"action": args.action, "lines": args.lines, "date": args.date}
    _emit(_open_handler(args).handle_command("admin-logs", options, _acting(args)),
          args.out)


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the rosterctl MCP server in foreground."""
    try:
        from rosterctl.mcp.server import build_parser as mcp_parser, create_server
    except ImportError:
        _warn("MCP dependencies not installed. Run: pip install rosterctl")
        sys.exit(1)

    server_argv = []
    if getattr(args, "config", None):
        server_argv.extend(["--config", args.config])
    if getattr(args, "db", None):
        server_argv.extend(["--db", args.db])
    if getattr(args, "log_dir", None):
        server_argv.extend(["--log-dir", args.log_dir])
    server_args = mcp_parser().parse_args(server_argv)

    mcp, _ = create_server(server_args)
    _warn("rosterctl MCP server running. Press Ctrl+C to stop.")
    mcp.run()


# ===========================================================================
# Entry point
# ===========================================================================


def _add_acting_arguments(p: argparse.ArgumentParser, required: bool = True) -> None:
    p.add_argument("--as", dest="acting_id", required=required, default="cli",
                   help="Account ID issuing the command")
    p.add_argument("--display-name", default=None, help="Display name of the account")
    p.add_argument("--roles", default="", help="Comma-separated role names")


def main() -> None:
    """CLI entry point: rosterctl <command> [args]."""
    _common = argparse.ArgumentParser(add_help=False)
    _common.add_argument("--config", default=argparse.SUPPRESS, help="JSON config file")
    _common.add_argument("--db", default=argparse.SUPPRESS,
                         help="Path to SQLite database (default: .roster/roster.db)")
    _common.add_argument("--log-dir", default=argparse.SUPPRESS,
                         help="Directory of dated log files")
    _common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
                         help="Enable verbose logging")

    parser = argparse.ArgumentParser(
        prog="rosterctl",
        description="rosterctl — member profession roster",
        parents=[_common],
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    # -- init --------------------------------------------------------------
    p_init = sub.add_parser("init", parents=[_common], help="Create the roster store")
    p_init.add_argument("--force", action="store_true", help="Recreate an existing store")
    p_init.set_defaults(func=cmd_init)

    # -- update ------------------------------------------------------------
    p_up = sub.add_parser("update", parents=[_common], help="Add or update a member")
    p_up.add_argument("name", help="Member name (case-insensitive)")
    _add_acting_arguments(p_up)
    for n, (prof, level) in FIELD_PAIRS.items():
        p_up.add_argument(f"--profession-{n}", dest=prof, default=None,
                          help=f"Profession {n}")
        p_up.add_argument(f"--level-{n}", dest=level, default=None,
                          help=f"Level of profession {n}")
    p_up.add_argument("--target", default=None,
                      help="Account ID of the member to update (allowed roles only)")
    p_up.set_defaults(func=cmd_update)

    # -- search ------------------------------------------------------------
    p_search = sub.add_parser("search", parents=[_common], help="Search the roster")
    p_search.add_argument("value", help="Member or profession to search")
    p_search.add_argument("--columns", default="any",
                          help='"any" or comma-separated column names (default: any)')
    p_search.add_argument("--level", default=None, help="Filter by profession level")
    p_search.add_argument("--out", default=".", help="Directory for the result image")
    _add_acting_arguments(p_search, required=False)
    p_search.set_defaults(func=cmd_search)

    # -- logs --------------------------------------------------------------
    p_logs = sub.add_parser("logs", parents=[_common], help="View, download or clear logs")
    p_logs.add_argument("action", choices=("view", "download", "clear"))
    p_logs.add_argument("--lines", type=int, default=None, help="Lines to view (default: 10)")
    p_logs.add_argument("--date", default=None, help="Log date YYYY-MM-DD (default: today)")
    p_logs.add_argument("--out", default=".", help="Directory for downloaded logs")
    _add_acting_arguments(p_logs)
    p_logs.set_defaults(func=cmd_logs)

    # -- serve -------------------------------------------------------------
    p_serve = sub.add_parser("serve", parents=[_common], help="Start MCP server")
    p_serve.set_defaults(func=cmd_serve)

    # -- Parse and dispatch ------------------------------------------------
    args = parser.parse_args()

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        _warn(f"Internal error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
