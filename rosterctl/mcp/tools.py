"""
rosterctl MCP Tools — the three roster commands as MCP tools.

Thin wrappers around CommandHandler.  Each tool:

    ① builds the ActingAccount; roles come from the server config
      (access.account_roles), not from the caller, unless the server
      is configured with access.trust_client_roles
    ② delegates to CommandHandler.handle_command (which audits)
    ③ converts the Reply to a JSON-safe dict (attachments base64-encoded)

Tools:
    member_update  — add or update a member's professions
    member_search  — search professions/levels, returns a PNG table
    admin_logs     — view, download or clear dated log files (restricted)
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

from rosterctl.commands import ADMIN_LOGS, MEMBER_SEARCH, MEMBER_UPDATE, CommandHandler
from rosterctl.config import AccessConfig
from rosterctl.types import ActingAccount, Reply

logger = logging.getLogger(__name__)


def _account(access: AccessConfig, acting_id: str, display_name: str,
             roles: Optional[str], username: str = "") -> ActingAccount:
    claimed = None
    if roles is not None:
        claimed = [r.strip() for r in roles.split(",") if r.strip()]
    return ActingAccount(id=acting_id, display_name=display_name or acting_id,
                         username=username, roles=access.roles_for(acting_id, claimed))


def reply_to_dict(reply: Reply) -> Dict[str, Any]:
    """Serialize a Reply for the MCP client."""
    return {
        "status": "ok" if reply.ok else "error",
        "content": reply.content,
        "ephemeral": reply.ephemeral,
        "files": [
            {"filename": f.filename,
             "data_b64": base64.b64encode(f.data).decode("ascii")}
            for f in reply.files
        ],
    }


def register_roster_tools(mcp, handler: CommandHandler) -> None:
    """
    Register the roster MCP tools on a FastMCP server instance.

    Args:
        mcp: FastMCP server instance.
        handler: Fully initialized CommandHandler.
    """

    @mcp.tool()
    def member_update(
        acting_id: str,
        acting_display_name: str,
        name: str,
        acting_roles: Optional[str] = None,
        profession_1: Optional[str] = None,
        level_1: Optional[str] = None,
        profession_2: Optional[str] = None,
        level_2: Optional[str] = None,
        profession_3: Optional[str] = None,
        level_3: Optional[str] = None,
        profession_4: Optional[str] = None,
        level_4: Optional[str] = None,
        profession_5: Optional[str] = None,
        level_5: Optional[str] = None,
        target_identity: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Add or update data for a member.

        Args:
            acting_id: Account ID of the caller.
            acting_display_name: Caller's current display name.
            name: Member name (case-insensitive).
            acting_roles: Comma-separated role names of the caller; only
                honored when the server trusts client-asserted roles.
            profession_N / level_N: Profession slot N and its level
                (e.g. Grandmaster / Master / Journeyman / Apprentice).
            target_identity: Account ID of the member to update. Only
                honored for callers holding an allowed role.
        """
        options = {
            "name": name,
            "profession_1": profession_1, "level_1": level_1,
            "profession_2": profession_2, "level_2": level_2,
            "profession_3": profession_3, "level_3": level_3,
            "profession_4": profession_4, "level_4": level_4,
            "profession_5": profession_5, "level_5": level_5,
            "target_identity": target_identity,
        }
        acting = _account(handler.config.access, acting_id, acting_display_name,
                          acting_roles)
        return reply_to_dict(handler.handle_command(MEMBER_UPDATE, options, acting))

    @mcp.tool()
    def member_search(
        acting_id: str,
        acting_display_name: str,
        search_for: str,
        columns: str,
        level: Optional[str] = None,
        acting_roles: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Search professions for a member or an expertise of a profession.

        Args:
            search_for: Member or profession to search.
            columns: "Any" to search all, or e.g. "Profession_1, Profession_2".
            level: Filter results by profession level.
        """
        options = {"search_for": search_for, "columns": columns, "level": level}
        acting = _account(handler.config.access, acting_id, acting_display_name,
                          acting_roles)
        return reply_to_dict(handler.handle_command(MEMBER_SEARCH, options, acting))

    @mcp.tool()
    def admin_logs(
        acting_id: str,
        acting_display_name: str,
        action: str,
        acting_roles: Optional[str] = None,
        lines: Optional[int] = None,
        date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """View, download or clear logs. Restricted to allowed roles.

        Args:
            action: view | download | clear.
            lines: Number of trailing lines to view (view only, default 10).
            date: Log date (YYYY-MM-DD), default today.
        """
        options = {"action": action, "lines": lines, "date": date}
        acting = _account(handler.config.access, acting_id, acting_display_name,
                          acting_roles)
        return reply_to_dict(handler.handle_command(ADMIN_LOGS, options, acting))
