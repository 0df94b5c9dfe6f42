"""
Command handling — the request/response boundary.

    handle_command(name, options, acting) -> Reply

Commands:
    member-update  name, profession_1..5, level_1..5, target_identity?
    member-search  search_for, columns, level?
    admin-logs     action (view|download|clear), lines?, date?

Every command ends in exactly one audit entry and one Reply; no exception
escapes handle_command().  member-update runs its load → reconcile →
store cycle inside the store session, and the single bulk write happens
only after reconciliation succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from rosterctl.audit import AuditReporter
from rosterctl.config import RosterConfig
from rosterctl.guard import GuardError
from rosterctl.logs import LogArchive, LogNotFound, today_in
from rosterctl.reconcile import (
    PermissionDenied,
    ReconciliationEngine,
    RecordNotFound,
    normalize_updates,
)
from rosterctl.render import RenderError, render_table
from rosterctl.schema import ColumnNotFound
from rosterctl.search import InvalidColumns, SearchEngine
from rosterctl.store import BackingStoreError, StoreConflict, TableStore
from rosterctl.types import ActingAccount, Attachment, Reply, capitalize

logger = logging.getLogger(__name__)

MEMBER_UPDATE = "member-update"
MEMBER_SEARCH = "member-search"
ADMIN_LOGS = "admin-logs"

RESULT_IMAGE = "filtered_table.png"

_UPDATE_FAILED = "An error occurred while processing your update command."
_COMMAND_FAILED = "An error occurred while processing your command."
_LOGS_FAILED = "An error occurred while processing your logs command."
_STORE_BUSY = "The roster changed while your update was processed, please try again."
_STORE_DOWN = "The roster is unavailable right now, please try again later."


class CommandHandler:
    """Dispatches typed commands to the engines and formats replies."""

    def __init__(
        self,
        store: TableStore,
        config: Optional[RosterConfig] = None,
        *,
        audit: Optional[AuditReporter] = None,
        engine: Optional[ReconciliationEngine] = None,
        renderer: Callable[..., bytes] = render_table,
        archive: Optional[LogArchive] = None,
    ):
        self._store = store
        self._config = config or RosterConfig()
        self._audit = audit or AuditReporter()
        self._engine = engine or ReconciliationEngine(timezone=self._config.timezone)
        self._search = SearchEngine(self._config.search.search_columns)
        self._render = renderer
        self._archive = archive or LogArchive(
            self._config.logs.log_dir, prefix=self._config.logs.prefix,
            today=today_in(self._config.timezone),
        )
        self._handlers = {
            MEMBER_UPDATE: self._member_update,
            MEMBER_SEARCH: self._member_search,
            ADMIN_LOGS: self._admin_logs,
        }

    @property
    def config(self) -> RosterConfig:
        return self._config

    def is_privileged(self, acting: ActingAccount) -> bool:
        return self._config.access.is_privileged(acting.roles)

    def handle_command(
        self, name: str, options: Mapping[str, Any], acting: ActingAccount,
    ) -> Reply:
        handler = self._handlers.get(name)
        if handler is None:
            self._audit.report("invalid-input", acting.descriptor(), name,
                               error=f"unknown command {name!r}")
            return Reply(f"Unknown command: {name}", ephemeral=True, ok=False)
        try:
            return handler(dict(options), acting)
        except Exception as e:
            # last resort; each handler already converts its own failures
            logger.exception("Unhandled failure in %s", name)
            self._audit.report("internal-error", acting.descriptor(), name,
                               error=str(e))
            return Reply(_COMMAND_FAILED, ok=False)

    # -- member-update -------------------------------------------------------

    def _member_update(self, options: Dict[str, Any], acting: ActingAccount) -> Reply:
        executor = acting.descriptor()
        updates = normalize_updates(options)
        requested = capitalize(options.get("name") or "")
        target_id = options.get("target_identity") or None
        privileged = self.is_privileged(acting)
        max_columns = self._config.store.max_columns

        if not requested.strip() and not (target_id and privileged):
            self._audit.report("invalid-input", executor, MEMBER_UPDATE, updates,
                               error="member name is required")
            return Reply("Please provide a member name.", ok=False)

        try:
            with self._store.session():
                full = self._store.load_table()
                table = full.restricted(max_columns)
                result = self._engine.upsert(
                    table, requested, updates, acting, privileged,
                    target_identity=target_id,
                )
                # columns past max_columns are written back untouched
                self._store.store_table(full.merged(table))
        except RecordNotFound as e:
            self._audit.report("not-found", executor, MEMBER_UPDATE, updates,
                               target={"discord_id": e.discord_id})
            return Reply(str(e), ok=False)
        except PermissionDenied as e:
            self._audit.report("update-denied", executor, MEMBER_UPDATE, updates,
                               target={"name": e.name, "discord_id": e.owner_id})
            return Reply(str(e), ok=False)
        except ColumnNotFound as e:
            logger.error("Roster header does not match the expected schema: %s", e)
            self._audit.report("internal-error", executor, MEMBER_UPDATE, updates,
                               error=str(e))
            return Reply(_UPDATE_FAILED, ok=False)
        except StoreConflict as e:
            self._audit.report("internal-error", executor, MEMBER_UPDATE, updates,
                               error=str(e))
            return Reply(_STORE_BUSY, ok=False)
        except BackingStoreError as e:
            self._audit.report("internal-error", executor, MEMBER_UPDATE, updates,
                               error=str(e))
            return Reply(_STORE_DOWN, ok=False)
        except Exception as e:
            logger.exception("member-update failed")
            self._audit.report("internal-error", executor, MEMBER_UPDATE, updates,
                               error=str(e))
            return Reply(_UPDATE_FAILED, ok=False)

        self._audit.report(
            result.kind, executor, MEMBER_UPDATE, updates,
            target=result.target(),
            before=result.before if result.kind == "update-success" else None,
            after=result.after if result.kind == "update-success" else None,
        )
        if result.kind == "create-success":
            return Reply(f"Added new data for Member: {result.name}")
        if target_id and privileged:
            return Reply(f"Updated data for member: {result.name}, by: {acting.display_name}")
        return Reply(f"Updated data for Member: {result.name}")

    # -- member-search -------------------------------------------------------

    def _member_search(self, options: Dict[str, Any], acting: ActingAccount) -> Reply:
        executor = acting.descriptor()
        search_for = capitalize(options.get("search_for") or "")
        columns = (options.get("columns") or "").lower()
        level = capitalize(options["level"]) if options.get("level") else None
        audit_opts = {"search_for": search_for, "columns": columns, "level": level}

        try:
            table = self._store.load_table()
            result = self._search.search(table, search_for, columns, level)
            if result.empty:
                self._audit.report("search-empty", executor, MEMBER_SEARCH, audit_opts)
                return Reply(
                    f"No data matches for: {search_for}, in {columns} column, "
                    f"for the level {level} "
                )
            image = self._render(result.header, result.rows,
                                 self._config.search.render_columns)
        except InvalidColumns as e:
            self._audit.report("invalid-columns", executor, MEMBER_SEARCH, audit_opts)
            return Reply(str(e), ok=False)
        except RenderError as e:
            self._audit.report("internal-error", executor, MEMBER_SEARCH, audit_opts,
                               error=str(e))
            return Reply("The search results could not be rendered.", ok=False)
        except BackingStoreError as e:
            self._audit.report("internal-error", executor, MEMBER_SEARCH, audit_opts,
                               error=str(e))
            return Reply(_STORE_DOWN, ok=False)
        except Exception as e:
            logger.exception("member-search failed")
            self._audit.report("internal-error", executor, MEMBER_SEARCH, audit_opts,
                               error=str(e))
            return Reply(_COMMAND_FAILED, ok=False)

        self._audit.report("search-success", executor, MEMBER_SEARCH, audit_opts,
                           results={"count": result.count})
        return Reply("Filtered data:", files=[Attachment(RESULT_IMAGE, image)])

    # -- admin-logs ----------------------------------------------------------

    def _admin_logs(self, options: Dict[str, Any], acting: ActingAccount) -> Reply:
        executor = acting.descriptor()
        action = (options.get("action") or "").lower()
        lines = int(options.get("lines") or self._config.logs.view_lines)
        day = options.get("date") or self._archive.today()
        audit_opts: Dict[str, Any] = {"action": action, "date": day}
        if action == "view":
            audit_opts["lines"] = lines

        if not self.is_privileged(acting):
            self._audit.report("logs-denied", executor, ADMIN_LOGS, audit_opts)
            return Reply("You do not have permission to use this command.",
                         ephemeral=True, ok=False)

        try:
            if action == "view":
                data = self._archive.tail(day, lines)
                content = f"```log\n{data}\n```"
                if len(content) > self._config.logs.view_max_chars:
                    content = 'Log data is too large to display. Use the "Download" option.'
                reply = Reply(content, ephemeral=True)
                kind = "logs-view"
            elif action == "download":
                data = self._archive.read_bytes(day)
                name = self._archive.path_for(day).name
                reply = Reply(f"Here are the logs for {day}:",
                              files=[Attachment(name, data)], ephemeral=True)
                kind = "logs-download"
            elif action == "clear":
                self._archive.clear(day)
                reply = Reply(f"The logs for {day} have been cleared successfully.",
                              ephemeral=True)
                kind = "logs-clear"
            else:
                self._audit.report("invalid-input", executor, ADMIN_LOGS, audit_opts,
                                   error=f"unknown action {action!r}")
                return Reply(f"Unknown action: {action}. Use view, download or clear.",
                             ephemeral=True, ok=False)
        except LogNotFound as e:
            self._audit.report("logs-missing", executor, ADMIN_LOGS, audit_opts)
            return Reply(str(e), ephemeral=True, ok=False)
        except GuardError as e:
            self._audit.report("internal-error", executor, ADMIN_LOGS, audit_opts,
                               error=str(e))
            return Reply(str(e), ephemeral=True, ok=False)
        except Exception as e:
            logger.exception("admin-logs failed")
            self._audit.report("internal-error", executor, ADMIN_LOGS, audit_opts,
                               error=str(e))
            return Reply(_LOGS_FAILED, ephemeral=True, ok=False)

        self._audit.report(kind, executor, ADMIN_LOGS, audit_opts)
        return reply
