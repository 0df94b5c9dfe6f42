"""
Roster Configuration

Configuration dataclasses for rosterctl: backing store, access control,
search/render widths, and log files.  Includes load_config() for reading
a JSON config file with silent fallback to compiled defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    if typ is not None and not isinstance(value, typ):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


@dataclass
class StoreConfig:
    """Backing table configuration."""
    backend: Literal["sqlite", "sheets"] = "sqlite"
    db_path: str = ".roster/roster.db"
    spreadsheet_id: str = ""
    sheet_name: str = "Roster"
    credentials_path: str = ""
    max_columns: int = 14

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if self.backend not in ("sqlite", "sheets"):
            errors.append(f"store.backend: unknown backend '{self.backend}'")
        if self.backend == "sheets" and not self.spreadsheet_id:
            errors.append("store.spreadsheet_id: required for the sheets backend")
        _check_range(errors, "store.max_columns", self.max_columns, 4, 702, int)
        return errors


@dataclass
class AccessConfig:
    """Roles allowed to update other members and manage logs.

    ``account_roles`` maps account IDs to their roles on the server side.
    Roles a remote caller asserts about itself are only honored when
    ``trust_client_roles`` is set (e.g. behind a gateway that injects them).
    """
    allowed_roles: List[str] = field(
        default_factory=lambda: [
            "Admin", "Council", "Noble", "Lord", "Lady",
            "Commander", "Master of Coin",
        ]
    )
    account_roles: Dict[str, List[str]] = field(default_factory=dict)
    trust_client_roles: bool = False

    def is_privileged(self, roles: List[str]) -> bool:
        """True iff at least one role is in the allow-list (exact name)."""
        allowed = set(self.allowed_roles)
        return any(r in allowed for r in roles)

    def roles_for(self, account_id: str, claimed: Optional[List[str]] = None) -> List[str]:
        """Roles to act with: the server-side map, or the claim when trusted."""
        if self.trust_client_roles and claimed is not None:
            return list(claimed)
        return list(self.account_roles.get(account_id, []))

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        for account_id, roles in self.account_roles.items():
            if not isinstance(roles, list):
                errors.append(f"access.account_roles.{account_id}: expected list")
        return errors


@dataclass
class SearchConfig:
    """Search and rendering widths (leading columns only)."""
    search_columns: int = 12
    render_columns: int = 12

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "search.search_columns",
                      self.search_columns, 1, 702, int)
        _check_range(errors, "search.render_columns",
                      self.render_columns, 1, 50, int)
        return errors


@dataclass
class LogConfig:
    """Dated log files and admin-logs limits."""
    log_dir: str = "logs"
    prefix: str = "roster"
    view_lines: int = 10
    view_max_chars: int = 2000

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "logs.view_lines", self.view_lines, 1, 10000, int)
        _check_range(errors, "logs.view_max_chars",
                      self.view_max_chars, 100, 100000, int)
        return errors


@dataclass
class RosterConfig:
    """Top-level rosterctl configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    logs: LogConfig = field(default_factory=LogConfig)
    timezone: str = "America/Chicago"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> RosterConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "access" in d:
            kwargs["access"] = AccessConfig(**d["access"])
        if "search" in d:
            kwargs["search"] = SearchConfig(**d["search"])
        if "logs" in d:
            kwargs["logs"] = LogConfig(**d["logs"])
        if "timezone" in d:
            kwargs["timezone"] = d["timezone"]
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.access.validate())
        errors.extend(self.search.validate())
        errors.extend(self.logs.validate())
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"timezone: unknown zone '{self.timezone}'")
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> RosterConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        RosterConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = RosterConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = RosterConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = RosterConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg
