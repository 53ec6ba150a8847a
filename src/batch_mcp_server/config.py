"""Batch account configuration, client settings, and environment variable overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml


@dataclass(frozen=True)
class BatchAccountContext:
    """Connection details for a single Batch account.

    When ``account_key`` is set requests are signed with Shared Key; otherwise a
    Microsoft Entra ID token is acquired through DefaultAzureCredential.
    """

    name: str
    account_name: str
    account_url: str
    account_key: str | None = field(default=None, repr=False)

    @property
    def uses_shared_key(self) -> bool:
        return bool(self.account_key)


@dataclass(frozen=True)
class ClientSettings:
    """Transport and paging settings with environment variable overrides."""

    api_version: str = field(default_factory=lambda: os.environ.get("BATCH_API_VERSION", "2024-07-01.20.0"))
    timeout_seconds: float = field(default_factory=lambda: float(os.environ.get("BATCH_HTTP_TIMEOUT_SECONDS", "30")))
    connection_retries: int = field(default_factory=lambda: int(os.environ.get("BATCH_HTTP_RETRIES", "0")))
    page_size: int = field(default_factory=lambda: int(os.environ.get("BATCH_PAGE_SIZE", "1000")))
    default_max_count: int = field(default_factory=lambda: int(os.environ.get("BATCH_DEFAULT_MAX_COUNT", "1000")))


_REQUIRED_FIELDS = (
    "account_name",
    "account_url",
)


def _load_account_map(path: Path) -> dict[str, BatchAccountContext]:
    """Parse a YAML account configuration file into a mapping of name to BatchAccountContext.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A dict mapping configured account names to BatchAccountContext objects.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the file content is malformed or missing required fields.
    """
    if not path.exists():
        msg = (
            f"Batch account configuration file not found: {path}. "
            "Copy accounts.example.yaml to accounts.yaml and fill in your account URLs, "
            "or set BATCH_MCP_ACCOUNTS to point to your config file."
        )
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(path.read_text())

    if not isinstance(raw, dict) or "accounts" not in raw:
        msg = f"Account config file {path} must contain a top-level 'accounts' key."
        raise ValueError(msg)

    accounts_raw: Any = raw["accounts"]
    if not isinstance(accounts_raw, dict) or len(accounts_raw) == 0:
        msg = f"Account config file {path} has an empty or invalid 'accounts' section."
        raise ValueError(msg)

    account_map: dict[str, BatchAccountContext] = {}
    for name, entry in accounts_raw.items():
        if not isinstance(entry, dict):
            msg = f"Account '{name}' must be a mapping, got {type(entry).__name__}."
            raise ValueError(msg)

        missing = [f for f in _REQUIRED_FIELDS if f not in entry]
        if missing:
            msg = f"Account '{name}' is missing required fields: {', '.join(missing)}."
            raise ValueError(msg)

        key = entry.get("account_key")
        account_map[name] = BatchAccountContext(
            name=name,
            account_name=str(entry["account_name"]),
            account_url=str(entry["account_url"]).rstrip("/"),
            account_key=str(key) if key else None,
        )

    return account_map


ACCOUNT_MAP: dict[str, BatchAccountContext] = {}
ALL_ACCOUNT_NAMES: list[str] = []


def load_account_map() -> dict[str, BatchAccountContext]:
    """Load account configuration from YAML and populate module-level globals.

    Reads the file path from the ``BATCH_MCP_ACCOUNTS`` environment variable,
    defaulting to ``accounts.yaml`` in the current working directory.
    """
    path = Path(os.environ.get("BATCH_MCP_ACCOUNTS", "accounts.yaml"))
    loaded = _load_account_map(path)
    ACCOUNT_MAP.clear()
    ACCOUNT_MAP.update(loaded)
    ALL_ACCOUNT_NAMES.clear()
    ALL_ACCOUNT_NAMES.extend(loaded.keys())
    return ACCOUNT_MAP


def resolve_account(name: str) -> BatchAccountContext:
    """Resolve a configured account name to its context.

    Raises:
        ValueError: If the name is not in ACCOUNT_MAP.
    """
    if name not in ACCOUNT_MAP:
        valid = ", ".join(sorted(ACCOUNT_MAP.keys()))
        msg = f"Unknown Batch account '{name}'. Valid accounts: {valid}"
        raise ValueError(msg)
    return ACCOUNT_MAP[name]


def _is_placeholder(value: str) -> bool:
    return value.startswith("<") and value.endswith(">")


def validate_account_config() -> None:
    """Validate all account configurations at startup.

    Raises RuntimeError if placeholder values, non-https URLs, or empty
    required fields are detected.
    """
    errors: list[str] = []
    for name, context in ACCOUNT_MAP.items():
        if not context.account_name:
            errors.append(f"{name}: account_name is empty")
        elif _is_placeholder(context.account_name):
            errors.append(f"{name}: placeholder account_name detected")

        parsed = urlparse(context.account_url)
        if _is_placeholder(context.account_url):
            errors.append(f"{name}: placeholder account_url detected")
        elif parsed.scheme != "https" or not parsed.netloc:
            errors.append(f"{name}: account_url must be an absolute https URL")

        if context.account_key is not None and _is_placeholder(context.account_key):
            errors.append(f"{name}: placeholder account_key detected")

    if errors:
        detail = "; ".join(errors)
        msg = f"Batch account configuration errors: {detail}. Fix before serving requests."
        raise RuntimeError(msg)


def get_settings() -> ClientSettings:
    """Return client settings with environment variable overrides applied."""
    return ClientSettings()
