# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Ledger.

This module is responsible for:
- loading the application configuration from a TOML file,
- applying defaults when a section or the whole file is missing,
- exposing typed dataclasses used by the rest of the application.
"""

import tomllib  # Python 3.11+
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .db import DatabaseConfig
from .periods import PERIOD_TOKENS

DEFAULT_CONFIG_FILE = "smb_ledger_config.toml"


@dataclass(frozen=True)
class CompanyInfo:
    """Company banner printed at the top of exported reports."""

    name: str
    banner_lines: tuple[str, ...]


@dataclass(frozen=True)
class IdentityConfig:
    """
    Identity used by the CLI.

    When `user_id` is None the application works on the local-only dataset
    (local buffer) instead of the durable store.
    """

    user_id: Optional[str]
    email: Optional[str]


@dataclass(frozen=True)
class ReportsConfig:
    """Report options: dashboard top-N size, default period and output directory."""

    top_categories: int
    default_period: str
    output_dir: Path


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB Ledger.

    This aggregates:
    - the company banner used by exports,
    - the presentation currency,
    - the database configuration (durable record store),
    - the identity used by the CLI,
    - the optional local buffer file (unauthenticated use),
    - report options.
    """

    company: CompanyInfo
    currency: str
    database: DatabaseConfig
    identity: IdentityConfig
    local_buffer_path: Optional[Path]
    reports: ReportsConfig


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return a sub-table of the config, or an empty mapping if absent/invalid."""
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _parse_config(raw: Mapping[str, Any], base_dir: Path) -> AppConfig:
    """
    Build an AppConfig from raw TOML data.

    Relative paths are resolved against `base_dir` (the directory of the
    TOML file, or the current directory when no file is used).

    Raises:
        ValueError: if a value has an invalid type or an unknown token.
    """
    # 1) Company banner
    company_section = _section(raw, "company")
    name = str(company_section.get("name") or "SMB Ledger")
    banner_raw = company_section.get("banner_lines") or []
    if not isinstance(banner_raw, list):
        raise ValueError("[company].banner_lines must be a list of strings.")
    company = CompanyInfo(name=name, banner_lines=tuple(str(x) for x in banner_raw))

    # 2) Accounting section
    accounting_section = _section(raw, "accounting")
    currency = str(accounting_section.get("currency") or "KES")

    # 3) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/smb_ledger.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()
    database = DatabaseConfig(engine=db_engine, path=db_path)

    # 4) Identity
    identity_section = _section(raw, "identity")
    identity = IdentityConfig(
        user_id=_optional_str(identity_section.get("user_id")),
        email=_optional_str(identity_section.get("email")),
    )

    # 5) Local buffer
    local_section = _section(raw, "local")
    buffer_raw = _optional_str(
        local_section.get("buffer_path", "data/local/buffer.json")
    )
    local_buffer_path = (base_dir / buffer_raw).resolve() if buffer_raw else None

    # 6) Reports
    reports_section = _section(raw, "reports")
    try:
        top_categories = int(reports_section.get("top_categories", 5))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reports.top_categories'. Expected an integer."
        ) from exc
    if top_categories < 1:
        raise ValueError("'reports.top_categories' must be at least 1.")

    default_period = str(reports_section.get("default_period", "current-month"))
    if default_period not in PERIOD_TOKENS or default_period == "custom":
        raise ValueError(
            f"Invalid value for 'reports.default_period': {default_period!r}."
        )

    output_dir_raw = reports_section.get("output_dir", "data/output")
    output_dir = (base_dir / str(output_dir_raw)).resolve()

    return AppConfig(
        company=company,
        currency=currency,
        database=database,
        identity=identity,
        local_buffer_path=local_buffer_path,
        reports=ReportsConfig(
            top_categories=top_categories,
            default_period=default_period,
            output_dir=output_dir,
        ),
    )


def default_app_config(base_dir: Optional[Path] = None) -> AppConfig:
    """Return the configuration used when no TOML file is available."""
    return _parse_config({}, (base_dir or Path.cwd()).resolve())


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB Ledger application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [company]
        ``name`` and ``banner_lines`` printed on exported reports.

    [accounting]
        ``currency`` used when formatting amounts (default "KES").

    [database]
        ``engine`` (only "sqlite") and ``path`` of the SQLite file.

    [identity]
        Optional ``user_id`` / ``email`` of the principal used by the CLI.
        Without a user id, the CLI works on the local-only dataset.

    [local]
        ``buffer_path``: JSON file backing the local buffer (default
        "data/local/buffer.json"; an empty string keeps it in memory only).

    [reports]
        ``top_categories`` (default 5), ``default_period`` (default
        "current-month") and ``output_dir`` (default "data/output").

    Notes
    -----
    - All file paths in the TOML are resolved relative to the directory of
      the TOML file itself.
    - When `config_path` is None and ``smb_ledger_config.toml`` does not
      exist in the current directory, defaults are used. An explicit path
      that does not exist is an error.

    Raises
    ------
    FileNotFoundError
        If an explicit config path does not exist.
    ValueError
        If the file cannot be parsed or contains invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        if not config_file.is_file():
            return default_app_config()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    return _parse_config(raw, config_file.parent)
