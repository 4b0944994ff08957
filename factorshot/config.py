"""
factorshot.config — YAML Configuration Loader
==============================================

This module reads ``config.yaml`` for **infrastructure-only** settings
(app identity, port, token lifetime, page sizes).  Secrets and URLs
(``DATABASE_URL``, ``JWT_SECRET``, ``GOOGLE_CLIENT_ID``) come from the
environment / ``.env`` instead.

Usage::

    from factorshot.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.app_name)          # "Factorshot"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class FactorshotConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    app_name: str
    api_port: int

    # Access tokens issued after Google login
    token_ttl_hours: int = 12

    # Default page sizes
    sessions_per_page: int = 10
    users_per_page: int = 40
    admin_sessions_per_page: int = 10


def load_config(path: str | Path = "config.yaml") -> FactorshotConfig:
    """Read *path* and return a :class:`FactorshotConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = FactorshotConfig(app_name="", api_port=0)
    return FactorshotConfig(
        app_name=raw["app_name"],
        api_port=int(raw["api_port"]),
        token_ttl_hours=int(raw.get("token_ttl_hours", defaults.token_ttl_hours)),
        sessions_per_page=int(raw.get("sessions_per_page", defaults.sessions_per_page)),
        users_per_page=int(raw.get("users_per_page", defaults.users_per_page)),
        admin_sessions_per_page=int(
            raw.get("admin_sessions_per_page", defaults.admin_sessions_per_page)
        ),
    )
