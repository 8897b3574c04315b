"""Bot settings.

Settings come from an optional ~/.linkguard/settings.yaml, overridden by
environment variables:

- TG_BOT_TOKEN (or the variable named by `token_env`): bot token, required
- LINKGUARD_STORE: path of the link store JSON file
- LINKGUARD_LOG_LEVEL: root log level
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml  # type: ignore

from ..paths import ensure_home

DEFAULT_TOKEN_ENV = "TG_BOT_TOKEN"


class ConfigError(RuntimeError):
    """Settings are missing or invalid; the bot cannot start."""


def _is_env_var_name(value: str) -> bool:
    return bool(re.fullmatch(r"[A-Z_][A-Z0-9_]*", (value or "").strip()))


@dataclass
class BotSettings:
    token: str
    store_path: Path
    log_level: str = "INFO"
    # Per-call Bot API timeout in seconds.
    api_timeout: float = 15.0
    # getUpdates long-poll timeout in seconds.
    poll_timeout: int = 25

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, home: Path) -> "BotSettings":
        store = str(d.get("store_path") or "").strip()
        raw_api = d.get("api_timeout")
        raw_poll = d.get("poll_timeout")
        try:
            api_timeout = 15.0 if raw_api is None else float(raw_api)
            poll_timeout = 25 if raw_poll is None else int(raw_poll)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid timeout setting: {e}") from e
        if api_timeout <= 0 or poll_timeout < 0:
            raise ConfigError("timeouts must be positive")
        return cls(
            token=str(d.get("token") or "").strip(),
            store_path=Path(store).expanduser() if store else home / "store.json",
            log_level=str(d.get("log_level") or "INFO").strip().upper(),
            api_timeout=api_timeout,
            poll_timeout=poll_timeout,
        )


def _settings_path(home: Path) -> Path:
    return home / "settings.yaml"


def load_settings_file(home: Optional[Path] = None) -> Dict[str, Any]:
    """Load <home>/settings.yaml; a missing file is an empty mapping."""
    p = _settings_path(home or ensure_home())
    if not p.exists():
        return {}
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read {p}: {e}") from e
    if not isinstance(doc, dict):
        raise ConfigError(f"{p} must contain a mapping")
    return doc


def load_settings(
    *,
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    require_token: bool = True,
) -> BotSettings:
    """Resolve settings from file + environment. Raises ConfigError on failure."""
    home = home or ensure_home()
    env = os.environ if environ is None else environ
    doc = dict(load_settings_file(home))

    token_env_raw = str(doc.pop("token_env", "") or "").strip()
    token_env = token_env_raw if _is_env_var_name(token_env_raw) else DEFAULT_TOKEN_ENV
    token = str(env.get(token_env, "") or "").strip()
    if token:
        doc["token"] = token

    store = str(env.get("LINKGUARD_STORE", "") or "").strip()
    if store:
        doc["store_path"] = store
    level = str(env.get("LINKGUARD_LOG_LEVEL", "") or "").strip()
    if level:
        doc["log_level"] = level

    settings = BotSettings.from_dict(doc, home=home)
    if require_token and not settings.token:
        raise ConfigError(f"Telegram bot token not set through env {token_env}")
    return settings
