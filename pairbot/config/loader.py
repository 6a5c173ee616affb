"""Configuration loader for pairbot.

Loads configuration from a JSON file and environment variables:
- ${ENV_VAR} substitution inside string values
- Environment overrides for the settings usually changed per deployment
  (PORT, COMPANY_NAME, ...)
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

from .config import PairbotConfig

logger = logging.getLogger(__name__)

_cached_config: Optional[PairbotConfig] = None

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

# Environment variable -> (section, field, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "PORT": ("server", "port", int),
    "HOST": ("server", "host", str),
    "PAIRBOT_ADMIN_API_KEY": ("server", "admin_api_key", str),
    "PAIRBOT_TRUST_PROXY": ("server", "trust_proxy", bool),
    "PAIRBOT_RATE_LIMIT_MAX": ("server", "rate_limit_max_requests", int),
    "COMPANY_NAME": ("company", "name", str),
    "COMPANY_CONTACT": ("company", "contact", str),
    "COMPANY_EMAIL": ("company", "email", str),
    "COMPANY_WEBSITE": ("company", "website", str),
    "PAIRBOT_AUTH_DIR": ("connection", "auth_dir", str),
    "PAIRBOT_AUTO_CONNECT": ("connection", "auto_connect", bool),
    "PAIRBOT_CODE_EXPIRY_MINUTES": ("pairing", "code_expiry_minutes", float),
    "PAIRBOT_MAX_SESSIONS": ("pairing", "max_sessions", int),
}


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ${VAR} with os.environ values."""
    if isinstance(obj, str):

        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), m.group(0))  # leave unresolved as-is

        return _ENV_VAR_RE.sub(_replace, obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v) for v in obj]
    return obj


def _coerce(value: str, kind: type) -> Any:
    if kind is bool:
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return kind(value)


def apply_env_overrides(config: PairbotConfig, environ: Optional[dict[str, str]] = None) -> PairbotConfig:
    """Apply ENV_OVERRIDES to a loaded config in place."""
    env = os.environ if environ is None else environ
    for var, (section, name, kind) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            setattr(getattr(config, section), name, _coerce(raw, kind))
        except ValueError:
            logger.warning(f"Ignoring invalid value for {var}: {raw!r}")
    return config


def _resolve_config_path(config_path: Optional[str | Path]) -> Optional[Path]:
    if config_path:
        return Path(config_path)

    for candidate in _candidate_paths():
        if candidate.exists():
            return candidate
    return None


def _candidate_paths() -> list[Path]:
    return [
        Path.cwd() / "pairbot.json",
        Path.cwd() / "config" / "pairbot.json",
        Path.home() / ".pairbot" / "pairbot.json",
    ]


def load_config_raw(path: Path) -> dict[str, Any]:
    """Load a config file and substitute ${VAR} tokens."""
    obj = json.loads(path.read_text(encoding="utf-8"))
    obj = _substitute_env_vars(obj)
    return obj if isinstance(obj, dict) else {}


def load_config(config_path: Optional[str | Path] = None) -> PairbotConfig:
    """Load pairbot configuration.

    Args:
        config_path: Optional path to config file.

    Returns:
        Configuration object. Defaults are used when no file exists or the
        file cannot be parsed.
    """
    global _cached_config

    if _cached_config is not None:
        return _cached_config

    config_dict: dict[str, Any] = {}
    path = _resolve_config_path(config_path)

    if path and path.exists():
        try:
            config_dict = load_config_raw(path)
            logger.info(f"Loaded config from {path}")
        except Exception as exc:
            logger.warning(f"Failed to load config from {path}: {exc}")

    try:
        config_obj = PairbotConfig.from_dict(config_dict)
    except Exception as exc:
        logger.warning(f"Failed to parse config: {exc}")
        config_obj = PairbotConfig()

    apply_env_overrides(config_obj)

    _cached_config = config_obj
    return config_obj


def invalidate_config_cache() -> None:
    """Invalidate the in-process config cache so the next load_config() re-reads disk."""
    global _cached_config
    _cached_config = None


def get_config_path() -> Path:
    """Get the path to the active configuration file.

    Returns the user-level default (``~/.pairbot/pairbot.json``) when no file
    is found; it may not exist.
    """
    for candidate in _candidate_paths():
        if candidate.exists():
            return candidate
    return Path.home() / ".pairbot" / "pairbot.json"
