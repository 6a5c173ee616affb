"""Configuration for pairbot"""

from __future__ import annotations

from .config import CompanyConfig, ConnectionConfig, PairbotConfig, PairingConfig, ServerConfig
from .loader import get_config_path, invalidate_config_cache, load_config

__all__ = [
    "CompanyConfig",
    "ConnectionConfig",
    "PairbotConfig",
    "PairingConfig",
    "ServerConfig",
    "get_config_path",
    "invalidate_config_cache",
    "load_config",
]
