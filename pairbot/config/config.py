"""
Service configuration

Defaults match the deployed pairing service; every field can be set from
the JSON config file or, for the common ones, from the environment.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from .. import __version__

logger = logging.getLogger(__name__)


@dataclass
class CompanyConfig:
    """Branding shown on the status page and written to session metadata"""
    name: str = "IAN TECH"
    contact: str = "+254723278526"
    email: str = "contact@iantech.co.ke"
    website: str = "https://iantech.co.ke"
    logo_url: str = "https://files.catbox.moe/f7f4r1.jpg"
    session_prefix: str = "IAN_TECH"
    version: str = __version__


@dataclass
class PairingConfig:
    """Pairing code lifetime and registry limits"""
    code_length: int = 8
    code_expiry_minutes: float = 10
    max_sessions: int = 100
    cleanup_interval_seconds: float = 60.0

    # Phone number heuristics
    default_country_prefix: str = "+254"
    default_region: str = "KE"
    phone_example: str = "723278526"


@dataclass
class ConnectionConfig:
    """WhatsApp session behaviour"""
    auth_dir: str = "auth_info"
    auto_connect: bool = True
    startup_delay_seconds: float = 2.0
    max_qr_attempts: int = 5

    # Reconnect backoff (seconds)
    logged_out_delay: float = 10.0
    transient_delay: float = 5.0
    unknown_delay: float = 10.0
    init_failure_delay: float = 15.0


@dataclass
class ServerConfig:
    """HTTP server"""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Rate limiting: max requests per client per window
    rate_limit_window_seconds: float = 15 * 60
    rate_limit_max_requests: int = 100
    trust_proxy: bool = False

    # /admin/* is disabled unless a key is configured
    admin_api_key: str | None = None


def _section_from_dict(cls: type, data: dict[str, Any] | None) -> Any:
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PairbotConfig:
    """
    Complete pairbot configuration

    Top-level configuration combining all sections.
    """
    company: CompanyConfig = None
    pairing: PairingConfig = None
    connection: ConnectionConfig = None
    server: ServerConfig = None

    def __post_init__(self):
        """Initialize default sections if not provided"""
        if self.company is None:
            self.company = CompanyConfig()
        if self.pairing is None:
            self.pairing = PairingConfig()
        if self.connection is None:
            self.connection = ConnectionConfig()
        if self.server is None:
            self.server = ServerConfig()

    @classmethod
    def default(cls) -> "PairbotConfig":
        """Create default configuration"""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PairbotConfig":
        return cls(
            company=_section_from_dict(CompanyConfig, data.get("company")),
            pairing=_section_from_dict(PairingConfig, data.get("pairing")),
            connection=_section_from_dict(ConnectionConfig, data.get("connection")),
            server=_section_from_dict(ServerConfig, data.get("server")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
