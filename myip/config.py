"""Process-wide settings.

Settings are read once at startup (environment variables, optionally seeded
from a `.env` file) and then passed by reference into the app. Nothing mutates
them afterwards.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Enables the `?host=` override and relaxes security headers.
    debug: bool = False

    # Trusted forwarding header (e.g. "X-Real-IP"). Only set this behind a
    # proxy that overwrites the header.
    ip_header: str = ""

    # Origin used to scope CORS, without scheme.
    host: str = "localhost:8080"

    bind: str = "0.0.0.0"
    port: int = 8080

    request_id_header: str = "X-Request-ID"

    # Per-source enrichment timeout in seconds.
    lookup_timeout: float = 5.0

    geo_url: str = "http://ip-api.com/json/{ip}"

    static_dir: Path = Path("static")
    log_level: str = "INFO"

    analytics_id: str = ""
    maps_key: str = ""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (MYIP_*)."""
        if env is None:
            env = os.environ
        return cls(
            debug=_env_bool(env, "MYIP_DEBUG", False),
            ip_header=env.get("MYIP_IP_HEADER", "").strip(),
            host=env.get("MYIP_HOST", cls.host).strip(),
            bind=env.get("MYIP_BIND", cls.bind),
            port=_env_int(env, "MYIP_PORT", cls.port),
            request_id_header=env.get("MYIP_REQUEST_ID_HEADER", cls.request_id_header).strip(),
            lookup_timeout=_env_float(env, "MYIP_LOOKUP_TIMEOUT", cls.lookup_timeout),
            geo_url=env.get("MYIP_GEO_URL", cls.geo_url),
            static_dir=Path(env.get("MYIP_STATIC_DIR", str(cls.static_dir))),
            log_level=env.get("MYIP_LOG_LEVEL", cls.log_level),
            analytics_id=env.get("MYIP_ANALYTICS_ID", ""),
            maps_key=env.get("MYIP_MAPS_KEY", ""),
        )


def load_settings() -> Settings:
    """Load `.env` (current dir, then home dir) and read settings from the environment."""
    # Try current dir, then home dir
    for env_path in [Path(".env"), Path.home() / ".myip.env"]:
        if env_path.exists():
            load_dotenv(env_path)
            break
    return Settings.from_env()
