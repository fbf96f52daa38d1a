"""
Runtime settings for the gateway, read from the environment.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .proxy_agent import ProxyTier, load_proxy_tiers

DATA_DIR = Path.home() / ".uniproxy"
DEFAULT_CREDENTIALS_FILE = DATA_DIR / "credentials.json"

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "https://claude.ai"]


def _split_list(value: Optional[str]) -> List[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


@dataclass
class Settings:
    host: str = "127.0.0.1"
    port: int = 3001
    environment: str = "development"
    api_keys: List[str] = field(default_factory=list)
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    credentials_file: Optional[Path] = None
    openai_api_key: str = field(default="", repr=False)
    elevenlabs_api_key: str = field(default="", repr=False)
    proxy_tiers: Dict[str, ProxyTier] = field(default_factory=dict)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_keys)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        try:
            port = int(env.get("UNIPROXY_PORT", "3001"))
        except ValueError:
            port = 3001

        credentials_file = env.get("UNIPROXY_CREDENTIALS_FILE")

        return cls(
            host=env.get("UNIPROXY_HOST", "127.0.0.1"),
            port=port,
            environment=env.get("UNIPROXY_ENV", "development").lower(),
            api_keys=_split_list(env.get("UNIPROXY_API_KEYS")),
            cors_origins=_split_list(env.get("UNIPROXY_CORS_ORIGINS")) or list(DEFAULT_CORS_ORIGINS),
            credentials_file=Path(credentials_file).expanduser() if credentials_file else DEFAULT_CREDENTIALS_FILE,
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            elevenlabs_api_key=env.get("ELEVENLABS_API_KEY", ""),
            proxy_tiers=load_proxy_tiers(env),
        )
