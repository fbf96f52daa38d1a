"""
Domain-scoped login credentials for browser automation.

The store is loaded once at startup from a JSON file and is immutable
afterwards; request handlers only ever read from it. Usernames and passwords
are kept encrypted at rest and decrypted on lookup.

File layout::

    {
      "example.com": {
        "username": "gAAAAA...",
        "password": "gAAAAA...",
        "login_url": "https://example.com/login",
        "username_selector": "#email",
        "password_selector": "#password",
        "submit_selector": "button[type=submit]",
        "success_indicator": ".dashboard",
        "wait_after_login_ms": 3000
      }
    }
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from .crypto import CredentialEncryption
from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger("uniproxy.credentials")

DEFAULT_USERNAME_SELECTOR = '#username, [name="username"]'
DEFAULT_PASSWORD_SELECTOR = '#password, [name="password"]'
DEFAULT_SUBMIT_SELECTOR = 'button[type="submit"], #login'
DEFAULT_SUCCESS_INDICATOR = '.dashboard, .profile'
DEFAULT_WAIT_AFTER_LOGIN_MS = 3000


@dataclass(frozen=True)
class LoginCredential:
    """Decrypted credential handed to the automation engine (read-only)."""
    username: str
    password: str = field(repr=False)
    login_url: str = ""
    username_selector: str = DEFAULT_USERNAME_SELECTOR
    password_selector: str = DEFAULT_PASSWORD_SELECTOR
    submit_selector: str = DEFAULT_SUBMIT_SELECTOR
    success_indicator: str = DEFAULT_SUCCESS_INDICATOR
    wait_after_login_ms: int = DEFAULT_WAIT_AFTER_LOGIN_MS


def domain_from_url(url: str) -> Optional[str]:
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


class CredentialStore:
    """Read-only snapshot of encrypted credentials keyed by hostname."""

    def __init__(
        self,
        records: Optional[Mapping[str, Mapping[str, Any]]] = None,
        encryption: Optional[CredentialEncryption] = None,
        production: bool = False,
    ):
        self._records = MappingProxyType(
            {domain.lower(): dict(record) for domain, record in (records or {}).items()}
        )
        self._encryption = encryption
        self._production = production

    @classmethod
    def from_file(
        cls,
        path: Path,
        encryption: Optional[CredentialEncryption] = None,
        production: bool = False,
    ) -> "CredentialStore":
        """Load the store from a JSON file. A missing file yields an empty store."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Credentials file not found: {path}")
            return cls({}, encryption, production)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Unable to read credentials file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Credentials file must contain an object keyed by domain")

        logger.info(f"Loaded credentials for {len(data)} domain(s)")
        return cls(data, encryption, production)

    def __len__(self) -> int:
        return len(self._records)

    def _reveal(self, value: str) -> str:
        if self._encryption is None:
            return value or ""
        return self._encryption.decrypt_or_return(value)

    def has_credentials(self, url: str) -> bool:
        domain = domain_from_url(url)
        return bool(domain and domain in self._records)

    def get_credentials(self, url: str) -> Optional[LoginCredential]:
        domain = domain_from_url(url)
        if not domain or domain not in self._records:
            return None

        stored = self._records[domain]
        return LoginCredential(
            username=self._reveal(stored.get("username", "")),
            password=self._reveal(stored.get("password", "")),
            login_url=stored.get("login_url", ""),
            username_selector=stored.get("username_selector") or DEFAULT_USERNAME_SELECTOR,
            password_selector=stored.get("password_selector") or DEFAULT_PASSWORD_SELECTOR,
            submit_selector=stored.get("submit_selector") or DEFAULT_SUBMIT_SELECTOR,
            success_indicator=stored.get("success_indicator") or DEFAULT_SUCCESS_INDICATOR,
            wait_after_login_ms=int(stored.get("wait_after_login_ms") or DEFAULT_WAIT_AFTER_LOGIN_MS),
        )

    def list_domains(self) -> List[Dict[str, Any]]:
        """Domains with credentials, without any secret material."""
        return [
            {"domain": domain, "has_credentials": True, "login_url": record.get("login_url", "")}
            for domain, record in self._records.items()
        ]

    def add_credentials(self, domain: str, credential: LoginCredential) -> "CredentialStore":
        """Return a new store with ``domain`` added. Refused in production."""
        if self._production:
            raise ConfigurationError("Credential management not available in production")
        if self._encryption is None:
            raise ConfigurationError("An encryption key is required to add credentials")

        records = {key: dict(value) for key, value in self._records.items()}
        records[domain.lower()] = {
            "username": self._encryption.encrypt(credential.username),
            "password": self._encryption.encrypt(credential.password),
            "login_url": credential.login_url,
            "username_selector": credential.username_selector,
            "password_selector": credential.password_selector,
            "submit_selector": credential.submit_selector,
            "success_indicator": credential.success_indicator,
            "wait_after_login_ms": credential.wait_after_login_ms,
        }
        return CredentialStore(records, self._encryption, self._production)

    def save(self, path: Path):
        """Write the encrypted records to ``path`` with owner-only permissions."""
        if self._production:
            raise ConfigurationError("Credential management not available in production")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(dict(self._records), indent=2), encoding="utf-8")
        path.chmod(0o600)
        logger.info(f"Saved credentials for {len(self)} domain(s)")
