"""
Fernet encryption for login credentials kept at rest.

Key precedence: an explicit secret (or UNIPROXY_ENCRYPTION_KEY), then the key
file under ~/.uniproxy, then a freshly generated key written to that file.
"""
import base64
import binascii
import hashlib
import os
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import DATA_DIR

KEY_FILE = DATA_DIR / ".encryption_key"
KEY_ENV_VAR = "UNIPROXY_ENCRYPTION_KEY"

# Every Fernet token begins with the version byte 0x80 followed by a timestamp
TOKEN_PREFIX = "gAAAAA"


def key_from_secret(secret: str) -> bytes:
    """Use ``secret`` as-is if it is a urlsafe-base64 32-byte key, else hash it into one."""
    try:
        raw = base64.urlsafe_b64decode(secret.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raw = b""
    if len(raw) != 32:
        raw = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(raw)


def load_or_create_key(key_file: Path) -> bytes:
    if key_file.exists():
        return key_file.read_bytes().strip()

    key = Fernet.generate_key()
    key_file.parent.mkdir(parents=True, exist_ok=True)
    key_file.write_bytes(key)
    os.chmod(key_file, 0o600)
    return key


class CredentialEncryption:
    """Encrypts and decrypts individual credential values."""

    def __init__(self, secret: Optional[str] = None, key_file: Path = KEY_FILE):
        if secret is None:
            secret = os.environ.get(KEY_ENV_VAR)
        key = key_from_secret(secret) if secret else load_or_create_key(key_file)
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        """Return a Fernet token for ``plaintext`` ("" stays "")."""
        if not plaintext:
            return ""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a Fernet token.

        A token produced under a different key decrypts to "" rather than
        raising, so a rotated key degrades to "no credentials".
        """
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeEncodeError):
            return ""

    @staticmethod
    def is_encrypted(value: str) -> bool:
        return bool(value) and value.startswith(TOKEN_PREFIX)

    def decrypt_or_return(self, value: str) -> str:
        """Decrypt tokens; pass values stored in plain text through untouched."""
        if self.is_encrypted(value):
            return self.decrypt(value)
        return value or ""
