"""At-rest encryption for free-text health content (descriptions, solutions).

``ENCRYPTION_SECRET`` is the active secret. ``ENCRYPTION_PREVIOUS_SECRETS``
(comma separated) keeps older secrets readable while rows are re-encrypted.
"""
import base64
import hashlib
import os
from typing import Any, List

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from sqlalchemy.types import TypeDecorator, Text

DEV_SECRET = "dev-secret-key-change-me"


def _fernet_for(secret: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


def _secrets() -> List[str]:
    active = os.getenv("ENCRYPTION_SECRET") or DEV_SECRET
    previous = [s.strip() for s in (os.getenv("ENCRYPTION_PREVIOUS_SECRETS") or "").split(",") if s.strip()]
    return [active] + [s for s in previous if s != active]


def build_cipher() -> MultiFernet:
    # First key encrypts; all keys are tried on decrypt
    return MultiFernet([_fernet_for(s) for s in _secrets()])


_CIPHER = build_cipher()


def encrypt_text(value: str) -> str:
    return _CIPHER.encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_text(token: str) -> str:
    """Plaintext for ``token``; empty when no configured secret can read it."""
    try:
        return _CIPHER.decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        return ""


class EncryptedText(TypeDecorator):
    """Text column stored as a Fernet token."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Any:  # type: ignore[override]
        if value is None:
            return None
        return encrypt_text(value if isinstance(value, str) else str(value))

    def process_result_value(self, value: Any, dialect) -> Any:  # type: ignore[override]
        if value is None:
            return None
        return decrypt_text(value)
