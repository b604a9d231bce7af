"""
Credential encryption for stored trigger configurations.

Secret fields (``apiKey``, ``password``, ``privateKey``) are stored as
Fernet tokens; everything else (auth type, username, client id) stays
readable. Decryption happens only when a poll or test actually talks
to the external source.
"""

from __future__ import annotations

import base64
import hashlib
from logging import getLogger
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken

from automation.config import TriggerConfig, get_config
from automation.triggers.errors import TriggerConfigError

logger = getLogger(__name__)

SECRET_FIELDS = ("apiKey", "password", "privateKey")

REDACTED = "[REDACTED]"


class CredentialCipher:
    """Encrypt and decrypt the secret fields of a credentials mapping."""

    def __init__(self, encryption_key: Optional[str] = None) -> None:
        if encryption_key is None:
            config: TriggerConfig = get_config(TriggerConfig.get_config_name())
            encryption_key = config.credentials_encryption_key
        self._encryption_key = encryption_key or ""

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    @staticmethod
    def derive_key(secret: str) -> str:
        """Derive a Fernet key from an arbitrary application secret (SHA-256)."""
        digest = hashlib.sha256(secret.encode()).digest()
        return base64.urlsafe_b64encode(digest).decode()

    def _get_fernet(self) -> Fernet:
        if not self._encryption_key:
            raise TriggerConfigError(
                "CREDENTIALS_ENCRYPTION_KEY is not set; cannot encrypt or decrypt credentials"
            )
        try:
            return Fernet(self._encryption_key.encode())
        except ValueError as e:
            raise TriggerConfigError(f"Invalid credentials encryption key: {e}") from e

    def encrypt(self, value: str) -> str:
        return self._get_fernet().encrypt(value.encode()).decode()

    def decrypt(self, token: str) -> str:
        try:
            return self._get_fernet().decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise TriggerConfigError("Stored credentials could not be decrypted") from e

    def encrypt_credentials(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: self.encrypt(str(value)) if key in SECRET_FIELDS and value else value
            for key, value in credentials.items()
        }

    def decrypt_credentials(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: self.decrypt(str(value)) if key in SECRET_FIELDS and value else value
            for key, value in credentials.items()
        }


def secret_values(*credential_sets: Dict[str, Any]) -> List[str]:
    """Non-empty secret field values across the given mappings."""
    values: List[str] = []
    for credentials in credential_sets:
        for key in SECRET_FIELDS:
            value = credentials.get(key)
            if value:
                values.append(str(value))
    return values


def redact(text: str, secrets: List[str]) -> str:
    """Replace every occurrence of a secret in ``text``."""
    # Longest first so a secret that contains another is fully hidden.
    for secret in sorted(set(secrets), key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text
