# slashride/infra/crypto.py
"""
Fernet symmetric encryption for ride API tokens at rest.

Each token is bound to the chat user it belongs to: the user id is stored
inside the encrypted payload and checked on decrypt, so a ciphertext copied
onto another user's row cannot be used.

Usage:
    crypto = FernetCrypto(settings.token_encryption_key)
    blob = crypto.encrypt_token("access-token", user_id="U123")
    token = crypto.decrypt_token(blob, user_id="U123")

Key generation:
    python scripts/generate_encryption_key.py
"""
from __future__ import annotations

import json

from cryptography.fernet import Fernet, InvalidToken

from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)


class CryptoError(Exception):
    """Raised when encryption/decryption fails."""


class CryptoNotConfiguredError(CryptoError):
    """Raised when encryption key is not configured."""


class CryptoContextMismatchError(CryptoError):
    """Raised when a token was encrypted for a different user."""


class FernetCrypto:
    """Fernet-based encryption for user-bound secrets."""

    def __init__(self, key: str | bytes | None):
        """
        Args:
            key: URL-safe base64-encoded 32-byte key (see generate_key())

        Raises:
            CryptoNotConfiguredError: If no key is given
            CryptoError: If the key is invalid
        """
        if not key:
            raise CryptoNotConfiguredError(
                "TOKEN_ENCRYPTION_KEY is not configured. "
                "Generate a key using scripts/generate_encryption_key.py and set it in .env"
            )
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as exc:
            raise CryptoError(f"Invalid Fernet key: {exc}") from exc

    def encrypt_token(self, token: str, *, user_id: str) -> bytes:
        """Encrypt ``token`` bound to ``user_id``."""
        payload = json.dumps({"user_id": user_id, "token": token}).encode("utf-8")
        return self._fernet.encrypt(payload)

    def decrypt_token(self, ciphertext: bytes | memoryview, *, user_id: str) -> str:
        """
        Decrypt a token produced by encrypt_token().

        Raises:
            CryptoContextMismatchError: If it was encrypted for another user
            CryptoError: If decryption or parsing fails
        """
        if isinstance(ciphertext, memoryview):
            ciphertext = bytes(ciphertext)
        try:
            data = json.loads(self._fernet.decrypt(ciphertext))
        except InvalidToken:
            raise CryptoError("Decryption failed: invalid token (wrong key or corrupted data)")
        except json.JSONDecodeError as exc:
            raise CryptoError(f"Decryption succeeded but JSON parsing failed: {exc}") from exc

        if data.get("user_id") != user_id:
            raise CryptoContextMismatchError(
                "Token context mismatch: the ciphertext was encrypted for a different user"
            )
        return data["token"]

    @staticmethod
    def generate_key() -> str:
        """New URL-safe base64-encoded 32-byte key string."""
        return Fernet.generate_key().decode("ascii")
