# ============================================================================
# FIELD ENCRYPTION
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Infrastructure - Authenticated encryption for credential fields
# PURPOSE: AES-256-GCM tokens for individually encrypted secret columns
# CREATED: 19 OCT 2026
# ============================================================================
"""
Field Encryption

Each secret column is encrypted on its own so any subset can be decrypted
without the others. Token layout:

    base64( nonce[12] || ciphertext || tag[16] )

The token is a single base64 string, so the plaintext may contain any
character (including ':').

Usage:
    from infrastructure.encryption import FieldCipher

    cipher = FieldCipher.from_hex(os.environ["PORTAL_ENCRYPTION_KEY"])
    token = cipher.encrypt("hunter2")
    cipher.decrypt(token)  # "hunter2"
"""

import base64
import binascii
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.errors import VaultDecryptionError

logger = logging.getLogger(__name__)

NONCE_BYTES = 12
KEY_BYTES = 32


class FieldCipher:
    """AES-256-GCM cipher for single string values."""

    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise ValueError(f"Encryption key must be {KEY_BYTES} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    @classmethod
    def from_hex(cls, key_hex: str) -> "FieldCipher":
        try:
            key = bytes.fromhex(key_hex.strip())
        except ValueError as e:
            raise ValueError("Encryption key must be hex encoded") from e
        return cls(key)

    @staticmethod
    def generate_key() -> str:
        """New random key, hex encoded (for PORTAL_ENCRYPTION_KEY)."""
        return AESGCM.generate_key(bit_length=KEY_BYTES * 8).hex()

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            raw = base64.b64decode(token.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise VaultDecryptionError("Stored value is not a valid token") from e

        if len(raw) <= NONCE_BYTES:
            raise VaultDecryptionError("Stored value is too short")

        try:
            plaintext = self._aead.decrypt(raw[:NONCE_BYTES], raw[NONCE_BYTES:], None)
        except InvalidTag as e:
            raise VaultDecryptionError("Stored value failed authentication") from e
        return plaintext.decode("utf-8")

    def encrypt_optional(self, plaintext: Optional[str]) -> Optional[str]:
        return None if plaintext is None else self.encrypt(plaintext)

    def decrypt_optional(self, token: Optional[str]) -> Optional[str]:
        return None if token is None else self.decrypt(token)


__all__ = ["FieldCipher", "NONCE_BYTES", "KEY_BYTES"]
