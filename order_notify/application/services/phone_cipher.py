"""Phone number encryption at rest.

Format: base64(nonce[12] || AES-256-GCM ciphertext+tag).

Without a configured key the cipher degrades to a pass-through so the
service keeps working, storing phones in plaintext. ``decrypt_safe``
tolerates rows written before a key was configured.
"""

import base64
import binascii
import os
import re
from typing import Optional

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from order_notify.core.exceptions import PhoneEncryptionError

logger = structlog.get_logger(__name__)

NONCE_LENGTH = 12
KEY_LENGTH = 32
CIPHERTEXT_PATTERN = re.compile(r"^[A-Za-z0-9+/]+=*$")
MIN_CIPHERTEXT_LENGTH = 20


def generate_key() -> str:
    """Return a fresh base64-encoded 256-bit key for PHONE_ENCRYPTION_KEY."""
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


def looks_encrypted(value: str) -> bool:
    return bool(CIPHERTEXT_PATTERN.match(value)) and len(value) >= MIN_CIPHERTEXT_LENGTH


class PhoneCipher:
    """AES-GCM cipher for phone numbers plus a deterministic blind index."""

    def __init__(self, key: Optional[str] = None):
        self._aead: Optional[AESGCM] = None
        self._index_key: Optional[bytes] = None
        self._warned_plaintext = False

        if key:
            try:
                raw = base64.b64decode(key, validate=True)
            except (binascii.Error, ValueError) as e:
                raise PhoneEncryptionError("PHONE_ENCRYPTION_KEY is not valid base64") from e
            if len(raw) != KEY_LENGTH:
                raise PhoneEncryptionError(
                    f"PHONE_ENCRYPTION_KEY must decode to {KEY_LENGTH} bytes, got {len(raw)}"
                )
            self._aead = AESGCM(raw)
            self._index_key = HKDF(
                algorithm=hashes.SHA256(),
                length=KEY_LENGTH,
                salt=None,
                info=b"order-notify phone index",
            ).derive(raw)

    @property
    def is_configured(self) -> bool:
        return self._aead is not None

    def encrypt(self, phone: str) -> str:
        if self._aead is None:
            raise PhoneEncryptionError("Encryption key not configured")
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aead.encrypt(nonce, phone.encode("utf-8"), None)
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, token: str) -> str:
        if self._aead is None:
            raise PhoneEncryptionError("Encryption key not configured")
        try:
            combined = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise PhoneEncryptionError("Ciphertext is not valid base64") from e
        if len(combined) <= NONCE_LENGTH:
            raise PhoneEncryptionError("Ciphertext is too short")
        nonce, sealed = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
        try:
            return self._aead.decrypt(nonce, sealed, None).decode("utf-8")
        except InvalidTag as e:
            raise PhoneEncryptionError("Failed to decrypt phone number") from e

    def encrypt_safe(self, phone: str) -> str:
        """Encrypt when a key is configured, otherwise return the phone unchanged."""
        if not self.is_configured:
            if not self._warned_plaintext:
                logger.warning("phone_encryption_disabled", detail="storing phone numbers in plaintext")
                self._warned_plaintext = True
            return phone
        return self.encrypt(phone)

    def decrypt_safe(self, value: Optional[str]) -> Optional[str]:
        """Decrypt stored values, passing legacy plaintext through."""
        if not value or not self.is_configured or not looks_encrypted(value):
            return value
        try:
            return self.decrypt(value)
        except PhoneEncryptionError:
            # Plaintext that happens to look like base64
            logger.debug("phone_decrypt_fallback")
            return value

    def fingerprint(self, phone: str) -> str:
        """Deterministic lookup key for a normalized phone.

        Equal phones always produce equal fingerprints, which randomized
        ciphertext cannot. Without a key this is the phone itself.
        """
        if self._index_key is None:
            return phone
        mac = crypto_hmac.HMAC(self._index_key, hashes.SHA256())
        mac.update(phone.encode("utf-8"))
        return mac.finalize().hex()
