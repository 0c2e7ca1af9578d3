"""
Fernet implementation of the LicenseCodec port.

Fernet guarantees that a license key cannot be read or forged without the
service key (AES-128-CBC with an HMAC for authenticity).
"""
import json
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from applications.ports.license_codec import LicenseCodec
from core.domain.exceptions import DecodeError


class FernetLicenseCodec(LicenseCodec):
    """Seals JSON license payloads with a Fernet key."""

    def __init__(self, key: str = None):
        """
        Initialize with a Fernet key.

        Args:
            key: Base64-encoded 32-byte key (defaults to ``LICENSE_ENCRYPTION_KEY``)

        Raises:
            ImproperlyConfigured: If the key is missing or invalid
        """
        key = key or settings.LICENSE_ENCRYPTION_KEY
        if not key:
            raise ImproperlyConfigured("LICENSE_ENCRYPTION_KEY is not set")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise ImproperlyConfigured(f"Invalid license encryption key: {e}") from e

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode()

    def encrypt(self, payload: Dict[str, Any]) -> str:
        """
        Encrypt a license payload.

        Args:
            payload: License payload

        Returns:
            URL-safe license key
        """
        plaintext = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> Dict[str, Any]:
        """
        Decrypt a license key.

        Args:
            ciphertext: License key

        Returns:
            The license payload

        Raises:
            DecodeError: If the key is malformed, tampered with or not a JSON object
        """
        if not ciphertext or not isinstance(ciphertext, str):
            raise DecodeError("License key is empty")
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as e:
            raise DecodeError("License key is invalid or was tampered with") from e
        try:
            payload = json.loads(plaintext)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError("License payload is not valid JSON") from e
        if not isinstance(payload, dict) or "version" not in payload:
            raise DecodeError("License payload has an unknown shape")
        return payload
