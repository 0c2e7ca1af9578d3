"""
License codec port (interface).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict


class LicenseCodec(ABC):
    """Seals license payloads into opaque license keys and opens them again."""

    @abstractmethod
    def encrypt(self, payload: Dict[str, Any]) -> str:
        """
        Encrypt a license payload.

        Args:
            payload: License payload

        Returns:
            Opaque ciphertext used as the license key
        """

    @abstractmethod
    def decrypt(self, ciphertext: str) -> Dict[str, Any]:
        """
        Decrypt a license key.

        Args:
            ciphertext: License key produced by ``encrypt``

        Returns:
            The original payload

        Raises:
            DecodeError: If the ciphertext is malformed or was not produced with this key
        """
