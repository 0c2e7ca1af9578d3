"""
DecryptLicenseHandler.
"""
from typing import Any, Dict

from applications.application.queries.decrypt_license import DecryptLicenseQuery
from applications.ports.license_codec import LicenseCodec


class DecryptLicenseHandler:
    """Handler for DecryptLicenseQuery."""

    def __init__(self, codec: LicenseCodec):
        """Initialize handler with the license codec."""
        self.codec = codec

    async def handle(self, query: DecryptLicenseQuery) -> Dict[str, Any]:
        """
        Decrypt a license key.

        Raises:
            DecodeError: If the key is malformed or was tampered with
        """
        return self.codec.decrypt(query.license_key)
