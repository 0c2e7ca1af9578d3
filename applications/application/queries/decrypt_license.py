"""
DecryptLicenseQuery.

Query to open a license key and return its payload.
"""
from dataclasses import dataclass


@dataclass
class DecryptLicenseQuery:
    """Query to decrypt a license key."""

    license_key: str
