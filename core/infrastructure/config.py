"""
Typed accessors for service configuration.
"""
import logging

from django.conf import settings

from core.domain.timestamps import (
    MAX_RETENTION_MONTHS,
    MIN_RETENTION_MONTHS,
    is_valid_retention_months,
)

logger = logging.getLogger(__name__)


def get_retention_months() -> int:
    """
    Retention window for terminal records, in months.

    Reads ``LICENSE_RETENTION_MONTHS`` (env ``TTL_MONTHS``). Values that are
    not integers within 1..60 fall back to ``DEFAULT_RETENTION_MONTHS``.
    """
    raw = settings.LICENSE_RETENTION_MONTHS
    try:
        months = int(raw)
    except (TypeError, ValueError):
        months = None

    if months is None or not is_valid_retention_months(months):
        logger.warning(
            "Invalid retention months %r (expected %s-%s), using default %s",
            raw,
            MIN_RETENTION_MONTHS,
            MAX_RETENTION_MONTHS,
            settings.DEFAULT_RETENTION_MONTHS,
        )
        return settings.DEFAULT_RETENTION_MONTHS
    return months
