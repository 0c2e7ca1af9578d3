"""
Deletion of items whose retention window has passed.

Terminal applications and their history carry ``ttl`` (epoch seconds);
this job removes them once that time is behind us.
"""
import logging
from datetime import datetime
from typing import Optional

from core.domain.timestamps import utcnow
from core.infrastructure.models import TableItem

logger = logging.getLogger(__name__)


def purge_expired_items(now: Optional[datetime] = None, dry_run: bool = False) -> int:
    """
    Delete items whose ``ttl`` is in the past.

    Args:
        now: Reference time (defaults to now)
        dry_run: Count matching items without deleting them

    Returns:
        Number of items deleted (or that would be deleted)
    """
    cutoff = int((now or utcnow()).timestamp())
    expired = TableItem.objects.filter(ttl__isnull=False, ttl__lt=cutoff)
    if dry_run:
        return expired.count()

    deleted, _ = expired.delete()
    logger.info("Purged %s expired items", deleted, extra={"cutoff": cutoff, "count": deleted})
    return deleted
