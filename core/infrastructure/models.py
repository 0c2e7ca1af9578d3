"""
Single-table storage model.

Every aggregate (applications, their status history, user profiles with
their embedded integration test) is stored as one row keyed by
``(user_id, sk)``. Typed columns back the secondary access paths; the rest
of an item lives in ``attributes``.
"""
from django.db import models


class ItemType(models.TextChoices):
    """Kind of item stored under a partition."""

    APPLICATION = "APPLICATION", "Application"
    HISTORY = "HISTORY", "History"
    PROFILE = "PROFILE", "Profile"


class TableItem(models.Model):
    """
    One item of the license table.

    Secondary access paths:
    - ``(broker, account_number)`` to detect duplicate applications
    - ``(user_id, status)`` to list applications by status

    ``version`` is bumped on every write and is the optimistic concurrency
    token for conditional updates. ``ttl`` holds epoch seconds after which
    the purge job deletes the item.
    """

    user_id = models.CharField(max_length=255)
    sk = models.CharField(max_length=512)
    item_type = models.CharField(max_length=20, choices=ItemType.choices)
    status = models.CharField(max_length=32, null=True, blank=True)
    broker = models.CharField(max_length=255, null=True, blank=True)
    account_number = models.CharField(max_length=64, null=True, blank=True)
    test_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    version = models.PositiveIntegerField(default=1)
    ttl = models.BigIntegerField(null=True, blank=True, db_index=True)
    attributes = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "license_items"
        ordering = ["user_id", "sk"]
        constraints = [
            models.UniqueConstraint(fields=["user_id", "sk"], name="license_items_pk"),
        ]
        indexes = [
            models.Index(fields=["broker", "account_number"], name="broker_account_index"),
            models.Index(fields=["user_id", "status"], name="user_status_index"),
        ]

    def __str__(self):
        return f"{self.user_id} / {self.sk}"
