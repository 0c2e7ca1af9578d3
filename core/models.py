"""
Model registry for the core app.

Django discovers models through ``<app>.models``; the storage model itself
lives in the infrastructure layer.
"""
from core.infrastructure.models import ItemType, TableItem  # noqa: F401
