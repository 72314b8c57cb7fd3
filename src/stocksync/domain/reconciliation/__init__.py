"""Entity resolution and quantity reconciliation for import batches.

Flow per batch attempt:
1) collect business keys per category
2) bulk-resolve them and create the missing ones
3) run the external processing step
4) reconcile each purchase line to its desired quantity
5) commit once
"""

from __future__ import annotations

from .engine import BatchChanges, ReconciliationEngine
from .quantity import (
    ReconciliationDelta,
    build_inventory_record,
    reconcile,
    refresh_inventory_record,
)
from .resolve import EntityResolver, KeysByCategory, ResolvedEntitySet, collect_keys

__all__ = [
    "BatchChanges",
    "EntityResolver",
    "KeysByCategory",
    "ReconciliationDelta",
    "ReconciliationEngine",
    "ResolvedEntitySet",
    "build_inventory_record",
    "collect_keys",
    "reconcile",
    "refresh_inventory_record",
]
