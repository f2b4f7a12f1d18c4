"""Versioned roster document model: normalization, migration, week snapshots and commands."""

from roster.documents.migration import is_legacy_document, migrate_storage_if_needed, migrate_v1_to_v2
from roster.documents.normalizer import default_root_document, normalize, normalize_week
from roster.documents.snapshot import (
    FrozenWeekError,
    WeekCheckout,
    checkout,
    commit,
    create_new_week,
    ensure_derived_fields,
)

__all__ = [
    "FrozenWeekError",
    "WeekCheckout",
    "checkout",
    "commit",
    "create_new_week",
    "default_root_document",
    "ensure_derived_fields",
    "is_legacy_document",
    "migrate_storage_if_needed",
    "migrate_v1_to_v2",
    "normalize",
    "normalize_week",
]
