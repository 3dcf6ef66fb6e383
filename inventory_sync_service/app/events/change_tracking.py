"""
Field-level change tracking between two product snapshots, and the event type
that follows from a set of changes.
"""

from typing import List, Sequence

from .schemas import (
    AVAILABILITY_FIELD,
    PRICE_FIELD,
    ChangeEventType,
    FieldChange,
    ProductSnapshot,
)

# Fields whose changes matter to search results and notifications
TRACKED_FIELDS = (
    "name",
    "description",
    "category",
    PRICE_FIELD,
    "currency",
    AVAILABILITY_FIELD,
    "attributes",
    "images",
)


def track_changes(before: ProductSnapshot, after: ProductSnapshot) -> List[FieldChange]:
    """Diff the tracked fields of two snapshots, in ``TRACKED_FIELDS`` order"""
    changes: List[FieldChange] = []
    for field in TRACKED_FIELDS:
        old_value = getattr(before, field)
        new_value = getattr(after, field)
        if old_value != new_value:
            changes.append(
                FieldChange(field=field, old_value=old_value, new_value=new_value)
            )
    return changes


def determine_event_type(changes: Sequence[FieldChange]) -> ChangeEventType:
    """
    Classify an update.

    Availability wins over price when both changed in one mutation; the cache
    invalidator still looks at price changes on its own, but audience selection
    follows this classification.
    """
    fields = {change.field for change in changes}
    if AVAILABILITY_FIELD in fields:
        return ChangeEventType.AVAILABILITY_CHANGED
    if PRICE_FIELD in fields:
        return ChangeEventType.PRICE_CHANGED
    return ChangeEventType.UPDATED
