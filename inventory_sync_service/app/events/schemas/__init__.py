"""
Inventory Change Event Schemas
==============================

Re-exports the change event record and its parts.
"""

from .event_schemas import (
    AVAILABILITY_FIELD,
    CHANGE_EVENT_SCHEMA_VERSION,
    ENTITY_FIELD,
    MEMBERSHIP_EVENT_TYPES,
    PRICE_FIELD,
    ChangeEvent,
    ChangeEventType,
    DraftChangeEvent,
    FieldChange,
    ProductSnapshot,
)

__all__ = [
    "AVAILABILITY_FIELD",
    "CHANGE_EVENT_SCHEMA_VERSION",
    "ENTITY_FIELD",
    "MEMBERSHIP_EVENT_TYPES",
    "PRICE_FIELD",
    "ChangeEvent",
    "ChangeEventType",
    "DraftChangeEvent",
    "FieldChange",
    "ProductSnapshot",
]
