"""
Inventory Change Event Schemas
==============================

The versioned change event record published on the inventory event bus, and
its wire form. In-process dispatch always passes ``ChangeEvent`` objects;
JSON is only produced at the distribution channel boundary.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CHANGE_EVENT_SCHEMA_VERSION = 1

# Synthetic field carrying a whole product snapshot on create/delete
ENTITY_FIELD = "entity"
AVAILABILITY_FIELD = "availability"
PRICE_FIELD = "base_price"


class ChangeEventType(str, Enum):
    """Kinds of inventory change"""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    AVAILABILITY_CHANGED = "availability_changed"
    PRICE_CHANGED = "price_changed"


# Event types that can move an item into or out of a result set
MEMBERSHIP_EVENT_TYPES = frozenset(
    {
        ChangeEventType.CREATED,
        ChangeEventType.DELETED,
        ChangeEventType.AVAILABILITY_CHANGED,
    }
)


class WireModel(BaseModel):
    """Base for models that cross the wire with camelCase keys"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ProductSnapshot(WireModel):
    """Projection of a product after (or, for deletes, before) a mutation"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    product_id: str
    vendor_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    base_price: Optional[float] = None
    currency: Optional[str] = None
    availability: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None
    images: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FieldChange(WireModel):
    """One changed field"""

    field: str
    old_value: Any = None
    new_value: Any = None


class DraftChangeEvent(WireModel):
    """A change event before the bus has assigned its id and timestamp"""

    event_type: ChangeEventType
    product_id: str = Field(..., min_length=1)
    vendor_id: str = Field(..., min_length=1)
    changes: Tuple[FieldChange, ...] = ()
    snapshot: Optional[ProductSnapshot] = Field(default=None, alias="product")


class ChangeEvent(DraftChangeEvent):
    """Immutable record of one committed inventory mutation"""

    event_id: str
    timestamp: datetime
    schema_version: int = CHANGE_EVENT_SCHEMA_VERSION
    origin: Optional[str] = None

    @property
    def entity_id(self) -> str:
        return self.product_id

    @property
    def owner_id(self) -> str:
        return self.vendor_id

    def changed_fields(self) -> Tuple[str, ...]:
        return tuple(change.field for change in self.changes)

    def prior_snapshot(self) -> Optional[ProductSnapshot]:
        """The pre-mutation snapshot carried by a deletion, if any"""
        for change in self.changes:
            if change.field != ENTITY_FIELD:
                continue
            if isinstance(change.old_value, ProductSnapshot):
                return change.old_value
            if isinstance(change.old_value, dict):
                return ProductSnapshot.model_validate(change.old_value)
        return None

    def to_wire(self) -> Dict[str, Any]:
        """
        Serialize to the JSON-ready wire schema.

        Every change keeps both ``oldValue`` and ``newValue``; only the
        optional ``product`` and ``origin`` are left out when absent.
        """
        payload = self.model_dump(mode="json", by_alias=True, exclude={"snapshot"})
        if self.snapshot is not None:
            payload["product"] = self.snapshot.to_dict()
        if payload.get("origin") is None:
            payload.pop("origin", None)
        return payload

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]) -> "ChangeEvent":
        return cls.model_validate(payload)

    def __str__(self) -> str:
        return (
            f"ChangeEvent({self.event_type.value}, id={self.event_id}, "
            f"product={self.product_id}, vendor={self.vendor_id})"
        )
