"""Shared builders for inventory sync tests."""

from typing import Any, Optional

from inventory_sync_service.app.events.schemas import (
    ChangeEventType,
    DraftChangeEvent,
    FieldChange,
    ProductSnapshot,
)


class FakeClock:
    """Manually advanced replacement for ``time.time``"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_draft(
    event_type: ChangeEventType = ChangeEventType.UPDATED,
    product_id: str = "p1",
    vendor_id: str = "v1",
    category: Optional[str] = "electronics",
    base_price: Optional[float] = 149.99,
    changes: tuple = (),
    snapshot: bool = True,
    **snapshot_fields: Any,
) -> DraftChangeEvent:
    """Build a draft change event with a matching snapshot"""
    product = None
    if snapshot:
        product = ProductSnapshot(
            product_id=product_id,
            vendor_id=vendor_id,
            category=category,
            base_price=base_price,
            **snapshot_fields,
        )
    return DraftChangeEvent(
        event_type=event_type,
        product_id=product_id,
        vendor_id=vendor_id,
        changes=changes,
        snapshot=product,
    )


def price_change(old: float, new: float) -> FieldChange:
    return FieldChange(field="base_price", old_value=old, new_value=new)
