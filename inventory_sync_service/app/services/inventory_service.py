"""Inventory write path: persists product mutations and publishes change events"""

from typing import List, Optional

from ..core.errors import (
    DistributionChannelError,
    ProductNotFoundError,
    ProductOwnershipError,
)
from ..events.change_tracking import determine_event_type, track_changes
from ..events.event_bus import InventoryEventBus
from ..events.schemas import (
    AVAILABILITY_FIELD,
    ENTITY_FIELD,
    ChangeEvent,
    ChangeEventType,
    DraftChangeEvent,
    FieldChange,
    ProductSnapshot,
)
from ..models.product import Product
from ..repository.product_repository import ProductRepository
from ..schemas.product import (
    BulkAvailabilityError,
    BulkAvailabilityItem,
    BulkAvailabilityResult,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
    VendorInventoryStats,
)
from ..utils.logging import setup_inventory_logging as setup_logging

logger = setup_logging("inventory_sync_service.inventory_service")


def to_snapshot(product: Product) -> ProductSnapshot:
    """Project a stored product onto the event snapshot"""
    return ProductSnapshot(
        product_id=product.product_id,
        vendor_id=product.vendor_id,
        name=product.name,
        description=product.description,
        category=product.category,
        base_price=product.base_price,
        currency=product.currency,
        availability=product.availability,
        attributes=product.attributes,
        images=tuple(product.images) if product.images is not None else None,
    )


class InventoryService:
    """
    Service class for product mutations.

    Every committed mutation that changes a tracked field is published on the
    event bus. A ``DistributionChannelError`` from the bus is re-raised to the
    caller; the mutation itself has already been committed at that point.
    """

    def __init__(self, repository: ProductRepository, event_bus: InventoryEventBus):
        self.repository = repository
        self.event_bus = event_bus

    async def _load(self, product_id: str, vendor_id: Optional[str] = None) -> Product:
        """Fetch a product, optionally asserting that ``vendor_id`` owns it"""
        product = await self.repository.get_product_by_id(product_id)
        if not product:
            raise ProductNotFoundError(product_id)
        if vendor_id is not None and product.vendor_id != vendor_id:
            raise ProductOwnershipError(product_id, vendor_id)
        return product

    async def _publish(self, draft: DraftChangeEvent) -> ChangeEvent:
        try:
            return await self.event_bus.publish(draft)
        except DistributionChannelError as e:
            logger.error(
                "Change event could not be distributed",
                extra={
                    "product_id": draft.product_id,
                    "vendor_id": draft.vendor_id,
                    "event_type": draft.event_type.value,
                    "error": e.message,
                },
            )
            raise

    async def create_product(self, product_data: ProductCreate) -> ProductResponse:
        """Create a product and publish ``created``"""
        product = await self.repository.create_product(product_data)
        snapshot = to_snapshot(product)

        event = await self._publish(
            DraftChangeEvent(
                event_type=ChangeEventType.CREATED,
                product_id=product.product_id,
                vendor_id=product.vendor_id,
                changes=(
                    FieldChange(field=ENTITY_FIELD, new_value=snapshot.to_dict()),
                ),
                snapshot=snapshot,
            )
        )

        logger.info(
            "Product created",
            extra={
                "product_id": product.product_id,
                "vendor_id": product.vendor_id,
                "event_id": event.event_id,
            },
        )
        return ProductResponse.model_validate(product)

    async def update_product(
        self,
        product_id: str,
        product_data: ProductUpdate,
        vendor_id: Optional[str] = None,
    ) -> ProductResponse:
        """Update a product; publishes only when a tracked field changed"""
        before = to_snapshot(await self._load(product_id, vendor_id))

        product = await self.repository.update_product(product_id, product_data)
        if not product:
            raise ProductNotFoundError(product_id)
        after = to_snapshot(product)

        changes = track_changes(before, after)
        if not changes:
            logger.info(
                "Product update changed no tracked fields",
                extra={"product_id": product_id},
            )
            return ProductResponse.model_validate(product)

        event = await self._publish(
            DraftChangeEvent(
                event_type=determine_event_type(changes),
                product_id=product.product_id,
                vendor_id=product.vendor_id,
                changes=tuple(changes),
                snapshot=after,
            )
        )

        logger.info(
            "Product updated",
            extra={
                "product_id": product_id,
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "changed_fields": list(event.changed_fields()),
            },
        )
        return ProductResponse.model_validate(product)

    async def change_availability(
        self, product_id: str, availability: str, vendor_id: Optional[str] = None
    ) -> Optional[ChangeEvent]:
        """Set availability and return the published event, or None if unchanged"""
        existing = await self._load(product_id, vendor_id)

        previous = existing.availability
        if previous == availability:
            return None

        product = await self.repository.update_availability(product_id, availability)
        if not product:
            raise ProductNotFoundError(product_id)

        return await self._publish(
            DraftChangeEvent(
                event_type=ChangeEventType.AVAILABILITY_CHANGED,
                product_id=product.product_id,
                vendor_id=product.vendor_id,
                changes=(
                    FieldChange(
                        field=AVAILABILITY_FIELD,
                        old_value=previous,
                        new_value=availability,
                    ),
                ),
                snapshot=to_snapshot(product),
            )
        )

    async def update_availability(
        self, product_id: str, availability: str, vendor_id: Optional[str] = None
    ) -> ProductResponse:
        event = await self.change_availability(product_id, availability, vendor_id)
        if event:
            logger.info(
                "Product availability changed",
                extra={
                    "product_id": product_id,
                    "availability": availability,
                    "event_id": event.event_id,
                },
            )
        return await self.get_product(product_id)

    async def delete_product(
        self, product_id: str, vendor_id: Optional[str] = None
    ) -> ChangeEvent:
        """Delete a product and publish ``deleted`` carrying the prior snapshot"""
        before = to_snapshot(await self._load(product_id, vendor_id))

        if not await self.repository.delete_product(product_id):
            raise ProductNotFoundError(product_id)

        event = await self._publish(
            DraftChangeEvent(
                event_type=ChangeEventType.DELETED,
                product_id=before.product_id,
                vendor_id=before.vendor_id,
                changes=(FieldChange(field=ENTITY_FIELD, old_value=before.to_dict()),),
            )
        )

        logger.info(
            "Product deleted",
            extra={"product_id": product_id, "event_id": event.event_id},
        )
        return event

    async def bulk_update_availability(
        self, updates: List[BulkAvailabilityItem], vendor_id: Optional[str] = None
    ) -> BulkAvailabilityResult:
        """
        Apply independent availability updates.

        A failing item is recorded in ``errors`` and the remaining items are
        still processed.
        """
        result = BulkAvailabilityResult(success=0, failed=0)

        for item in updates:
            try:
                event = await self.change_availability(
                    item.product_id, item.availability, vendor_id
                )
                result.success += 1
                if event:
                    result.event_ids.append(event.event_id)
            except Exception as e:
                result.failed += 1
                result.errors.append(
                    BulkAvailabilityError(product_id=item.product_id, error=str(e))
                )
                logger.warning(
                    "Bulk availability item failed",
                    extra={
                        "product_id": item.product_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

        logger.info(
            "Bulk availability update completed",
            extra={
                "requested": len(updates),
                "success": result.success,
                "failed": result.failed,
            },
        )
        return result

    async def get_product(self, product_id: str) -> ProductResponse:
        return ProductResponse.model_validate(await self._load(product_id))

    async def list_vendor_products(self, vendor_id: str) -> List[ProductResponse]:
        products = await self.repository.list_vendor_products(vendor_id)
        return [ProductResponse.model_validate(product) for product in products]

    async def check_ownership(self, product_id: str, vendor_id: str) -> bool:
        product = await self.repository.get_product_by_id(product_id)
        return product is not None and product.vendor_id == vendor_id

    async def get_vendor_inventory_stats(self, vendor_id: str) -> VendorInventoryStats:
        by_availability = await self.repository.count_by_availability(vendor_id)
        by_category = await self.repository.count_by_category(vendor_id)
        return VendorInventoryStats(
            vendor_id=vendor_id,
            total_products=sum(by_availability.values()),
            available=by_availability.get("available", 0),
            limited=by_availability.get("limited", 0),
            out_of_stock=by_availability.get("out_of_stock", 0),
            categories=by_category,
        )
