"""Product repository for database operations"""

import uuid
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.product import Product
from ..schemas.product import ProductCreate, ProductUpdate


class ProductRepository:
    """Repository for product database operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_product(self, product_data: ProductCreate) -> Product:
        """Create a new product"""
        product = Product(
            product_id=product_data.product_id or f"prod_{uuid.uuid4().hex[:16]}",
            vendor_id=product_data.vendor_id,
            name=product_data.name,
            description=product_data.description,
            category=product_data.category,
            base_price=product_data.base_price,
            currency=product_data.currency,
            availability=product_data.availability,
            attributes=product_data.attributes,
            images=product_data.images,
        )

        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def get_product_by_id(self, product_id: str) -> Optional[Product]:
        """Get product by ID"""
        query = select(Product).where(Product.product_id == product_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_vendor_products(self, vendor_id: str) -> List[Product]:
        query = (
            select(Product)
            .where(Product.vendor_id == vendor_id)
            .order_by(Product.created_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_product(
        self, product_id: str, product_data: ProductUpdate
    ) -> Optional[Product]:
        """Update product"""
        product = await self.get_product_by_id(product_id)
        if not product:
            return None

        update_data = product_data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(product, field, value)

        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def update_availability(
        self, product_id: str, availability: str
    ) -> Optional[Product]:
        product = await self.get_product_by_id(product_id)
        if not product:
            return None

        product.availability = availability
        await self.db.commit()
        await self.db.refresh(product)
        return product

    async def delete_product(self, product_id: str) -> bool:
        """Delete product"""
        product = await self.get_product_by_id(product_id)
        if not product:
            return False

        await self.db.delete(product)
        await self.db.commit()
        return True

    async def count_by_availability(self, vendor_id: str) -> Dict[str, int]:
        query = (
            select(Product.availability, func.count())
            .where(Product.vendor_id == vendor_id)
            .group_by(Product.availability)
        )
        result = await self.db.execute(query)
        return {availability: count for availability, count in result.all()}

    async def count_by_category(self, vendor_id: str) -> Dict[str, int]:
        query = (
            select(Product.category, func.count())
            .where(Product.vendor_id == vendor_id)
            .group_by(Product.category)
        )
        result = await self.db.execute(query)
        return {category: count for category, count in result.all()}
