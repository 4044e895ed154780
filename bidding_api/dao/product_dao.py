from typing import List, Iterable
from sqlmodel import select
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from bidding_api.dao.base_dao import BaseDAO
from bidding_api.models.product import Product
import structlog

logger = structlog.get_logger()


class ProductDAO(BaseDAO[Product]):
    def __init__(self):
        super().__init__(Product)

    def _newest_first(self):
        return select(Product).order_by(Product.created_at.desc(), Product.id.desc())

    async def get_all(self, db: AsyncSession) -> List[Product]:
        try:
            result = await db.execute(self._newest_first())
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting all products", error=str(e))
            raise

    async def get_by_user(self, db: AsyncSession, user_id: str) -> List[Product]:
        try:
            result = await db.execute(self._newest_first().where(Product.user_id == user_id))
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting products by owner", user_id=user_id, error=str(e))
            raise

    async def get_by_sold_to(self, db: AsyncSession, user_id: str) -> List[Product]:
        try:
            result = await db.execute(self._newest_first().where(Product.sold_to == user_id))
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting products won by user", user_id=user_id, error=str(e))
            raise

    async def get_sold_out(self, db: AsyncSession) -> List[Product]:
        try:
            result = await db.execute(self._newest_first().where(Product.is_sold_out == True))
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting sold products", error=str(e))
            raise

    async def slug_exists(self, db: AsyncSession, slug: str) -> bool:
        try:
            result = await db.execute(select(Product.id).where(Product.slug == slug).limit(1))
            return result.first() is not None
        except Exception as e:
            logger.error("Error checking slug", slug=slug, error=str(e))
            raise

    async def get_slugs_with_base(self, db: AsyncSession, base: str) -> List[str]:
        """Slugs equal to ``base`` or shaped like ``base-<anything>``."""
        try:
            result = await db.execute(
                select(Product.slug).where(
                    (Product.slug == base) | (Product.slug.like(f"{base}-%"))
                )
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting slugs", base=base, error=str(e))
            raise

    async def delete_by_ids(self, db: AsyncSession, ids: Iterable[str]) -> List[Product]:
        """Delete every product whose id is in ``ids`` and return the removed rows."""
        ids = list(set(ids))
        try:
            products = await self.get_by_ids(db, ids)
            if products:
                await db.execute(delete(Product).where(Product.id.in_([p.id for p in products])))
                await db.commit()
                logger.info("Deleted products", count=len(products))
            return products
        except Exception as e:
            await db.rollback()
            logger.error("Error deleting products", count=len(ids), error=str(e))
            raise


product_dao = ProductDAO()
