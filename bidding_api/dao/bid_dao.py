from typing import Dict, Iterable
from decimal import Decimal
from sqlmodel import select
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from bidding_api.dao.base_dao import BaseDAO
from bidding_api.models.bid import Bid
import structlog

logger = structlog.get_logger()


class BidDAO(BaseDAO[Bid]):
    def __init__(self):
        super().__init__(Bid)

    async def get_latest_prices(self, db: AsyncSession, product_ids: Iterable[str]) -> Dict[str, Decimal]:
        """Price of the most recent bid for each product that has one, in a single query."""
        product_ids = list(set(product_ids))
        if not product_ids:
            return {}
        try:
            ranked = (
                select(
                    Bid.product_id,
                    Bid.price,
                    func.row_number()
                    .over(
                        partition_by=Bid.product_id,
                        order_by=(Bid.created_at.desc(), Bid.id.desc()),
                    )
                    .label("position"),
                )
                .where(Bid.product_id.in_(product_ids))
                .subquery()
            )
            result = await db.execute(
                select(ranked.c.product_id, ranked.c.price).where(ranked.c.position == 1)
            )
            return {product_id: price for product_id, price in result.all()}
        except Exception as e:
            logger.error("Error getting latest bid prices", count=len(product_ids), error=str(e))
            raise

    async def count_by_products(self, db: AsyncSession, product_ids: Iterable[str]) -> Dict[str, int]:
        product_ids = list(set(product_ids))
        if not product_ids:
            return {}
        try:
            result = await db.execute(
                select(Bid.product_id, func.count(Bid.id))
                .where(Bid.product_id.in_(product_ids))
                .group_by(Bid.product_id)
            )
            return {product_id: count for product_id, count in result.all()}
        except Exception as e:
            logger.error("Error counting bids", count=len(product_ids), error=str(e))
            raise


bid_dao = BidDAO()
