from typing import Dict, List, Optional, Type
from datetime import datetime, timezone
from fastapi import BackgroundTasks, HTTPException, UploadFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from bidding_api.core.config import settings
from bidding_api.dao.bid_dao import bid_dao
from bidding_api.dao.product_dao import product_dao
from bidding_api.dao.user_dao import user_dao
from bidding_api.models.product import Product, is_owner
from bidding_api.models.user import User, UserRead
from bidding_api.schemas.product_schemas import (
    ProductForm,
    ProductResponse,
    ProductWithBidsResponse,
    ProductWithPriceResponse,
)
from bidding_api.services.image_service import image_service
from bidding_api.utils.slug import slugify, next_free_slug
import structlog

logger = structlog.get_logger()


class ProductService:
    def __init__(self, image_service=image_service):
        self.product_dao = product_dao
        self.bid_dao = bid_dao
        self.user_dao = user_dao
        self.image_service = image_service
        self.slug_max_attempts = settings.slug_max_attempts

    async def create_product(
        self,
        db: AsyncSession,
        form: ProductForm,
        image: Optional[UploadFile],
        user_id: str,
    ) -> ProductResponse:
        try:
            missing = form.missing_required()
            if missing:
                logger.warning("Product creation rejected", user_id=user_id, missing=missing)
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Please fill in all fields"
                )

            image_data = None
            if image is not None:
                image_data = await self.image_service.upload_product_image(image)

            try:
                product = await self._insert_with_unique_slug(db, form, image_data, user_id)
            except Exception:
                # Nothing references the fresh upload
                if image_data:
                    await self.image_service.discard(image_data["public_id"])
                raise

            logger.info("Product created successfully", product_id=product.id, slug=product.slug, user_id=user_id)
            owners = await self._owners(db, [product])
            return self._to_response(product, owners)

        except HTTPException:
            raise
        except Exception as e:
            logger.error("Error creating product", user_id=user_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Product creation failed"
            )

    async def _insert_with_unique_slug(
        self,
        db: AsyncSession,
        form: ProductForm,
        image_data: Optional[Dict[str, str]],
        user_id: str,
    ) -> Product:
        """
        Insert the product under the first free slug for its title.

        The unique index on ``products.slug`` is the source of truth: when a
        concurrent insert claims the candidate first, the lookup is repeated
        and the insert retried, up to ``slug_max_attempts`` times.
        """
        base = slugify(form.title)
        product_data = form.model_dump(exclude_none=True)
        product_data.setdefault("category", "All")
        product_data["user_id"] = user_id
        product_data["image"] = image_data

        for attempt in range(1, self.slug_max_attempts + 1):
            taken = await self.product_dao.get_slugs_with_base(db, base)
            slug = next_free_slug(base, taken)
            try:
                return await self.product_dao.create(db, obj_in={**product_data, "slug": slug})
            except IntegrityError:
                if not await self.product_dao.slug_exists(db, slug):
                    raise
                logger.warning("Slug claimed concurrently, retrying", slug=slug, attempt=attempt)

        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Could not assign a unique slug, please retry"
        )

    async def get_all_products(self, db: AsyncSession) -> List[ProductWithBidsResponse]:
        try:
            products = await self.product_dao.get_all(db)
            logger.info("Retrieved products", count=len(products))
            return await self._with_prices(db, products, include_bid_counts=True)
        except Exception as e:
            logger.error("Error getting products", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not retrieve products"
            )

    async def get_user_products(self, db: AsyncSession, user_id: str) -> List[ProductWithPriceResponse]:
        try:
            products = await self.product_dao.get_by_user(db, user_id)
            logger.info("Retrieved user products", user_id=user_id, count=len(products))
            return await self._with_prices(db, products)
        except Exception as e:
            logger.error("Error getting user products", user_id=user_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not retrieve user products"
            )

    async def get_won_products(self, db: AsyncSession, user_id: str) -> List[ProductWithPriceResponse]:
        try:
            products = await self.product_dao.get_by_sold_to(db, user_id)
            logger.info("Retrieved won products", user_id=user_id, count=len(products))
            return await self._with_prices(db, products)
        except Exception as e:
            logger.error("Error getting won products", user_id=user_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not retrieve won products"
            )

    async def get_sold_products(self, db: AsyncSession) -> List[ProductResponse]:
        try:
            products = await self.product_dao.get_sold_out(db)
            owners = await self._owners(db, products)
            return [self._to_response(product, owners) for product in products]
        except Exception as e:
            logger.error("Error getting sold products", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not retrieve sold products"
            )

    async def get_admin_products(self, db: AsyncSession) -> List[ProductWithPriceResponse]:
        try:
            products = await self.product_dao.get_all(db)
            return await self._with_prices(db, products)
        except Exception as e:
            logger.error("Error getting products for admin", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not retrieve products"
            )

    async def get_product(self, db: AsyncSession, product_id: str) -> ProductResponse:
        product = await self._get_product_or_404(db, product_id)
        owners = await self._owners(db, [product])
        return self._to_response(product, owners)

    async def update_product(
        self,
        db: AsyncSession,
        product_id: str,
        form: ProductForm,
        image: Optional[UploadFile],
        user_id: str,
        background_tasks: BackgroundTasks,
    ) -> ProductResponse:
        try:
            product = await self._get_owned_product(db, product_id, user_id)

            # Omitted fields keep their stored value, including the image
            update_data = form.model_dump(exclude_none=True)
            stale_public_id = None
            if image is not None:
                update_data["image"] = await self.image_service.upload_product_image(image)
                stale_public_id = (product.image or {}).get("public_id")
            update_data["updated_at"] = datetime.now(timezone.utc)

            try:
                product = await self.product_dao.update(db, db_obj=product, obj_in=update_data)
            except Exception:
                if "image" in update_data:
                    await self.image_service.discard(update_data["image"]["public_id"])
                raise

            if stale_public_id:
                background_tasks.add_task(self.image_service.discard, stale_public_id)

            logger.info("Product updated successfully", product_id=product_id, user_id=user_id)
            owners = await self._owners(db, [product])
            return self._to_response(product, owners)

        except HTTPException:
            raise
        except Exception as e:
            logger.error("Error updating product", product_id=product_id, user_id=user_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Product update failed"
            )

    async def delete_product(
        self,
        db: AsyncSession,
        product_id: str,
        user_id: str,
        background_tasks: BackgroundTasks,
    ) -> None:
        try:
            product = await self._get_owned_product(db, product_id, user_id)
            public_id = (product.image or {}).get("public_id")

            await self.product_dao.delete(db, id=product.id)
            if public_id:
                background_tasks.add_task(self.image_service.discard, public_id)

            logger.info("Product deleted successfully", product_id=product_id, user_id=user_id)

        except HTTPException:
            raise
        except Exception as e:
            logger.error("Error deleting product", product_id=product_id, user_id=user_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Product deletion failed"
            )

    async def verify_product(self, db: AsyncSession, product_id: str, commission) -> ProductResponse:
        try:
            product = await self._get_product_or_404(db, product_id)
            product = await self.product_dao.update(
                db,
                db_obj=product,
                obj_in={"is_verified": True, "commission": commission, "updated_at": datetime.now(timezone.utc)},
            )
            logger.info("Product verified", product_id=product_id, commission=str(commission))
            owners = await self._owners(db, [product])
            return self._to_response(product, owners)

        except HTTPException:
            raise
        except Exception as e:
            logger.error("Error verifying product", product_id=product_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Product verification failed"
            )

    async def delete_products(
        self,
        db: AsyncSession,
        product_ids: List[str],
        background_tasks: BackgroundTasks,
    ) -> int:
        try:
            deleted = await self.product_dao.delete_by_ids(db, product_ids)
            for product in deleted:
                public_id = (product.image or {}).get("public_id")
                if public_id:
                    background_tasks.add_task(self.image_service.discard, public_id)

            logger.info("Admin bulk delete", requested=len(product_ids), deleted=len(deleted))
            return len(deleted)

        except Exception as e:
            logger.error("Error deleting products", requested=len(product_ids), error=str(e))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Products could not be deleted"
            )

    async def _get_product_or_404(self, db: AsyncSession, product_id: str) -> Product:
        product = await self.product_dao.get_by_id(db, product_id)
        if not product:
            logger.warning("Product not found", product_id=product_id)
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found"
            )
        return product

    async def _get_owned_product(self, db: AsyncSession, product_id: str, user_id: str) -> Product:
        product = await self._get_product_or_404(db, product_id)
        if not is_owner(product, user_id):
            logger.warning("Unauthorized product access", product_id=product_id, user_id=user_id)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not authorized"
            )
        return product

    async def _owners(self, db: AsyncSession, products: List[Product]) -> Dict[str, User]:
        return await self.user_dao.get_map_by_ids(db, [product.user_id for product in products])

    async def _with_prices(
        self,
        db: AsyncSession,
        products: List[Product],
        include_bid_counts: bool = False,
    ) -> List[ProductWithPriceResponse]:
        """Attach the current bidding price (latest bid, else asking price) keeping the query order."""
        product_ids = [product.id for product in products]
        latest_prices = await self.bid_dao.get_latest_prices(db, product_ids)
        bid_counts = await self.bid_dao.count_by_products(db, product_ids) if include_bid_counts else {}
        owners = await self._owners(db, products)

        response_cls = ProductWithBidsResponse if include_bid_counts else ProductWithPriceResponse
        enriched = []
        for product in products:
            extra = {"bidding_price": latest_prices.get(product.id, product.price)}
            if include_bid_counts:
                extra["total_bids"] = bid_counts.get(product.id, 0)
            enriched.append(self._to_response(product, owners, response_cls, **extra))
        return enriched

    @staticmethod
    def _to_response(
        product: Product,
        owners: Dict[str, User],
        response_cls: Type[ProductResponse] = ProductResponse,
        **extra,
    ) -> ProductResponse:
        data = product.model_dump()
        owner = owners.get(product.user_id)
        data["user"] = UserRead.model_validate(owner) if owner else None
        data.update(extra)
        return response_cls(**data)


product_service = ProductService()
