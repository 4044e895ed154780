"""
Unit tests for ProductService with every collaborator mocked.

Test Focus:
1. Slug retry when the unique index rejects a concurrently claimed slug
2. Upload happens after validation and before persistence
3. Uploaded image is discarded when the insert fails
4. Ownership predicate gates update and delete
5. Image cleanup is scheduled, not awaited inline
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import BackgroundTasks, HTTPException
from sqlalchemy.exc import IntegrityError

from bidding_api.models.product import Product, is_owner
from bidding_api.schemas.product_schemas import ProductForm
from bidding_api.services.product_service import ProductService


def integrity_error() -> IntegrityError:
    return IntegrityError("INSERT INTO products", {}, Exception("UNIQUE constraint failed: products.slug"))


def stored_product(**overrides) -> Product:
    data = {
        "id": "p-1",
        "user_id": "seller-1",
        "title": "Old Chair",
        "slug": "old-chair",
        "description": "Wooden",
        "price": Decimal("50"),
        "category": "All",
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return Product(**data)


@pytest.mark.unit
class TestProductService:
    @pytest.fixture
    def image_service(self):
        mock = MagicMock()
        mock.upload_product_image = AsyncMock(return_value={
            "file_name": "chair.png",
            "file_path": "https://img/chair.png",
            "file_type": "image/png",
            "public_id": "Bidding/Product/chair",
        })
        mock.discard = AsyncMock()
        return mock

    @pytest.fixture
    def service(self, image_service):
        service = ProductService(image_service=image_service)
        service.product_dao = MagicMock()
        service.product_dao.get_slugs_with_base = AsyncMock(return_value=[])
        service.product_dao.slug_exists = AsyncMock(return_value=False)
        service.product_dao.create = AsyncMock(side_effect=lambda db, obj_in: stored_product(**obj_in))
        service.product_dao.get_by_id = AsyncMock(return_value=stored_product())
        service.product_dao.update = AsyncMock(side_effect=lambda db, db_obj, obj_in: db_obj)
        service.product_dao.delete = AsyncMock()
        service.bid_dao = MagicMock()
        service.bid_dao.get_latest_prices = AsyncMock(return_value={})
        service.bid_dao.count_by_products = AsyncMock(return_value={})
        service.user_dao = MagicMock()
        service.user_dao.get_map_by_ids = AsyncMock(return_value={})
        return service

    @pytest.fixture
    def form(self):
        return ProductForm(title="Old Chair", description="Wooden", price=Decimal("50"))

    @pytest.mark.asyncio
    async def test_create_uses_next_free_slug(self, service, form):
        service.product_dao.get_slugs_with_base.return_value = ["old-chair", "old-chair-1"]

        product = await service.create_product(MagicMock(), form, None, "seller-1")

        assert product.slug == "old-chair-2"
        service.product_dao.get_slugs_with_base.assert_awaited_once()
        assert service.product_dao.get_slugs_with_base.await_args.args[1] == "old-chair"

    @pytest.mark.asyncio
    async def test_create_retries_when_slug_claimed_concurrently(self, service, form):
        service.product_dao.get_slugs_with_base.side_effect = [[], ["old-chair"]]
        service.product_dao.create.side_effect = [
            integrity_error(),
            stored_product(slug="old-chair-1"),
        ]
        service.product_dao.slug_exists.return_value = True

        product = await service.create_product(MagicMock(), form, None, "seller-1")

        assert product.slug == "old-chair-1"
        slugs_tried = [call.kwargs["obj_in"]["slug"] for call in service.product_dao.create.await_args_list]
        assert slugs_tried == ["old-chair", "old-chair-1"]

    @pytest.mark.asyncio
    async def test_create_gives_up_after_max_attempts(self, service, form):
        service.slug_max_attempts = 3
        service.product_dao.create.side_effect = integrity_error()
        service.product_dao.slug_exists.return_value = True

        with pytest.raises(HTTPException) as exc_info:
            await service.create_product(MagicMock(), form, None, "seller-1")

        assert exc_info.value.status_code == 409
        assert service.product_dao.create.await_count == 3

    @pytest.mark.asyncio
    async def test_unrelated_integrity_error_is_not_retried(self, service, form):
        service.product_dao.create.side_effect = integrity_error()
        service.product_dao.slug_exists.return_value = False

        with pytest.raises(HTTPException) as exc_info:
            await service.create_product(MagicMock(), form, None, "seller-1")

        assert exc_info.value.status_code == 500
        assert service.product_dao.create.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_fields_have_no_side_effects(self, service, image_service):
        form = ProductForm(title="Old Chair", price=Decimal("50"))

        with pytest.raises(HTTPException) as exc_info:
            await service.create_product(MagicMock(), form, MagicMock(), "seller-1")

        assert exc_info.value.status_code == 400
        image_service.upload_product_image.assert_not_awaited()
        service.product_dao.get_slugs_with_base.assert_not_awaited()
        service.product_dao.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upload_failure_persists_nothing(self, service, image_service, form):
        image_service.upload_product_image.side_effect = HTTPException(status_code=500, detail="Image could not be uploaded")

        with pytest.raises(HTTPException) as exc_info:
            await service.create_product(MagicMock(), form, MagicMock(), "seller-1")

        assert exc_info.value.status_code == 500
        service.product_dao.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_failure_discards_uploaded_image(self, service, image_service, form):
        service.product_dao.create.side_effect = RuntimeError("db down")

        with pytest.raises(HTTPException):
            await service.create_product(MagicMock(), form, MagicMock(), "seller-1")

        image_service.discard.assert_awaited_once_with("Bidding/Product/chair")

    @pytest.mark.asyncio
    async def test_delete_by_non_owner_is_unauthorized(self, service):
        with pytest.raises(HTTPException) as exc_info:
            await service.delete_product(MagicMock(), "p-1", "someone-else", BackgroundTasks())

        assert exc_info.value.status_code == 401
        service.product_dao.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_schedules_image_cleanup(self, service, image_service):
        service.product_dao.get_by_id.return_value = stored_product(image={"file_path": "x", "public_id": "img-9"})
        background_tasks = BackgroundTasks()

        await service.delete_product(MagicMock(), "p-1", "seller-1", background_tasks)

        service.product_dao.delete.assert_awaited_once()
        image_service.discard.assert_not_awaited()
        assert len(background_tasks.tasks) == 1
        assert background_tasks.tasks[0].args == ("img-9",)

    @pytest.mark.asyncio
    async def test_update_missing_product_is_404(self, service):
        service.product_dao.get_by_id.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await service.update_product(MagicMock(), "p-404", ProductForm(), None, "seller-1", BackgroundTasks())

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_update_only_sends_provided_fields(self, service):
        await service.update_product(
            MagicMock(), "p-1", ProductForm(price=Decimal("75")), None, "seller-1", BackgroundTasks()
        )

        obj_in = service.product_dao.update.await_args.kwargs["obj_in"]
        assert obj_in["price"] == Decimal("75")
        assert "title" not in obj_in
        assert "image" not in obj_in

    @pytest.mark.asyncio
    async def test_enrichment_falls_back_to_asking_price(self, service):
        products = [stored_product(id="a", slug="a"), stored_product(id="b", slug="b", price=Decimal("10"))]
        service.product_dao.get_all = AsyncMock(return_value=products)
        service.bid_dao.get_latest_prices.return_value = {"b": Decimal("30")}
        service.bid_dao.count_by_products.return_value = {"b": 4}

        result = await service.get_all_products(MagicMock())

        assert [p.id for p in result] == ["a", "b"]
        assert result[0].bidding_price == Decimal("50")
        assert result[0].total_bids == 0
        assert result[1].bidding_price == Decimal("30")
        assert result[1].total_bids == 4


@pytest.mark.unit
class TestIsOwner:
    def test_matching_ids(self):
        assert is_owner(stored_product(user_id="42"), "42")

    def test_ids_compared_as_strings(self):
        assert is_owner(stored_product(user_id="42"), 42)

    def test_other_user(self):
        assert not is_owner(stored_product(user_id="42"), "43")

    def test_anonymous(self):
        assert not is_owner(stored_product(user_id="42"), None)
