from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from bidding_api.core.database import get_async_session
from bidding_api.core.security import validate_admin_request, validate_request
from bidding_api.schemas.product_schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    MessageResponse,
    ProductCreatedResponse,
    ProductForm,
    ProductResponse,
    ProductVerifyRequest,
    ProductVerifyResponse,
    ProductWithBidsResponse,
    ProductWithPriceResponse,
)
from bidding_api.services.product_service import product_service
from decimal import Decimal
from typing import List, Optional


router = APIRouter(prefix="/products", tags=["Products"])


def product_form(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None, max_digits=12, decimal_places=2),
    category: Optional[str] = Form(None),
    height: Optional[float] = Form(None),
    lengthpic: Optional[float] = Form(None),
    width: Optional[float] = Form(None),
    mediumused: Optional[str] = Form(None),
    weigth: Optional[float] = Form(None),
) -> ProductForm:
    """Collect the multipart fields under their public (legacy) names."""
    return ProductForm(
        title=title,
        description=description,
        price=price,
        category=category,
        height=height,
        length=lengthpic,
        width=width,
        medium_used=mediumused,
        weight=weigth,
    )


def _uploaded(image: Optional[UploadFile]) -> Optional[UploadFile]:
    # Browsers send an empty part when no file was picked
    if image is None or not image.filename:
        return None
    return image


@router.post("", response_model=ProductCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    form: ProductForm = Depends(product_form),
    image: Optional[UploadFile] = File(None),
    current_user=Depends(validate_request),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a new product owned by the caller"""
    product = await product_service.create_product(
        db, form, _uploaded(image), current_user.get("user_id")
    )
    return ProductCreatedResponse(data=product)


@router.get("", response_model=List[ProductWithBidsResponse])
async def get_all_products(db: AsyncSession = Depends(get_async_session)):
    """All products, newest first, with current bidding price and bid count"""
    return await product_service.get_all_products(db)


@router.get("/user", response_model=List[ProductWithPriceResponse])
async def get_my_products(
    current_user=Depends(validate_request),
    db: AsyncSession = Depends(get_async_session),
):
    return await product_service.get_user_products(db, current_user.get("user_id"))


@router.get("/won-products", response_model=List[ProductWithPriceResponse])
async def get_won_products(
    current_user=Depends(validate_request),
    db: AsyncSession = Depends(get_async_session),
):
    return await product_service.get_won_products(db, current_user.get("user_id"))


@router.get("/sold", response_model=List[ProductResponse])
async def get_sold_products(db: AsyncSession = Depends(get_async_session)):
    return await product_service.get_sold_products(db)


@router.get("/admin/products", response_model=List[ProductWithPriceResponse])
async def get_all_products_for_admin(
    current_user=Depends(validate_admin_request),
    db: AsyncSession = Depends(get_async_session),
):
    return await product_service.get_admin_products(db)


@router.delete("/admin/products", response_model=BulkDeleteResponse)
async def delete_products_by_admin(
    delete_request: BulkDeleteRequest,
    background_tasks: BackgroundTasks,
    current_user=Depends(validate_admin_request),
    db: AsyncSession = Depends(get_async_session),
):
    """Delete every listed product regardless of owner"""
    deleted_count = await product_service.delete_products(db, delete_request.product_ids, background_tasks)
    return BulkDeleteResponse(
        message=f"{deleted_count} products deleted successfully",
        deleted_count=deleted_count,
    )


@router.patch("/admin/product-verified/{product_id}", response_model=ProductVerifyResponse)
async def verify_product_by_admin(
    product_id: str,
    verify_request: ProductVerifyRequest,
    current_user=Depends(validate_admin_request),
    db: AsyncSession = Depends(get_async_session),
):
    """Mark a product verified and set the marketplace commission"""
    product = await product_service.verify_product(db, product_id, verify_request.commission)
    return ProductVerifyResponse(message="Product verified successfully.", data=product)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, db: AsyncSession = Depends(get_async_session)):
    return await product_service.get_product(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    background_tasks: BackgroundTasks,
    form: ProductForm = Depends(product_form),
    image: Optional[UploadFile] = File(None),
    current_user=Depends(validate_request),
    db: AsyncSession = Depends(get_async_session),
):
    """Update a product; only fields that are sent change"""
    return await product_service.update_product(
        db, product_id, form, _uploaded(image), current_user.get("user_id"), background_tasks
    )


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    background_tasks: BackgroundTasks,
    current_user=Depends(validate_request),
    db: AsyncSession = Depends(get_async_session),
):
    await product_service.delete_product(db, product_id, current_user.get("user_id"), background_tasks)
    return MessageResponse(message="Product deleted.")
