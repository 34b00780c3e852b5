"""Shorthand endpoints mapping fixed Shopify tools onto named parameters."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.dependencies import get_tool_provider
from src.provider import ToolProviderConnection

from .router import create_error_response
from .schemas import ProductsRequest, ShortcutResponse, UpdateProductImageRequest
from .service import fetch_product, fetch_products, update_product_image


router = APIRouter(prefix="/api/shopify", tags=["shortcuts"])


@router.post("/products", response_model=ShortcutResponse)
async def products_endpoint(
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
    body: ProductsRequest | None = None,
):
    """Fetch a page of products (``get_products``)."""
    body = body or ProductsRequest()
    try:
        data = await fetch_products(provider, limit=body.limit, page_info=body.page_info)
    except Exception as exc:
        return create_error_response(exc)
    return ShortcutResponse(data=data)


@router.post("/product/{product_id}", response_model=ShortcutResponse)
async def product_endpoint(
    product_id: str,
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
):
    """Fetch one product by identifier (``get_product``)."""
    try:
        data = await fetch_product(provider, product_id)
    except Exception as exc:
        return create_error_response(exc)
    return ShortcutResponse(data=data)


@router.post("/update-product-image", response_model=ShortcutResponse)
async def update_product_image_endpoint(
    body: UpdateProductImageRequest,
    provider: Annotated[ToolProviderConnection, Depends(get_tool_provider)],
):
    """Update a product image's alt text or position (``update_product_image``)."""
    try:
        data = await update_product_image(
            provider,
            product_id=body.product_id,
            image_id=body.image_id,
            alt=body.alt,
            position=body.position,
        )
    except Exception as exc:
        return create_error_response(exc)
    return ShortcutResponse(data=data)
