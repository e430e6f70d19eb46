from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List
from decimal import Decimal
from datetime import datetime
import logging

from tortoise.exceptions import DoesNotExist
from models import ProductPrice, User
from services.pricing import PricingError, validate_dimensions, validate_price, select_covering_cell
from utils.auth import get_current_active_user, get_admin_user

router = APIRouter()
logger = logging.getLogger("pricing")

class PriceCell(BaseModel):
    breite: int
    tiefe: int
    price: Decimal

class PriceGridUpdate(BaseModel):
    product_name: str
    cells: List[PriceCell]

class PriceResponse(BaseModel):
    id: int
    product_name: str
    breite: int
    tiefe: int
    price: Decimal
    updated_at: datetime

def price_to_response(p: ProductPrice) -> PriceResponse:
    return PriceResponse(
        id=p.id, product_name=p.product_name, breite=p.breite, tiefe=p.tiefe,
        price=p.price, updated_at=p.updated_at,
    )

@router.get("/pricing/products", response_model=List[str])
async def list_priced_products(current_user: User = Depends(get_current_active_user)):
    names = await ProductPrice.all().distinct().order_by("product_name").values_list("product_name", flat=True)
    return list(names)

@router.get("/pricing/lookup", response_model=PriceResponse)
async def lookup_price(product_name: str, breite: int, tiefe: int,
                       current_user: User = Depends(get_current_active_user)):
    """
    Price of the smallest grid cell that covers the requested width and depth.
    """
    try:
        validate_dimensions(breite, tiefe)
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    cells = await ProductPrice.filter(product_name=product_name, breite__gte=breite, tiefe__gte=tiefe)
    cell = select_covering_cell(cells, breite, tiefe)
    if cell is None:
        logger.debug(f"No price for {product_name} {breite}x{tiefe}")
        raise HTTPException(status_code=404, detail="Kein Preis für diese Maße hinterlegt")
    return price_to_response(cell)

@router.get("/pricing", response_model=List[PriceResponse])
async def list_prices(product_name: str, current_user: User = Depends(get_current_active_user)):
    prices = await ProductPrice.filter(product_name=product_name).order_by("breite", "tiefe")
    return [price_to_response(p) for p in prices]

@router.put("/pricing", response_model=List[PriceResponse])
async def upsert_prices(request: PriceGridUpdate, admin: User = Depends(get_admin_user)):
    """
    Insert or update grid cells of one product (admin only).
    """
    try:
        for cell in request.cells:
            validate_dimensions(cell.breite, cell.tiefe)
            validate_price(cell.price)
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = []
    for cell in request.cells:
        price, _ = await ProductPrice.update_or_create(
            defaults={"price": cell.price},
            product_name=request.product_name,
            breite=cell.breite,
            tiefe=cell.tiefe,
        )
        result.append(price_to_response(price))

    logger.info(f"{len(result)} price cells of {request.product_name} saved by {admin.email}")
    return result

@router.delete("/pricing/{price_id}")
async def delete_price(price_id: int, admin: User = Depends(get_admin_user)):
    try:
        price = await ProductPrice.get(id=price_id)
    except DoesNotExist:
        raise HTTPException(status_code=404, detail="Preis nicht gefunden")
    await price.delete()
    return {"success": True, "message": "Preis gelöscht"}
