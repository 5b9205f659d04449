"""Product catalog and stock assignment (admin)."""

import logging

from fastapi import APIRouter, Depends, FastAPI, Query
from pydantic import BaseModel, Field

from auth.parse_session import SessionContext, require_admin, require_session
from routes.errors import bad_request, remote_error
from services import products as product_service
from services import resellers as reseller_service
from services.parse_functions import ParseApiError

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


class ProductPayload(BaseModel):
    productName: str = Field(..., min_length=1)
    stock: int = Field(..., ge=0)
    price: float = Field(..., ge=0)


class AssignStockPayload(BaseModel):
    resellerId: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


@router.get("/products")
def list_products(
    q: str = Query("", description="Name filter"),
    sort: str = Query("name", pattern="^(name|stock|price)$"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    session: SessionContext = Depends(require_session),
) -> dict:
    try:
        products = product_service.list_active_products(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load products.") from exc
    rows = product_service.filter_and_sort_products(products, q, sort, order)
    return {"ok": True, "products": rows, "sort": sort, "order": order}


@router.get("/products/price-table")
def price_table(session: SessionContext = Depends(require_session)) -> dict:
    try:
        rows = product_service.price_table(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the price table.") from exc
    return {"ok": True, "prices": rows}


@router.post("/products")
def add_product(payload: ProductPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        product = product_service.add_product(session, payload.productName, payload.stock, payload.price)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to add product.") from exc
    return {"ok": True, "product": product}


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        product = product_service.update_product(
            session, product_id, payload.productName, payload.stock, payload.price
        )
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to update product.") from exc
    return {"ok": True, "product": product}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        product_service.soft_delete_product(session, product_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to delete product.") from exc
    return {"ok": True, "productId": product_id}


@router.post("/products/{product_id}/assign")
def assign_product(product_id: str, payload: AssignStockPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        product_service.assign_stock(session, payload.resellerId, product_id, payload.quantity)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to assign product.") from exc
    return {"ok": True}


@router.get("/resellers/active")
def active_resellers(session: SessionContext = Depends(require_admin)) -> dict:
    try:
        rows = reseller_service.list_active_resellers(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load resellers.") from exc
    return {"ok": True, "resellers": rows}


def register_product_routes(app: FastAPI) -> None:
    app.include_router(router)
