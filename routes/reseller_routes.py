"""Reseller management (admin): accounts, stock returns, seller details and contracts."""

import base64
import binascii
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from pydantic import BaseModel, Field

from auth.parse_session import SessionContext, require_admin
from routes.errors import bad_request, remote_error
from services import resellers as reseller_service
from services import stock as stock_service
from services.parse_functions import ParseApiError

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


class NewUserPayload(BaseModel):
    fullname: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class UpdateUserPayload(BaseModel):
    fullname: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class ReturnStockPayload(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class ReturnBatchPayload(BaseModel):
    quantities: Dict[str, int] = Field(default_factory=dict)


class SellerDetailsPayload(BaseModel):
    contact: str = ""
    address: str = ""


class ContractUploadPayload(BaseModel):
    title: str = reseller_service.DEFAULT_CONTRACT_TITLE
    fileBase64: str = Field(..., min_length=1)


class ContractTitlePayload(BaseModel):
    title: str = Field(..., min_length=1)


# ----------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------
@router.get("/resellers")
def list_resellers(
    q: str = Query(""),
    only_deleted: bool = Query(False),
    sort: str = Query("name", pattern="^(name|sales)$"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    session: SessionContext = Depends(require_admin),
) -> dict:
    try:
        rows = reseller_service.resellers_summary(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load resellers.") from exc
    rows = reseller_service.sort_resellers(reseller_service.filter_resellers(rows, q, only_deleted), sort, order)
    return {"ok": True, "resellers": rows}


@router.post("/resellers")
def create_reseller(payload: NewUserPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        user = reseller_service.create_user(payload.fullname, payload.email, payload.password)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to create user.") from exc
    return {"ok": True, "user": user}


@router.put("/resellers/{user_id}")
def update_reseller(user_id: str, payload: UpdateUserPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        user = reseller_service.update_user(session, user_id, payload.fullname, payload.email, payload.password)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to update user.") from exc
    return {"ok": True, "user": user}


@router.delete("/resellers/{user_id}")
def delete_reseller(user_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        reseller_service.soft_delete_user(session, user_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to delete user.") from exc
    return {"ok": True, "userId": user_id}


@router.post("/resellers/{user_id}/restore")
def restore_reseller(user_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        reseller_service.restore_user(session, user_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to restore user.") from exc
    return {"ok": True, "userId": user_id}


# ----------------------------------------------------------------
# Stock held by a reseller
# ----------------------------------------------------------------
@router.get("/resellers/{reseller_id}/stock")
def reseller_stock(reseller_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        stock = stock_service.get_reseller_stock(session, reseller_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load reseller stock.") from exc
    return {"ok": True, "resellerId": reseller_id, "stock": stock}


@router.post("/resellers/{reseller_id}/stock/return")
def return_stock(reseller_id: str, payload: ReturnStockPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        held = stock_service.get_reseller_stock(session, reseller_id)
        current = next((p for p in held if p.get("productId") == payload.productId), {})
        quantity = stock_service.clamp_return_quantity(payload.quantity, current.get("quantity"))
        stock_service.return_stock(session, reseller_id, payload.productId, quantity)
        stock = stock_service.get_reseller_stock(session, reseller_id)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to return stock.") from exc
    return {"ok": True, "resellerId": reseller_id, "returned": quantity, "stock": stock}


@router.post("/resellers/{reseller_id}/stock/return-batch")
def return_stock_batch(reseller_id: str, payload: ReturnBatchPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        count = stock_service.return_stock_batch(session, reseller_id, payload.quantities)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to return the selected items.") from exc
    return {"ok": True, "resellerId": reseller_id, "returnedItems": count}


@router.post("/resellers/{reseller_id}/stock/return-all")
def return_all_stock(reseller_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        count = stock_service.return_all_stock(session, reseller_id)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to return all stock.") from exc
    return {"ok": True, "resellerId": reseller_id, "returnedItems": count}


# ----------------------------------------------------------------
# Seller details and contracts
# ----------------------------------------------------------------
@router.get("/sellers/{seller_id}")
def seller_details(seller_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        details = reseller_service.get_seller_details(session, seller_id)
        contracts = reseller_service.list_contracts(session, seller_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load seller details.") from exc
    return {"ok": True, "seller": details, "contracts": contracts}


@router.put("/sellers/{seller_id}")
def update_seller(seller_id: str, payload: SellerDetailsPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        reseller_service.update_seller_details(session, seller_id, payload.contact, payload.address)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to update seller details.") from exc
    return {"ok": True}


@router.get("/sellers/{seller_id}/contracts")
def seller_contracts(seller_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        contracts = reseller_service.list_contracts(session, seller_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load contracts.") from exc
    return {"ok": True, "contracts": contracts}


@router.post("/sellers/{seller_id}/contracts")
def upload_contract(seller_id: str, payload: ContractUploadPayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        content = base64.b64decode(payload.fileBase64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise bad_request(ValueError("File content is not valid base64.")) from exc
    try:
        contracts = reseller_service.upload_contract(session, seller_id, content, payload.title)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to upload contract.") from exc
    return {"ok": True, "contracts": contracts}


@router.put("/contracts/{contract_id}")
def rename_contract(contract_id: str, payload: ContractTitlePayload, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        reseller_service.rename_contract(session, contract_id, payload.title)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to rename contract.") from exc
    return {"ok": True, "contractId": contract_id}


@router.delete("/contracts/{contract_id}")
def delete_contract(contract_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    try:
        reseller_service.delete_contract(session, contract_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to delete contract.") from exc
    return {"ok": True, "contractId": contract_id}


def register_reseller_routes(app: FastAPI) -> None:
    app.include_router(router)
