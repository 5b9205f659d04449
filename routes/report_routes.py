"""Admin sales report: filters, per-reseller pagers, cancel / undo-cancel."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from pydantic import BaseModel, Field

from auth.parse_session import SessionContext, require_admin
from routes.errors import bad_request, remote_error
from services import report_session as report_sessions
from services.parse_functions import ParseApiError

router = APIRouter(prefix="/api/admin/reports")
logger = logging.getLogger(__name__)


class PagePayload(BaseModel):
    page: Optional[int] = Field(None, ge=0)
    pageSize: Optional[int] = Field(None, gt=0)


class CancelSalePayload(BaseModel):
    reason: str = ""


@router.get("")
def read_reports(
    q: Optional[str] = Query(None, description="Reseller name filter"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    session: SessionContext = Depends(require_admin),
) -> dict:
    report = report_sessions.get_report_session(session)
    try:
        if q is None and start is None and end is None:
            view = report.current_view(session)
        else:
            view = report.update_filters(session, term=q, start=start, end=end)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the reports.") from exc
    return {"ok": True, **report.to_payload(view)}


@router.post("/refresh")
def refresh_reports(session: SessionContext = Depends(require_admin)) -> dict:
    report = report_sessions.get_report_session(session)
    try:
        view = report.refresh(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the reports.") from exc
    return {"ok": True, **report.to_payload(view)}


@router.post("/pages/{reseller_id}")
def change_page(reseller_id: str, payload: PagePayload, session: SessionContext = Depends(require_admin)) -> dict:
    report = report_sessions.get_report_session(session)
    try:
        if payload.pageSize is not None:
            report.pages.set_page_size(reseller_id, payload.pageSize)
        if payload.page is not None:
            report.pages.set_page(reseller_id, payload.page)
    except ValueError as exc:
        raise bad_request(exc) from exc
    state = report.pages.get(reseller_id)
    try:
        view = report.current_view(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the reports.") from exc
    return {"ok": True, "resellerId": reseller_id, "page": state.page, "pageSize": state.page_size, **report.to_payload(view)}


@router.post("/sales/{sale_id}/cancel")
def cancel_sale(sale_id: str, payload: CancelSalePayload, session: SessionContext = Depends(require_admin)) -> dict:
    report = report_sessions.get_report_session(session)
    try:
        view = report.cancel_sale(session, sale_id, payload.reason)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to cancel sale.") from exc
    return {"ok": True, "saleId": sale_id, **report.to_payload(view)}


@router.post("/sales/{sale_id}/undo-cancel")
def undo_cancel_sale(sale_id: str, session: SessionContext = Depends(require_admin)) -> dict:
    report = report_sessions.get_report_session(session)
    try:
        view = report.undo_cancel_sale(session, sale_id)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to undo the cancellation.") from exc
    return {"ok": True, "saleId": sale_id, **report.to_payload(view)}


def register_report_routes(app: FastAPI) -> None:
    app.include_router(router)
