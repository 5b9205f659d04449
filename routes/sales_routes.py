"""Reseller-facing pages: dashboard figure, new sale, sales history."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from auth.parse_session import SessionContext, require_session
from routes.errors import bad_request, remote_error
from services import sales as sales_service
from services import stock as stock_service
from services.dates import today_local
from services.pagination import PageState, paginate
from services.parse_functions import ParseApiError
from services.report_pipeline import sale_to_dict

router = APIRouter(prefix="/api")

DEFAULT_RESELLER_NAME = "Revendedor"


class NewSalePayload(BaseModel):
    productId: str = Field(..., min_length=1)
    quantitySold: int = Field(..., gt=0)


def _window(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    today = today_local()
    return start or today.replace(day=1), end or today


@router.get("/dashboard")
def dashboard(session: SessionContext = Depends(require_session)) -> dict:
    try:
        monthly = sales_service.monthly_sales_total(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load this month's sales.") from exc
    return {"ok": True, "fullname": session.fullname or DEFAULT_RESELLER_NAME, "monthlySales": monthly}


@router.get("/stock/current")
def current_stock(session: SessionContext = Depends(require_session)) -> dict:
    try:
        products = stock_service.list_current_stock(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load products in stock.") from exc
    return {"ok": True, "products": products}


@router.get("/sales/preview")
def sale_preview(
    product_id: str = Query(...),
    quantity: int = Query(0, ge=0),
    session: SessionContext = Depends(require_session),
) -> dict:
    try:
        products = stock_service.list_current_stock(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load products in stock.") from exc
    return {"ok": True, **sales_service.sale_preview(products, product_id, quantity)}


@router.post("/sales")
def register_sale(payload: NewSalePayload, session: SessionContext = Depends(require_session)) -> dict:
    try:
        sale = sales_service.register_sale(session, payload.productId, payload.quantitySold)
    except ValueError as exc:
        raise bad_request(exc) from exc
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to register sale.") from exc

    # Stock changed server-side; reload it rather than decrementing locally.
    try:
        products = stock_service.list_current_stock(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Sale registered, but reloading stock failed.") from exc
    return {"ok": True, "sale": sale, "products": products}


@router.get("/sales/history")
def sales_history(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    page: int = Query(0, ge=0),
    page_size: int = Query(10, ge=1, le=100),
    session: SessionContext = Depends(require_session),
) -> dict:
    start, end = _window(start, end)
    try:
        all_sales = sales_service.get_all_sales(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the sales report.") from exc

    filtered = sales_service.filter_sales_by_window(all_sales, start, end)
    result = paginate(filtered, PageState(page=page, page_size=page_size))
    result["rows"] = [sale_to_dict(sale) for sale in result["rows"]]
    return {
        "ok": True,
        "start": start.isoformat(),
        "end": end.isoformat(),
        **sales_service.sales_totals(filtered),
        **result,
    }


@router.get("/sales/history/export")
def export_sales_history(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    session: SessionContext = Depends(require_session),
) -> Response:
    start, end = _window(start, end)
    try:
        all_sales = sales_service.get_all_sales(session)
    except ParseApiError as exc:
        raise remote_error(exc, "Failed to load the sales report.") from exc

    filtered = sales_service.filter_sales_by_window(all_sales, start, end)
    if not filtered:
        raise HTTPException(status_code=404, detail="No sales in the selected period.")
    filename = sales_service.export_filename(start, end)
    return Response(
        content=sales_service.sales_to_csv(filtered),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def register_sales_routes(app: FastAPI) -> None:
    app.include_router(router)
