"""Sale registration, the reseller dashboard figure and the sales history window."""

import csv
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Any, Dict, List, Optional

from services.dates import DateLike, as_day, format_day, in_day_window, local_day, today_local
from services.parse_functions import ParseFunctionsClient, get_parse_client, result_dict, result_list
from services.report_pipeline import to_decimal, to_int, money

logger = logging.getLogger(__name__)

CSV_HEADER = ["Produto", "Quantidade Vendida", "Preço Total", "Data da Venda"]


def _client(client: Optional[ParseFunctionsClient]) -> ParseFunctionsClient:
    return client or get_parse_client()


def register_sale(session, product_id: str, quantity: Any, client: Optional[ParseFunctionsClient] = None) -> Dict[str, Any]:
    if not product_id or quantity in (None, ""):
        raise ValueError("Fill in all fields.")
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValueError("Quantity must be a whole number.")
    if quantity <= 0:
        raise ValueError("Quantity must be positive.")
    created = _client(client).call("add-sale", {"productId": product_id, "quantitySold": quantity}, session)
    logger.info("[sales] registered sale product=%s qty=%s", product_id, quantity)
    return result_dict(created)


def sale_preview(stock: List[Dict[str, Any]], product_id: str, quantity: Any) -> Dict[str, Any]:
    """Unit price and running total for the product being sold."""
    current = next((p for p in stock if p.get("productId") == product_id), None)
    unit = to_decimal(current.get("price")) if current else Decimal("0")
    qty = to_int(quantity)
    return {
        "productId": product_id,
        "available": to_int(current.get("quantity")) if current else 0,
        "unitPrice": money(unit),
        "total": money(unit * qty),
    }


def monthly_sales_total(session, today: Optional[date] = None, client: Optional[ParseFunctionsClient] = None) -> int:
    """Units the logged-in reseller sold in the current calendar month."""
    today = today or today_local()
    sales = result_list(_client(client).call("list-sales-by-user", {}, session))
    total = 0
    for sale in sales:
        day = local_day(sale.get("saleDate")) if isinstance(sale, dict) else None
        if day and (day.year, day.month) == (today.year, today.month):
            total += to_int(sale.get("quantitySold"))
    return total


def get_all_sales(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    return result_list(_client(client).call("get-all-sales", {}, session), key="salesDetails")


def filter_sales_by_window(sales: List[Dict[str, Any]], start: DateLike, end: DateLike) -> List[Dict[str, Any]]:
    return [
        sale
        for sale in sales
        if isinstance(sale, dict) and in_day_window(local_day(sale.get("saleDate")), start, end)
    ]


def sales_totals(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "totalSales": sum(to_int(s.get("quantitySold")) for s in sales),
        "totalRevenue": money(sum((to_decimal(s.get("totalPrice")) for s in sales), Decimal("0"))),
    }


def sales_to_csv(sales: List[Dict[str, Any]]) -> str:
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADER)
    for sale in sales:
        writer.writerow(
            [
                sale.get("productName") or "",
                to_int(sale.get("quantitySold")),
                f"R${money(to_decimal(sale.get('totalPrice'))):.2f}",
                format_day(sale.get("saleDate")),
            ]
        )
    return buf.getvalue()


def export_filename(start: DateLike, end: DateLike) -> str:
    return f"relatorio-vendas-{as_day(start):%d-%m-%Y}-ate-{as_day(end):%d-%m-%Y}.csv"
