"""Product catalog, price table and stock assignment."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from services.parse_functions import ParseFunctionsClient, get_parse_client, result_dict, result_list
from services.report_pipeline import name_sort_key

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "stock", "price")
SORT_ORDERS = ("asc", "desc")


def _client(client: Optional[ParseFunctionsClient]) -> ParseFunctionsClient:
    return client or get_parse_client()


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def list_active_products(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    return result_list(_client(client).call("list-active-products", {}, session))


def add_product(session, name: str, stock: Any, price: Any, client: Optional[ParseFunctionsClient] = None) -> Dict[str, Any]:
    if not (name or "").strip() or stock in (None, "") or price in (None, ""):
        raise ValueError("Product name, stock and price are required.")
    payload = {"productName": name.strip(), "stock": int(stock), "price": float(price)}
    created = result_dict(_client(client).call("add-product", payload, session))
    logger.info("[products] added %s (stock=%s price=%s)", payload["productName"], payload["stock"], payload["price"])
    return created


def update_product(
    session,
    product_id: str,
    name: str,
    stock: Any,
    price: Any,
    client: Optional[ParseFunctionsClient] = None,
) -> Dict[str, Any]:
    if not product_id:
        raise ValueError("Product id is required.")
    payload = {
        "productId": product_id,
        "productName": (name or "").strip(),
        "stock": int(stock),
        "price": float(price),
    }
    return result_dict(_client(client).call("update-product", payload, session))


def soft_delete_product(session, product_id: str, client: Optional[ParseFunctionsClient] = None) -> None:
    _client(client).call("soft-delete-product", {"productId": product_id}, session)
    logger.info("[products] soft-deleted %s", product_id)


def assign_stock(
    session,
    reseller_id: str,
    product_id: str,
    quantity: Any,
    client: Optional[ParseFunctionsClient] = None,
) -> None:
    """Hand ``quantity`` units of a product to a reseller (add-stock)."""
    if not reseller_id or not quantity:
        raise ValueError("Reseller and quantity are required.")
    quantity = int(quantity)
    if quantity <= 0:
        raise ValueError("Quantity must be positive.")
    _client(client).call("add-stock", {"userId": reseller_id, "productId": product_id, "stock": quantity}, session)
    logger.info("[products] assigned %s x %s to reseller %s", quantity, product_id, reseller_id)


def filter_and_sort_products(
    products: List[Dict[str, Any]],
    term: str = "",
    sort_by: str = "name",
    order: str = "asc",
) -> List[Dict[str, Any]]:
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"sort_by must be one of {SORT_FIELDS}")
    needle = (term or "").casefold()
    rows = [p for p in products if needle in str(p.get("productName") or "").casefold()]

    if sort_by == "name":
        key = lambda p: name_sort_key(str(p.get("productName") or ""))
    else:
        key = lambda p: _number(p.get(sort_by))
    return sorted(rows, key=key, reverse=(order == "desc"))


def toggle_sort(current: str, order: str, field: str) -> Tuple[str, str]:
    """Same column flips the direction; a new column starts ascending."""
    if field == current:
        return current, "desc" if order == "asc" else "asc"
    return field, "asc"


def price_table(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    products = list_active_products(session, client=client)
    return [
        {"productName": p.get("productName"), "price": _number(p.get("price"))}
        for p in filter_and_sort_products(products, sort_by="name")
    ]
