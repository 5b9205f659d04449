"""Reseller stock: what a reseller holds, and returning it to the central inventory."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from config import REPORT_MAX_CONCURRENCY
from services.async_utils import run_blocking, run_in_threads
from services.parse_functions import ParseApiError, ParseFunctionsClient, get_parse_client, result_list

logger = logging.getLogger(__name__)


def _client(client: Optional[ParseFunctionsClient]) -> ParseFunctionsClient:
    return client or get_parse_client()


def list_current_stock(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    """The logged-in reseller's own stock, [{productId, productName, price, quantity}]."""
    return result_list(_client(client).call("get-current-stock", {}, session))


def get_reseller_stock(session, reseller_id: str, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    return result_list(_client(client).call("get-reseller-stock", {"resellerId": reseller_id}, session))


def clamp_return_quantity(requested: Any, held: Any) -> int:
    try:
        requested = int(requested or 0)
    except (TypeError, ValueError):
        requested = 0
    try:
        held = int(held or 0)
    except (TypeError, ValueError):
        held = 0
    return max(0, min(requested, held))


def return_stock(
    session,
    reseller_id: str,
    product_id: str,
    quantity: Any,
    client: Optional[ParseFunctionsClient] = None,
) -> None:
    quantity = int(quantity or 0)
    if quantity <= 0:
        raise ValueError("Quantity to return must be positive.")
    _client(client).call(
        "return-stock",
        {"resellerId": reseller_id, "productId": product_id, "quantity": quantity},
        session,
    )
    logger.info("[stock] reseller %s returned %s x %s", reseller_id, quantity, product_id)


def _return_many(session, reseller_id: str, items: List[tuple], client: ParseFunctionsClient) -> int:
    settled = run_blocking(
        run_in_threads(
            lambda product_id, quantity: return_stock(session, reseller_id, product_id, quantity, client=client),
            items,
            max_concurrency=REPORT_MAX_CONCURRENCY,
            return_exceptions=True,
        )
    )
    failures = [(item, outcome) for item, outcome in zip(items, settled) if isinstance(outcome, Exception)]
    for (product_id, quantity), exc in failures:
        logger.error("[stock] return of %s x %s for reseller %s failed: %s", quantity, product_id, reseller_id, exc)
    if failures:
        raise ParseApiError(
            f"{len(failures)} of {len(items)} stock returns failed",
            function="return-stock",
        )
    return len(items)


def return_stock_batch(
    session,
    reseller_id: str,
    quantities: Mapping[str, Any],
    client: Optional[ParseFunctionsClient] = None,
) -> int:
    """Return several products at once; only positive quantities are sent. All calls settle before failing."""
    items = []
    for product_id, qty in quantities.items():
        try:
            qty = int(qty or 0)
        except (TypeError, ValueError):
            qty = 0
        if qty > 0:
            items.append((product_id, qty))
    if not items:
        raise ValueError("Set at least one quantity to return.")
    return _return_many(session, reseller_id, items, _client(client))


def return_all_stock(session, reseller_id: str, client: Optional[ParseFunctionsClient] = None) -> int:
    client = _client(client)
    held = get_reseller_stock(session, reseller_id, client=client)
    items = [
        (p.get("productId"), int(p.get("quantity") or 0))
        for p in held
        if int(p.get("quantity") or 0) > 0
    ]
    if not items:
        raise ValueError("No product with quantity above zero.")
    return _return_many(session, reseller_id, items, client)
