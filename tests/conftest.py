from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from auth.parse_session import SessionContext
from services import report_session


class FakeParseClient:
    """
    In-memory stand-in for ParseFunctionsClient.

    ``handlers`` maps a cloud-function name to either a value, an exception
    instance (raised), or a callable taking the payload.
    """

    def __init__(self, handlers: Optional[Dict[str, Any]] = None):
        self.handlers: Dict[str, Any] = dict(handlers or {})
        self.calls: List[tuple] = []

    def call(self, function: str, payload: Optional[Dict[str, Any]] = None, session: Any = None) -> Any:
        payload = payload or {}
        self.calls.append((function, payload, session))
        if function not in self.handlers:
            raise AssertionError(f"unexpected cloud function call: {function}")
        handler = self.handlers[function]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(payload)
        return handler

    def names(self) -> List[str]:
        return [name for name, _payload, _session in self.calls]


def sale(sale_id: str, qty: int, price: float, iso: str, cancelled: bool = False, product: str = "Perfume") -> dict:
    return {
        "objectId": sale_id,
        "productName": product,
        "quantitySold": qty,
        "totalPrice": price,
        "saleDate": {"__type": "Date", "iso": iso},
        "isCancelled": cancelled,
    }


@pytest.fixture
def admin_session() -> SessionContext:
    return SessionContext(token="r:admin-token", user_id="admin1", fullname="Admin", role="admin")


@pytest.fixture
def reseller_session() -> SessionContext:
    return SessionContext(token="r:reseller-token", user_id="res1", fullname="Ana Souza", role="reseller")


@pytest.fixture
def make_client() -> Callable[..., FakeParseClient]:
    return FakeParseClient


@pytest.fixture(autouse=True)
def _reset_report_sessions():
    report_session.clear_report_sessions()
    yield
    report_session.clear_report_sessions()


@pytest.fixture
def make_sale() -> Callable[..., dict]:
    return sale
