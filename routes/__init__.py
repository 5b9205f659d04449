"""Routes package initializer."""

from .product_routes import register_product_routes
from .report_routes import register_report_routes
from .reseller_routes import register_reseller_routes
from .sales_routes import register_sales_routes
from .session_routes import register_session_routes

__all__ = [
    "register_session_routes",
    "register_sales_routes",
    "register_product_routes",
    "register_report_routes",
    "register_reseller_routes",
]
