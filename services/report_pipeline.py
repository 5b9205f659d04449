"""
Admin sales-report aggregation.

Flow (one direction, mutations re-enter at the top):

    plan_month_buckets(start, end)         -> [(year, month), ...]
    fetch_month_buckets(buckets, session)  -> [{name: report}, ...]   (one get-admin-reports call per month, in parallel)
    merge_bucket_reports(results)          -> {name: report}          (sales lists concatenated)
    build_report_view(merged, term, ...)   -> ReportView              (name/date filter, totals, ordering)

The server never returns the same sale in two month buckets, so the merge does
not de-duplicate.
"""

from __future__ import annotations

import locale
import logging
import unicodedata
from dataclasses import dataclass, field
from datetime import date, tzinfo
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from config import REPORT_MAX_CONCURRENCY
from services.async_utils import run_blocking, run_in_threads
from services.dates import DateLike, as_day, format_day, in_day_window, local_day
from services.parse_functions import ParseFunctionsClient, SessionExpiredError, get_parse_client, result_list
from services.perf import time_block

logger = logging.getLogger("reports")

ADMIN_REPORTS_FUNCTION = "get-admin-reports"

Bucket = Tuple[int, int]
ReportMapping = Dict[str, Dict[str, Any]]


# ----------------------------------------------------------------
# Range planner
# ----------------------------------------------------------------
def plan_month_buckets(start: DateLike, end: DateLike) -> List[Bucket]:
    """Every (year, month) touched by [start, end], oldest first. Empty when start > end."""
    first, last = as_day(start), as_day(end)
    if first > last:
        return []
    buckets: List[Bucket] = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        buckets.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return buckets


# ----------------------------------------------------------------
# Bucket fetcher
# ----------------------------------------------------------------
def _fetch_bucket(client: ParseFunctionsClient, session: Any, year: int, month: int) -> ReportMapping:
    result = client.call(ADMIN_REPORTS_FUNCTION, {"month": month, "year": year}, session)
    if not isinstance(result, dict):
        logger.warning("[reports] bucket %04d-%02d returned %s instead of a mapping", year, month, type(result).__name__)
        return {}
    return result


async def fetch_month_buckets(
    buckets: Sequence[Bucket],
    session: Any,
    client: Optional[ParseFunctionsClient] = None,
    max_concurrency: int = REPORT_MAX_CONCURRENCY,
) -> List[ReportMapping]:
    """
    One admin-report query per bucket, all in flight together; joins once every
    bucket has settled. A failed bucket contributes {} and is logged. If every
    bucket failed because the session was rejected, SessionExpiredError is raised.
    """
    if not getattr(session, "token", None):
        raise SessionExpiredError("Session expired. Please log in again.", function=ADMIN_REPORTS_FUNCTION)
    client = client or get_parse_client()

    settled = await run_in_threads(
        _fetch_bucket,
        [(client, session, year, month) for year, month in buckets],
        max_concurrency=max_concurrency,
        return_exceptions=True,
    )

    results: List[ReportMapping] = []
    expired = 0
    for (year, month), outcome in zip(buckets, settled):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, SessionExpiredError):
                expired += 1
            logger.warning("[reports] bucket %04d-%02d failed, treating as empty: %s", year, month, outcome)
            results.append({})
        else:
            results.append(outcome)

    if buckets and expired == len(buckets):
        raise SessionExpiredError("Session expired. Please log in again.", function=ADMIN_REPORTS_FUNCTION)
    return results


def fetch_month_buckets_sync(
    buckets: Sequence[Bucket],
    session: Any,
    client: Optional[ParseFunctionsClient] = None,
) -> List[ReportMapping]:
    return run_blocking(fetch_month_buckets(buckets, session, client=client))


# ----------------------------------------------------------------
# Merger
# ----------------------------------------------------------------
def merge_bucket_reports(bucket_results: Iterable[Mapping[str, Any]]) -> ReportMapping:
    merged: ReportMapping = {}
    for bucket in bucket_results:
        if not isinstance(bucket, Mapping):
            continue
        for name, report in bucket.items():
            if not isinstance(report, Mapping):
                continue
            sales = result_list(report.get("salesDetails"))
            if name in merged:
                merged[name]["salesDetails"].extend(sales)
            else:
                entry = dict(report)
                entry["salesDetails"] = list(sales)
                merged[name] = entry
    return merged


# ----------------------------------------------------------------
# Filter / aggregate view
# ----------------------------------------------------------------
def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    # NaN and Infinity cannot be quantized for money output
    return result if result.is_finite() else Decimal("0")


def to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def is_cancelled(sale: Mapping[str, Any]) -> bool:
    return bool(sale.get("isCancelled"))


def name_sort_key(name: str) -> Tuple[str, str]:
    """Accent- and case-insensitive ordering, collated with the active locale."""
    folded = unicodedata.normalize("NFKD", name.casefold())
    stripped = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return locale.strxfrm(stripped), name


def money(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ResellerReportRow:
    name: str
    reseller_id: str
    sales_details: List[Dict[str, Any]]
    total_sales: int
    total_revenue: Decimal

    def to_dict(self, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
        return {
            "name": self.name,
            "resellerId": self.reseller_id,
            "totalSales": self.total_sales,
            "totalRevenue": money(self.total_revenue),
            "salesDetails": [sale_to_dict(sale, tz) for sale in self.sales_details],
        }


@dataclass(frozen=True)
class ReportView:
    start: date
    end: date
    term: str
    resellers: List[ResellerReportRow] = field(default_factory=list)
    grand_total_sales: int = 0
    grand_total_revenue: Decimal = Decimal("0")
    tz: Optional[tzinfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "term": self.term,
            "grandTotalSales": self.grand_total_sales,
            "grandTotalRevenue": money(self.grand_total_revenue),
            "resellers": [row.to_dict(self.tz) for row in self.resellers],
        }


def sale_to_dict(sale: Mapping[str, Any], tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    row = dict(sale)
    row["isCancelled"] = is_cancelled(sale)
    row["saleDay"] = format_day(sale.get("saleDate"), tz)
    return row


def build_report_view(
    merged: Mapping[str, Mapping[str, Any]],
    term: Optional[str],
    start: DateLike,
    end: DateLike,
    tz: Optional[tzinfo] = None,
) -> ReportView:
    """
    Name filter (case-insensitive substring), inclusive day window, totals over
    non-cancelled sales, ordered by total sales desc then name. Resellers with no
    sales in the window are left out even when the name matches.
    """
    needle = (term or "").casefold()
    rows: List[ResellerReportRow] = []

    for name, report in merged.items():
        if needle not in name.casefold():
            continue
        in_window = [
            sale
            for sale in result_list(report.get("salesDetails"))
            if isinstance(sale, Mapping) and in_day_window(local_day(sale.get("saleDate"), tz), start, end)
        ]
        if not in_window:
            continue
        counted = [sale for sale in in_window if not is_cancelled(sale)]
        rows.append(
            ResellerReportRow(
                name=name,
                reseller_id=str(report.get("resellerId") or ""),
                sales_details=list(in_window),
                total_sales=sum(to_int(sale.get("quantitySold")) for sale in counted),
                total_revenue=sum((to_decimal(sale.get("totalPrice")) for sale in counted), Decimal("0")),
            )
        )

    rows.sort(key=lambda row: (-row.total_sales, name_sort_key(row.name)))
    return ReportView(
        start=as_day(start),
        end=as_day(end),
        term=term or "",
        resellers=rows,
        grand_total_sales=sum(row.total_sales for row in rows),
        grand_total_revenue=sum((row.total_revenue for row in rows), Decimal("0")),
        tz=tz,
    )


def run_report_pipeline(
    session: Any,
    start: DateLike,
    end: DateLike,
    term: Optional[str] = "",
    client: Optional[ParseFunctionsClient] = None,
) -> Tuple[ReportMapping, ReportView]:
    """Plan, fetch, merge and filter in one go (stateless callers)."""
    buckets = plan_month_buckets(start, end)
    with time_block("reports.pipeline", buckets=len(buckets)):
        merged = merge_bucket_reports(fetch_month_buckets_sync(buckets, session, client=client))
        view = build_report_view(merged, term, start, end)
    return merged, view
