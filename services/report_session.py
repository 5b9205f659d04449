"""Stateful admin report: active filters, cached merged mapping, reconciliation after cancel/undo."""

from __future__ import annotations

import logging
from datetime import date
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from services.dates import DateLike, as_day, today_local
from services.pagination import PaginationRegistry, paginate
from services.parse_functions import ParseFunctionsClient, get_parse_client
from services.perf import time_block
from services.report_pipeline import (
    ReportMapping,
    ReportView,
    build_report_view,
    fetch_month_buckets_sync,
    merge_bucket_reports,
    plan_month_buckets,
    sale_to_dict,
)

logger = logging.getLogger("reports")

CANCEL_SALE_FUNCTION = "cancel-sale"
UNDO_CANCEL_SALE_FUNCTION = "undo-cancel-sale"


class AdminReportSession:
    """
    One admin's report screen.

    Every refresh takes a new generation number before it dispatches; a fetch
    only commits if no later refresh was started meanwhile, so a slow, older
    range can never overwrite a newer one. Mutations never patch the cached
    sales: they call the server and re-run the whole pipeline, because the
    server also reverses stock levels the cache cannot see.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], ParseFunctionsClient]] = None,
        today: Optional[date] = None,
    ):
        today = today or today_local()
        self._client_factory = client_factory or (lambda: get_parse_client())
        self._lock = Lock()
        self._generation = 0
        # (buckets, term) that produced self._merged
        self._committed: Optional[Tuple[Tuple[Tuple[int, int], ...], str]] = None
        self._merged: ReportMapping = {}
        self._view: Optional[ReportView] = None
        self.start: date = today.replace(day=1)
        self.end: date = today
        self.term: str = ""
        self.pages = PaginationRegistry()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def merged(self) -> ReportMapping:
        return self._merged

    def _fetch_key(self) -> Tuple[Tuple[Tuple[int, int], ...], str]:
        return tuple(plan_month_buckets(self.start, self.end)), self.term

    def _derive(self) -> ReportView:
        self._view = build_report_view(self._merged, self.term, self.start, self.end)
        return self._view

    def refresh(self, session: Any) -> ReportView:
        with self._lock:
            self._generation += 1
            generation = self._generation
            key = self._fetch_key()
            buckets, term = key
            start, end = self.start, self.end

        with time_block("reports.refresh", buckets=len(buckets), generation=generation):
            merged = merge_bucket_reports(
                fetch_month_buckets_sync(list(buckets), session, client=self._client_factory())
            )

        with self._lock:
            if generation != self._generation:
                logger.info(
                    "[reports] discarding superseded fetch gen=%s (latest=%s) for %s..%s",
                    generation,
                    self._generation,
                    start,
                    end,
                )
                if self._view is not None:
                    return self._view
                return build_report_view(merged, term, start, end)
            self._merged = merged
            self._committed = key
            logger.info("[reports] gen=%s loaded %s resellers across %s buckets", generation, len(merged), len(buckets))
            return self._derive()

    def update_filters(
        self,
        session: Any,
        term: Optional[str] = None,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> ReportView:
        """
        Apply new filters. Re-fetches when the month buckets or the search term
        change (or nothing has been committed yet); a date change inside the
        months already committed is re-filtered from the cache.
        """
        with self._lock:
            if term is not None:
                self.term = term
            if start is not None:
                self.start = as_day(start)
            if end is not None:
                self.end = as_day(end)
            if self._committed is not None and self._fetch_key() == self._committed:
                # Fetches still in flight were started for other filters.
                self._generation += 1
                return self._derive()
        return self.refresh(session)

    def current_view(self, session: Any) -> ReportView:
        if self._view is None:
            return self.refresh(session)
        return self._view

    def cancel_sale(self, session: Any, sale_id: str, reason: str = "") -> ReportView:
        self._client_factory().call(CANCEL_SALE_FUNCTION, {"saleId": sale_id, "reason": reason}, session)
        logger.info("[reports] sale %s cancelled; reconciling", sale_id)
        return self.refresh(session)

    def undo_cancel_sale(self, session: Any, sale_id: str) -> ReportView:
        self._client_factory().call(UNDO_CANCEL_SALE_FUNCTION, {"saleId": sale_id}, session)
        logger.info("[reports] sale %s restored; reconciling", sale_id)
        return self.refresh(session)

    def to_payload(self, view: ReportView) -> Dict[str, Any]:
        """View plus one page of detail rows per reseller, using that reseller's pager."""
        payload = view.to_dict()
        for row, entry in zip(view.resellers, payload["resellers"]):
            key = row.reseller_id or row.name
            page = paginate(row.sales_details, self.pages.get(key))
            page["rows"] = [sale_to_dict(sale, view.tz) for sale in page["rows"]]
            entry["pagination"] = page
            del entry["salesDetails"]
        payload["pageSizeOptions"] = list(self.pages.page_size_options)
        return payload


_sessions: Dict[str, AdminReportSession] = {}
_sessions_lock = Lock()


def _session_key(session: Any) -> str:
    return getattr(session, "user_id", "") or getattr(session, "token", "") or ""


def get_report_session(session: Any) -> AdminReportSession:
    key = _session_key(session)
    with _sessions_lock:
        report = _sessions.get(key)
        if report is None:
            report = AdminReportSession()
            _sessions[key] = report
        return report


def discard_report_session(session: Any) -> None:
    with _sessions_lock:
        _sessions.pop(_session_key(session), None)


def clear_report_sessions() -> None:
    with _sessions_lock:
        _sessions.clear()
