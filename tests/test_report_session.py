import threading
from datetime import date

import pytest

from services import report_session
from services.parse_functions import ParseApiError, SessionExpiredError
from services.report_session import AdminReportSession


class FakeReportServer:
    """Keeps sales server-side and answers get-admin-reports / cancel / undo like the backend."""

    def __init__(self, sales_by_reseller):
        self.sales = sales_by_reseller
        self.calls = []

    def call(self, function, payload=None, session=None):
        payload = payload or {}
        self.calls.append((function, payload))
        if function == "get-admin-reports":
            prefix = f"{payload['year']:04d}-{payload['month']:02d}"
            report = {}
            for name, sales in self.sales.items():
                in_month = [dict(s) for s in sales if s["saleDate"]["iso"].startswith(prefix)]
                if in_month:
                    report[name] = {"resellerId": name.lower(), "salesDetails": in_month}
            return report
        if function in ("cancel-sale", "undo-cancel-sale"):
            for sales in self.sales.values():
                for s in sales:
                    if s["objectId"] == payload["saleId"]:
                        s["isCancelled"] = function == "cancel-sale"
            return {"ok": True}
        raise AssertionError(function)

    def fetch_count(self):
        return sum(1 for fn, _ in self.calls if fn == "get-admin-reports")


@pytest.fixture
def server(make_sale):
    return FakeReportServer(
        {
            "Ana": [
                make_sale("a1", 2, 20.0, "2025-01-03T15:00:00Z"),
                make_sale("a2", 3, 30.0, "2025-01-15T15:00:00Z"),
            ],
            "Bruno": [make_sale("b1", 10, 100.0, "2025-02-10T15:00:00Z")],
        }
    )


def _report(server):
    return AdminReportSession(client_factory=lambda: server, today=date(2025, 1, 20))


def test_defaults_to_current_month_until_today(server):
    report = _report(server)
    assert (report.start, report.end, report.term) == (date(2025, 1, 1), date(2025, 1, 20), "")


def test_cancel_then_undo_restores_totals(server, admin_session):
    report = _report(server)
    view = report.current_view(admin_session)
    assert view.resellers[0].total_sales == 5

    view = report.cancel_sale(admin_session, "a2", "wrong product")
    assert view.resellers[0].total_sales == 2
    assert any(s["objectId"] == "a2" and s["isCancelled"] for s in view.resellers[0].sales_details)

    view = report.undo_cancel_sale(admin_session, "a2")
    assert view.resellers[0].total_sales == 5
    assert all(not s["isCancelled"] for s in view.resellers[0].sales_details)
    # initial load + one full re-run per mutation
    assert server.fetch_count() == 3
    assert ("cancel-sale", {"saleId": "a2", "reason": "wrong product"}) in server.calls


def test_date_change_inside_loaded_months_refilters_without_fetching(server, admin_session):
    report = _report(server)
    report.current_view(admin_session)
    view = report.update_filters(admin_session, start=date(2025, 1, 10), end=date(2025, 1, 31))

    assert server.fetch_count() == 1
    assert [s["objectId"] for s in view.resellers[0].sales_details] == ["a2"]


def test_month_or_term_change_fetches_again(server, admin_session):
    report = _report(server)
    report.current_view(admin_session)

    view = report.update_filters(admin_session, end=date(2025, 2, 28))
    assert server.fetch_count() == 3  # Jan, then Jan + Feb
    assert [row.name for row in view.resellers] == ["Bruno", "Ana"]

    report.update_filters(admin_session, term="bru")
    assert server.fetch_count() == 5


def test_failed_refresh_lets_the_next_update_fetch(server, admin_session):
    report = _report(server)
    original = server.call

    def expired(function, payload=None, session=None):
        raise SessionExpiredError("invalid session token", code=209)

    server.call = expired
    with pytest.raises(SessionExpiredError):
        report.refresh(admin_session)

    server.call = original
    view = report.update_filters(admin_session, term="")
    assert view.resellers[0].name == "Ana"


def test_superseded_fetch_never_overwrites_newer_results(make_sale, admin_session):
    january_started = threading.Event()
    release_january = threading.Event()

    class SlowJanuaryServer(FakeReportServer):
        def call(self, function, payload=None, session=None):
            if function == "get-admin-reports" and payload["month"] == 1:
                january_started.set()
                release_january.wait(timeout=5)
            return super().call(function, payload, session)

    server = SlowJanuaryServer(
        {
            "Ana": [make_sale("a1", 2, 20.0, "2025-01-03T15:00:00Z")],
            "Bruno": [make_sale("b1", 10, 100.0, "2025-03-10T15:00:00Z")],
        }
    )
    report = AdminReportSession(client_factory=lambda: server, today=date(2025, 1, 20))

    outcome = {}
    worker = threading.Thread(target=lambda: outcome.setdefault("view", report.refresh(admin_session)))
    worker.start()
    assert january_started.wait(timeout=5)

    march = report.update_filters(admin_session, start=date(2025, 3, 1), end=date(2025, 3, 31))
    release_january.set()
    worker.join(timeout=5)

    assert [row.name for row in march.resellers] == ["Bruno"]
    assert report.current_view(admin_session) is march
    assert "Ana" not in report.merged
    assert outcome["view"] is march
    assert report.generation == 2


def test_payload_pages_each_reseller_independently(make_sale, admin_session):
    sales = [make_sale(f"s{i}", 1, 1.0, f"2025-01-{i + 1:02d}T15:00:00Z") for i in range(12)]
    server = FakeReportServer({"Ana": sales, "Carla": [make_sale("c1", 1, 1.0, "2025-01-02T15:00:00Z")]})
    report = AdminReportSession(client_factory=lambda: server, today=date(2025, 1, 20))
    view = report.current_view(admin_session)

    report.pages.set_page_size("ana", 5)
    report.pages.set_page("ana", 2)
    payload = report.to_payload(view)

    ana, carla = payload["resellers"]
    assert ana["pagination"]["count"] == 12
    assert ana["pagination"]["page"] == 2
    assert len(ana["pagination"]["rows"]) == 2
    assert carla["pagination"]["page"] == 0
    assert carla["pagination"]["page_size"] == 10
    assert "salesDetails" not in ana
    assert payload["pageSizeOptions"] == [5, 10, 25]


def test_registry_keeps_one_report_per_user(admin_session, reseller_session):
    first = report_session.get_report_session(admin_session)
    assert report_session.get_report_session(admin_session) is first
    assert report_session.get_report_session(reseller_session) is not first

    report_session.discard_report_session(admin_session)
    assert report_session.get_report_session(admin_session) is not first


def test_date_change_while_first_load_is_in_flight_fetches_again(make_sale, admin_session):
    first_started = threading.Event()
    release_first = threading.Event()

    class SlowFirstFetchServer(FakeReportServer):
        def call(self, function, payload=None, session=None):
            if function == "get-admin-reports" and not first_started.is_set():
                first_started.set()
                release_first.wait(timeout=5)
            return super().call(function, payload, session)

    server = SlowFirstFetchServer(
        {
            "Ana": [
                make_sale("a1", 2, 20.0, "2025-01-03T15:00:00Z"),
                make_sale("a2", 3, 30.0, "2025-01-15T15:00:00Z"),
            ]
        }
    )
    report = AdminReportSession(client_factory=lambda: server, today=date(2025, 1, 20))

    worker = threading.Thread(target=report.refresh, args=(admin_session,))
    worker.start()
    assert first_started.wait(timeout=5)

    narrowed = report.update_filters(admin_session, start=date(2025, 1, 10))
    release_first.set()
    worker.join(timeout=5)

    assert [row.name for row in narrowed.resellers] == ["Ana"]
    assert [s["objectId"] for s in narrowed.resellers[0].sales_details] == ["a2"]
    assert server.fetch_count() == 2
    assert report.current_view(admin_session) is narrowed


def test_cache_refilter_supersedes_fetch_for_other_months(make_sale, admin_session):
    feb_started = threading.Event()
    release_feb = threading.Event()

    class SlowFebruaryServer(FakeReportServer):
        def call(self, function, payload=None, session=None):
            if function == "get-admin-reports" and payload["month"] == 2:
                feb_started.set()
                release_feb.wait(timeout=5)
            return super().call(function, payload, session)

    server = SlowFebruaryServer(
        {
            "Ana": [make_sale("a1", 2, 20.0, "2025-01-03T15:00:00Z")],
            "Bruno": [make_sale("b1", 10, 100.0, "2025-02-10T15:00:00Z")],
        }
    )
    report = AdminReportSession(client_factory=lambda: server, today=date(2025, 1, 20))
    report.current_view(admin_session)

    worker = threading.Thread(
        target=report.update_filters, args=(admin_session,), kwargs={"end": date(2025, 2, 28)}
    )
    worker.start()
    assert feb_started.wait(timeout=5)

    back = report.update_filters(admin_session, end=date(2025, 1, 31))
    release_feb.set()
    worker.join(timeout=5)

    assert [row.name for row in back.resellers] == ["Ana"]
    assert report.current_view(admin_session) is back
    assert "Bruno" not in report.merged


def test_failed_cancel_keeps_state_and_does_not_refetch(server, admin_session):
    report = _report(server)
    view = report.current_view(admin_session)
    original = server.call

    def failing(function, payload=None, session=None):
        if function in ("cancel-sale", "undo-cancel-sale"):
            server.calls.append((function, payload))
            raise ParseApiError("sale is locked", function=function, status_code=400)
        return original(function, payload, session)

    server.call = failing
    with pytest.raises(ParseApiError):
        report.cancel_sale(admin_session, "a2", "typo")
    with pytest.raises(ParseApiError):
        report.undo_cancel_sale(admin_session, "a2")

    assert report.current_view(admin_session) is view
    assert server.fetch_count() == 1
    assert view.resellers[0].total_sales == 5
    assert not any(s["isCancelled"] for s in server.sales["Ana"])
