import pytest

from services.pagination import PageState, PaginationRegistry, paginate


def test_entities_start_at_defaults_and_are_independent():
    pages = PaginationRegistry(default_page_size=10, page_size_options=[5, 10, 25])
    pages.set_page("ana", 3)

    assert pages.get("ana") == PageState(page=3, page_size=10)
    assert pages.get("bruno") == PageState(page=0, page_size=10)


def test_page_size_change_resets_page():
    pages = PaginationRegistry(page_size_options=[5, 10, 25])
    pages.set_page("ana", 4)
    assert pages.set_page_size("ana", 25) == PageState(page=0, page_size=25)


def test_invalid_page_size_is_rejected():
    pages = PaginationRegistry(page_size_options=[5, 10, 25])
    with pytest.raises(ValueError):
        pages.set_page_size("ana", 7)


def test_negative_page_clamps_to_zero():
    pages = PaginationRegistry()
    assert pages.set_page("ana", -2).page == 0


def test_reset_drops_all_entries():
    pages = PaginationRegistry()
    pages.set_page("ana", 1)
    pages.reset()
    assert pages.snapshot() == {}


def test_paginate_slices_and_reports_full_count():
    page = paginate(list(range(12)), PageState(page=2, page_size=5))
    assert page == {"page": 2, "page_size": 5, "count": 12, "rows": [10, 11]}
    assert paginate([], PageState())["rows"] == []
