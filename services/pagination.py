from __future__ import annotations

from dataclasses import dataclass, replace
from threading import Lock
from typing import Any, Dict, List, Sequence

from config import DEFAULT_PAGE_SIZE, PAGE_SIZE_OPTIONS


@dataclass(frozen=True)
class PageState:
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return self.page * self.page_size


class PaginationRegistry:
    """
    Independent (page, page_size) per entity id.

    Entries are created with the defaults on first access and only change via
    set_page / set_page_size; reset() drops them all (full remount).
    """

    def __init__(self, default_page_size: int = DEFAULT_PAGE_SIZE, page_size_options: Sequence[int] = PAGE_SIZE_OPTIONS):
        self.default_page_size = default_page_size
        self.page_size_options = list(page_size_options)
        self._states: Dict[str, PageState] = {}
        self._lock = Lock()

    def get(self, entity_id: str) -> PageState:
        with self._lock:
            state = self._states.get(entity_id)
            if state is None:
                state = PageState(page=0, page_size=self.default_page_size)
                self._states[entity_id] = state
            return state

    def set_page(self, entity_id: str, page: int) -> PageState:
        current = self.get(entity_id)
        with self._lock:
            state = replace(current, page=max(0, int(page)))
            self._states[entity_id] = state
            return state

    def set_page_size(self, entity_id: str, page_size: int) -> PageState:
        page_size = int(page_size)
        if page_size not in self.page_size_options:
            raise ValueError(f"page size must be one of {self.page_size_options}, got {page_size}")
        with self._lock:
            state = PageState(page=0, page_size=page_size)
            self._states[entity_id] = state
            return state

    def reset(self) -> None:
        with self._lock:
            self._states.clear()

    def snapshot(self) -> Dict[str, PageState]:
        with self._lock:
            return dict(self._states)


def paginate(items: Sequence[Any], state: PageState) -> Dict[str, Any]:
    """One page of ``items``; ``count`` is the full length, not the slice."""
    rows: List[Any] = list(items[state.offset : state.offset + state.page_size])
    return {
        "page": state.page,
        "page_size": state.page_size,
        "count": len(items),
        "rows": rows,
    }
