"""Wall-clock timings of report fetches, kept in memory for /api/perf-stats."""

import logging
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_recent_timings: deque[Dict[str, Any]] = deque(maxlen=50)


def record_timing(label: str, duration_ms: float, ok: bool = True, **context: Any) -> None:
    _recent_timings.append(
        {
            "label": label,
            "duration_ms": round(duration_ms, 2),
            "ok": ok,
            "at": datetime.now(timezone.utc).isoformat(),
            **context,
        }
    )


def get_recent_timings(prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    """Newest last; ``prefix`` narrows to one family of labels (e.g. ``reports.``)."""
    timings = list(_recent_timings)
    if prefix:
        timings = [t for t in timings if t["label"].startswith(prefix)]
    return timings


@contextmanager
def time_block(label: str, **context: Any):
    """Time the block; a block that raised is still recorded, with ok=False."""
    start = perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        duration_ms = (perf_counter() - start) * 1000.0
        record_timing(label, duration_ms, ok=ok, **context)
        logger.debug("[perf] %s took %.2fms ok=%s %s", label, duration_ms, ok, context or "")
