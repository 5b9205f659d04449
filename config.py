import logging
import os
from pathlib import Path

# Load .env early so os.getenv picks up local dev secrets.
try:  # pragma: no cover - environment bootstrap
    from dotenv import load_dotenv

    _DOTENV_PATHS = [Path.cwd() / ".env", Path(__file__).resolve().parent / ".env"]
    for _env_path in _DOTENV_PATHS:
        if _env_path.exists():
            load_dotenv(dotenv_path=_env_path, override=False)
except Exception as exc:
    logging.getLogger(__name__).warning("Failed to load .env: %s", exc)

APP_NAME = "Reseller Dashboard"
APP_VERSION = "1.0.0"

# ----------------------------
# Helpers
# ----------------------------
def _req(name: str) -> str:
    v = os.getenv(name)
    if not v:
        raise RuntimeError(f"Missing required env var: {name}")
    return v

def _csv_list(name: str, default: str = "") -> list[str]:
    raw = (os.getenv(name) or default).strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]

def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default

# ----------------------------
# Parse server (BaaS)
# ----------------------------
PARSE_SERVER_URL = (os.getenv("PARSE_SERVER_URL") or "http://localhost:1337/parse").rstrip("/")
PARSE_TIMEOUT_SECONDS = _int_env("PARSE_TIMEOUT_SECONDS", 30)


def parse_credentials() -> tuple[str, str]:
    """Application id and REST key; checked lazily so tests can import config without them."""
    return _req("PARSE_APPLICATION_ID"), _req("PARSE_REST_API_KEY")

# ----------------------------
# Reports
# ----------------------------
# Sale timestamps come back in UTC; day-window comparisons happen in this zone.
REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "America/Sao_Paulo")
REPORT_MAX_CONCURRENCY = max(1, _int_env("REPORT_MAX_CONCURRENCY", 6))

DEFAULT_PAGE_SIZE = _int_env("DEFAULT_PAGE_SIZE", 10)
PAGE_SIZE_OPTIONS = [int(x) for x in _csv_list("PAGE_SIZE_OPTIONS", "5,10,25") if x.isdigit()] or [5, 10, 25]
if DEFAULT_PAGE_SIZE not in PAGE_SIZE_OPTIONS:
    PAGE_SIZE_OPTIONS = sorted(set(PAGE_SIZE_OPTIONS) | {DEFAULT_PAGE_SIZE})

# ----------------------------
# Local storage / logging
# ----------------------------
APP_DB_PATH = Path(os.getenv("APP_DB_PATH") or Path(__file__).resolve().parent / "app.db")
LOG_LEVEL = os.getenv("DASHBOARD_LOG_LEVEL", "INFO").upper()
