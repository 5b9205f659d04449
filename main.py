# =============================================
#  RESELLER DASHBOARD - BACKEND ENTRYPOINT
# =============================================

import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import APP_DB_PATH, APP_NAME, APP_VERSION, LOG_LEVEL
from routes import (
    register_product_routes,
    register_report_routes,
    register_reseller_routes,
    register_sales_routes,
    register_session_routes,
)
from services.db import ensure_app_kv_table
from services.perf import get_recent_timings

# --- Logging configuration ---
LOG_DIR = Path(__file__).parent / "logs"
LOG_DIR.mkdir(exist_ok=True)

LOG_FILE_PATH = LOG_DIR / "dashboard.log"

root_logger = logging.getLogger()
logger = logging.getLogger("dashboard")
if not root_logger.handlers:
    root_logger.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        LOG_FILE_PATH,
        maxBytes=5_000_000,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

logging.getLogger("uvicorn").propagate = True
logging.getLogger("uvicorn.error").propagate = True
logging.getLogger("uvicorn.access").propagate = True
# --- End logging configuration ---

app = FastAPI(title=APP_NAME, version=APP_VERSION)

register_session_routes(app)
register_sales_routes(app)
register_product_routes(app)
register_report_routes(app)
register_reseller_routes(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    """The persisted session lives in app_kv_store; create it before the first login."""
    try:
        ensure_app_kv_table()
        logger.info("[Startup] app_kv_store ready at %s", APP_DB_PATH)
    except Exception as exc:
        logger.warning("[Startup] Failed to ensure app_kv_store: %s", exc)


@app.get("/api/ping")
def ping() -> JSONResponse:
    ts = datetime.now(timezone.utc).isoformat()
    logger.info("[PING] ping called")
    return JSONResponse({"ok": True, "ts": ts})


@app.get("/api/perf-stats")
def perf_stats(prefix: str = Query("", description="Label prefix, e.g. reports.")) -> dict:
    """Return the last few timing blocks (report pipeline runs, refreshes)."""
    return {"ok": True, "timing_last": get_recent_timings(prefix or None)}


if __name__ == "__main__":
    uvicorn.run("main:app", host="127.0.0.1", port=8001, reload=True)
