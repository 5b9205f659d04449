# ================================================================
#  PARSE SESSION MODULE
#  ---------------------------------------------------------------
#  - Session context passed explicitly to every remote call
#  - Typed NoSession result instead of a nullable token
#  - Local persistence in the SQLite app_kv_store
# ================================================================
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Optional, Union

from fastapi import Depends, HTTPException

from services.db import delete_app_kv, ensure_app_kv_table, get_app_kv, get_db_connection, set_app_kv
from services.parse_functions import ParseApiError, ParseFunctionsClient, get_parse_client

logger = logging.getLogger("parse_session")

SESSION_KV_KEY = "session"
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in again."
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class SessionContext:
    token: str
    user_id: str = ""
    fullname: str = ""
    role: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == ADMIN_ROLE


@dataclass(frozen=True)
class NoSession:
    reason: str = SESSION_EXPIRED_MESSAGE

    @property
    def token(self) -> None:
        return None


SessionResult = Union[SessionContext, NoSession]


def load_session() -> SessionResult:
    ensure_app_kv_table()
    with get_db_connection() as conn:
        raw = get_app_kv(conn, SESSION_KV_KEY)
    if not raw:
        return NoSession()
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("[session] stored session is not valid JSON; ignoring it")
        return NoSession()
    token = (data.get("token") or "").strip() if isinstance(data, dict) else ""
    if not token:
        return NoSession()
    return SessionContext(
        token=token,
        user_id=data.get("user_id") or "",
        fullname=data.get("fullname") or "",
        role=data.get("role") or "",
    )


def save_session(session: SessionContext) -> None:
    ensure_app_kv_table()
    with get_db_connection() as conn:
        set_app_kv(conn, SESSION_KV_KEY, json.dumps(asdict(session)))
    logger.info("[session] stored session for user=%s role=%s", session.user_id, session.role or "-")


def clear_session() -> None:
    ensure_app_kv_table()
    with get_db_connection() as conn:
        delete_app_kv(conn, SESSION_KV_KEY)


def login(username: str, password: str, client: Optional[ParseFunctionsClient] = None) -> SessionContext:
    client = client or get_parse_client()
    payload = client.login(username, password)
    token = payload.get("sessionToken")
    if not token:
        raise ParseApiError("Login response did not include a session token", function="login")
    session = SessionContext(
        token=token,
        user_id=payload.get("objectId") or "",
        fullname=payload.get("fullname") or payload.get("username") or "",
        role=payload.get("role") or "",
    )
    save_session(session)
    return session


def logout(session: SessionResult, client: Optional[ParseFunctionsClient] = None) -> None:
    """Revoke the token remotely when possible; local storage is always cleared."""
    try:
        if isinstance(session, SessionContext):
            (client or get_parse_client()).logout(session)
    except ParseApiError as exc:
        logger.warning("[session] remote logout failed: %s", exc)
    finally:
        clear_session()


def require_session() -> SessionContext:
    """FastAPI dependency: the persisted session, or 401 when there is none."""
    session = load_session()
    if isinstance(session, NoSession):
        raise HTTPException(status_code=401, detail=session.reason)
    return session


def require_admin(session: SessionContext = Depends(require_session)) -> SessionContext:
    """
    Blocks sessions whose role is known and is not admin. Parse logins that
    carry no role pass through; the cloud functions enforce the real access
    rules and answer non-admins with an error the routes map to 502.
    """
    if session.role and not session.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required.")
    return session
