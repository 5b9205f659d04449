"""Login / logout and the persisted session."""

import logging

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel, Field

from auth import parse_session
from services.parse_functions import ParseApiError
from services.report_session import discard_report_session

router = APIRouter(prefix="/api/session")
logger = logging.getLogger(__name__)


class LoginPayload(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _session_body(session: parse_session.SessionContext) -> dict:
    return {
        "user_id": session.user_id,
        "fullname": session.fullname,
        "role": session.role,
        "is_admin": session.is_admin,
    }


@router.get("")
def read_session() -> dict:
    session = parse_session.load_session()
    if isinstance(session, parse_session.NoSession):
        return {"ok": True, "authenticated": False, "reason": session.reason}
    return {"ok": True, "authenticated": True, "session": _session_body(session)}


@router.post("/login")
def login(payload: LoginPayload) -> dict:
    try:
        session = parse_session.login(payload.username, payload.password)
    except ParseApiError as exc:
        logger.warning("[session] login failed for %s: %s", payload.username, exc)
        raise HTTPException(status_code=401, detail="Invalid username or password.") from exc
    return {"ok": True, "session": _session_body(session)}


@router.post("/logout")
def logout() -> dict:
    session = parse_session.load_session()
    discard_report_session(session)
    parse_session.logout(session)
    return {"ok": True}


def register_session_routes(app: FastAPI) -> None:
    app.include_router(router)
