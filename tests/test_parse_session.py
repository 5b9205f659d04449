import pytest
from fastapi import HTTPException

from auth import parse_session
from services import db
from services.parse_functions import ParseApiError


@pytest.fixture(autouse=True)
def _tmp_db(monkeypatch, tmp_path):
    monkeypatch.setattr(db, "APP_DB_PATH", tmp_path / "app.db")


class _AuthClient:
    def __init__(self, login_body=None, logout_error=None):
        self.login_body = login_body or {}
        self.logout_error = logout_error
        self.logged_out = []

    def login(self, username, password):
        return self.login_body

    def logout(self, session):
        self.logged_out.append(session.token)
        if self.logout_error:
            raise self.logout_error


def test_without_stored_session_load_returns_no_session():
    result = parse_session.load_session()
    assert isinstance(result, parse_session.NoSession)
    assert result.token is None
    assert result.reason == parse_session.SESSION_EXPIRED_MESSAGE


def test_login_persists_session():
    client = _AuthClient({"objectId": "u1", "sessionToken": "r:tok", "fullname": "Ana Souza", "role": "admin"})
    session = parse_session.login("ana@example.com", "pw", client=client)

    loaded = parse_session.load_session()
    assert loaded == session
    assert loaded.is_admin


def test_login_without_token_is_an_error():
    with pytest.raises(ParseApiError):
        parse_session.login("ana", "pw", client=_AuthClient({"objectId": "u1"}))
    assert isinstance(parse_session.load_session(), parse_session.NoSession)


def test_logout_clears_storage_even_when_remote_fails():
    parse_session.save_session(parse_session.SessionContext(token="r:tok", user_id="u1"))
    client = _AuthClient(logout_error=ParseApiError("offline"))

    parse_session.logout(parse_session.load_session(), client=client)

    assert client.logged_out == ["r:tok"]
    assert isinstance(parse_session.load_session(), parse_session.NoSession)


def test_corrupt_stored_session_is_ignored():
    parse_session.ensure_app_kv_table()
    with db.get_db_connection() as conn:
        db.set_app_kv(conn, parse_session.SESSION_KV_KEY, "{not json")
    assert isinstance(parse_session.load_session(), parse_session.NoSession)


def test_require_session_raises_401_without_session():
    with pytest.raises(HTTPException) as info:
        parse_session.require_session()
    assert info.value.status_code == 401


def test_require_admin_rejects_other_roles():
    reseller = parse_session.SessionContext(token="r:tok", role="reseller")
    with pytest.raises(HTTPException) as info:
        parse_session.require_admin(reseller)
    assert info.value.status_code == 403
    admin = parse_session.SessionContext(token="r:tok", role="Admin")
    assert parse_session.require_admin(admin) is admin


def test_require_admin_leaves_roleless_sessions_to_the_server():
    roleless = parse_session.SessionContext(token="r:tok", role="")
    assert parse_session.require_admin(roleless) is roleless


def test_session_row_is_upserted_and_removed():
    db.ensure_app_kv_table()
    with db.get_db_connection() as conn:
        db.set_app_kv(conn, "session", '{"token": "r:one"}')
        db.set_app_kv(conn, "session", '{"token": "r:two"}')
        assert db.get_app_kv(conn, "session") == '{"token": "r:two"}'
        db.delete_app_kv(conn, "session")
        assert db.get_app_kv(conn, "session") is None
