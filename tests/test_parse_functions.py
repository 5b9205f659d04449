import pytest
import requests

from auth.parse_session import NoSession, SessionContext
from services.parse_functions import ParseApiError, ParseFunctionsClient, SessionExpiredError, result_list


class _Resp:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _Http:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _client(http):
    return ParseFunctionsClient(base_url="https://parse.example/parse/", app_id="app", rest_key="rest", timeout=7, http=http)


def test_call_posts_to_function_with_session_headers():
    http = _Http(_Resp(200, {"result": [{"objectId": "p1"}]}))
    session = SessionContext(token="r:abc", user_id="u1")

    result = _client(http).call("list-active-products", {"a": 1}, session)

    assert result == [{"objectId": "p1"}]
    post = http.posts[0]
    assert post["url"] == "https://parse.example/parse/functions/list-active-products"
    assert post["json"] == {"a": 1}
    assert post["timeout"] == 7
    assert post["headers"]["X-Parse-Application-Id"] == "app"
    assert post["headers"]["X-Parse-REST-API-Key"] == "rest"
    assert post["headers"]["X-Parse-Session-Token"] == "r:abc"


def test_anonymous_call_sends_no_session_header():
    http = _Http(_Resp(200, {"result": {"objectId": "u9"}}))
    _client(http).call("signup", {"email": "x@y"})
    assert "X-Parse-Session-Token" not in http.posts[0]["headers"]


def test_no_session_is_refused_before_any_request():
    http = _Http(_Resp(200, {"result": []}))
    with pytest.raises(SessionExpiredError):
        _client(http).call("get-current-stock", {}, NoSession())
    assert http.posts == []


def test_invalid_session_token_maps_to_session_expired():
    http = _Http(_Resp(400, {"code": 209, "error": "Invalid session token"}))
    with pytest.raises(SessionExpiredError) as info:
        _client(http).call("get-admin-reports", {"month": 1, "year": 2025}, SessionContext(token="r:old"))
    assert info.value.code == 209
    assert info.value.function == "get-admin-reports"


def test_server_error_raises_parse_api_error():
    http = _Http(_Resp(500, None, text="upstream exploded"))
    with pytest.raises(ParseApiError) as info:
        _client(http).call("add-sale", {}, SessionContext(token="r:abc"))
    assert not isinstance(info.value, SessionExpiredError)
    assert info.value.status_code == 500
    assert "upstream exploded" in info.value.message


def test_transport_error_is_wrapped():
    http = _Http(error=requests.ConnectionError("refused"))
    with pytest.raises(ParseApiError):
        _client(http).call("add-sale", {}, SessionContext(token="r:abc"))


def test_login_requests_revocable_session():
    http = _Http(_Resp(200, {"objectId": "u1", "sessionToken": "r:new"}))
    body = _client(http).login("ana", "secret")
    assert body["sessionToken"] == "r:new"
    assert http.posts[0]["url"].endswith("/login")
    assert http.posts[0]["headers"]["X-Parse-Revocable-Session"] == "1"


def test_result_list_coerces_shapes():
    assert result_list(None) == []
    assert result_list({"salesDetails": [1, 2]}, key="salesDetails") == [1, 2]
    assert result_list({"other": 1}, key="salesDetails") == []
