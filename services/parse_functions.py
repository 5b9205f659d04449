import logging
from typing import Any, Dict, List, Optional

import requests

from config import PARSE_SERVER_URL, PARSE_TIMEOUT_SECONDS, parse_credentials

logger = logging.getLogger("parse_functions")

# Parse error code for an invalid or revoked session token.
INVALID_SESSION_TOKEN = 209


class ParseApiError(RuntimeError):
    """Raised when a Parse request fails (transport error or non-2xx)."""

    def __init__(
        self,
        message: str,
        function: Optional[str] = None,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.function = function
        self.status_code = status_code
        self.code = code


class SessionExpiredError(ParseApiError):
    """Raised when there is no usable session token for an authenticated call."""


def result_list(value: Any, key: Optional[str] = None) -> List[Any]:
    """Coerce a cloud-function result into a list, optionally unwrapping ``key``."""
    if key is not None:
        value = value.get(key) if isinstance(value, dict) else None
    return list(value) if isinstance(value, list) else []


def result_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _error_details(resp: requests.Response) -> tuple[Optional[int], str]:
    try:
        payload = resp.json()
    except ValueError:
        return None, resp.text
    if isinstance(payload, dict):
        return payload.get("code"), str(payload.get("error") or payload)
    return None, str(payload)


class ParseFunctionsClient:
    """Thin wrapper over the Parse REST API: cloud functions plus login/logout."""

    def __init__(
        self,
        base_url: str = PARSE_SERVER_URL,
        app_id: Optional[str] = None,
        rest_key: Optional[str] = None,
        timeout: int = PARSE_TIMEOUT_SECONDS,
        http: Any = None,
    ):
        if app_id is None or rest_key is None:
            app_id, rest_key = parse_credentials()
        self.base_url = base_url.rstrip("/")
        self.app_id = app_id
        self.rest_key = rest_key
        self.timeout = timeout
        self.http = http or requests

    def headers(self, session: Any = None) -> Dict[str, str]:
        headers = {
            "X-Parse-Application-Id": self.app_id,
            "X-Parse-REST-API-Key": self.rest_key,
            "Content-Type": "application/json",
        }
        token = getattr(session, "token", None)
        if token:
            headers["X-Parse-Session-Token"] = token
        return headers

    def _post(self, path: str, body: Dict[str, Any], headers: Dict[str, str], label: str) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.http.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("[parse] %s request failed: %s", label, exc)
            raise ParseApiError(f"{label} request failed: {exc}", function=label) from exc

        if resp.status_code >= 300:
            code, message = _error_details(resp)
            logger.error("[parse] %s failed %s (code=%s): %s", label, resp.status_code, code, message)
            if code == INVALID_SESSION_TOKEN:
                raise SessionExpiredError(message, function=label, status_code=resp.status_code, code=code)
            raise ParseApiError(message, function=label, status_code=resp.status_code, code=code)

        try:
            return resp.json()
        except ValueError:
            logger.warning("[parse] %s returned a non-JSON body; treating as empty", label)
            return {}

    def call(self, function: str, payload: Optional[Dict[str, Any]] = None, session: Any = None) -> Any:
        """
        Invoke ``/functions/<function>`` and return its ``result``.

        ``session`` is a SessionContext for authenticated calls, None for
        anonymous ones (signup). A session object without a token (NoSession)
        is refused before any request is sent.
        """
        if session is not None and not getattr(session, "token", None):
            raise SessionExpiredError("Session expired. Please log in again.", function=function)

        body = self._post(f"functions/{function}", payload or {}, self.headers(session), function)
        if isinstance(body, dict) and "result" in body:
            return body["result"]
        return body

    def login(self, username: str, password: str) -> Dict[str, Any]:
        headers = self.headers()
        headers["X-Parse-Revocable-Session"] = "1"
        body = self._post("login", {"username": username, "password": password}, headers, "login")
        return result_dict(body)

    def logout(self, session: Any) -> None:
        self._post("logout", {}, self.headers(session), "logout")


_client: Optional[ParseFunctionsClient] = None


def get_parse_client() -> ParseFunctionsClient:
    global _client
    if _client is None:
        _client = ParseFunctionsClient()
    return _client
