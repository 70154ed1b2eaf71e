"""HTTP client for the Tasko API.

Every request carries the stored bearer token when there is one. Failure
responses are turned into a single ApiError with a readable message.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from tasko.storage import SessionStore

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Request failed"
NETWORK_ERROR_MESSAGE = "Network connection failed, please check your network settings"

# Used when the server does not send a message of its own
STATUS_MESSAGES = {
    401: "Your session has expired, please log in again",
    403: "You do not have permission to access this resource",
    404: "The requested resource does not exist",
    422: "Request validation failed",
    500: "Internal server error, please try again later",
}


class ApiError(RuntimeError):
    """A failed API call."""

    def __init__(self, message: str, status: int = 0, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, message={self.message!r})"


def error_from_response(response: httpx.Response) -> ApiError:
    """
    Build an ApiError from a failure response.

    The body is parsed best-effort: a JSON object with a 'message' field gives
    the message, anything else falls back to a message for the status code.
    """
    message = None
    errors = None
    try:
        data = response.json()
    except (ValueError, UnicodeDecodeError):
        data = None

    if isinstance(data, dict):
        if isinstance(data.get("message"), str) and data["message"]:
            message = data["message"]
        elif isinstance(data.get("message"), list) and data["message"]:
            # Validation pipes report one message per failed constraint
            message = "; ".join(str(m) for m in data["message"])
        if isinstance(data.get("errors"), dict):
            errors = data["errors"]

    if not message:
        message = STATUS_MESSAGES.get(response.status_code, GENERIC_ERROR_MESSAGE)
    return ApiError(message, status=response.status_code, errors=errors)


def unwrap(data: Any) -> Any:
    """Strip the server's {code, message, data, timestamp} envelope if present."""
    if isinstance(data, dict) and "code" in data and "data" in data:
        return data["data"]
    return data


class ApiClient:
    """
    One-shot async requests against the API: no retry, no cache, no timeout.

    Args:
        base_url: API root, e.g. http://localhost:4000/api
        store: Session store to read the token from; None when no storage is available
        on_unauthorized: Coroutine called when a request that carried a token gets a 401
        transport: Optional httpx transport (tests pass an httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        store: Optional[SessionStore] = None,
        on_unauthorized: Optional[Callable[[], Awaitable[None]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.on_unauthorized = on_unauthorized
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                transport=self._transport,
                timeout=None,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _auth_headers(self) -> Dict[str, str]:
        if self.store is None:
            return {}
        token = await self.store.get_token()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send one request and return the decoded response body.

        Raises:
            ApiError: On a failure status, an unreadable success body or a network error
        """
        headers = await self._auth_headers()
        has_token = "Authorization" in headers
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug(
            "[API Request] %s %s%s (token: %s)",
            method.upper(), self.base_url, path, "Bearer ***" if has_token else "not set",
        )

        try:
            response = await self._get_client().request(method, path, json=json, params=params or None, headers=headers)
        except httpx.TransportError as e:
            logger.info("[Network Error] %s %s%s: %s", method.upper(), self.base_url, path, e)
            raise ApiError(NETWORK_ERROR_MESSAGE, status=0) from e

        if response.is_error:
            error = error_from_response(response)
            logger.info("[API Error] %s %s: %s", response.status_code, path, error.message)
            if response.status_code == 401 and has_token and self.on_unauthorized is not None:
                # The stored token is no longer accepted
                await self.on_unauthorized()
            raise error

        if not response.content:
            return None
        try:
            data = response.json()
        except (ValueError, UnicodeDecodeError) as e:
            raise ApiError("The server returned an invalid response", status=response.status_code) from e

        logger.debug("[API Response] %s %s %s", method.upper(), path, response.status_code)
        return unwrap(data)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
