"""
Thin async client for the Blyss REST backend.

Wraps ``httpx.AsyncClient`` with bearer-token handling and the backend's
``{success, data, message}`` envelope. Every failure is raised as a
``GatewayError`` subclass so gateways can translate it into a result.
"""

import logging
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from blyss_booking.config import settings
from blyss_booking.schemas.booking_schema import ApiResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Une erreur est survenue"
CONNECTION_ERROR_MESSAGE = "Erreur de connexion au serveur"
INVALID_RESPONSE_MESSAGE = "Réponse invalide du serveur"

TokenProvider = Callable[[], Optional[str]]


class GatewayError(Exception):
    """Base class for every failure talking to the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(GatewayError):
    """Network failure, timeout, or a response that could not be read."""


class UnauthenticatedError(GatewayError):
    """No bearer token available, or the backend answered 401."""


class ApiRequestError(GatewayError):
    """The backend understood the request and refused it."""


def _static_token(token: Optional[str]) -> TokenProvider:
    return lambda: token


class ApiClient:
    """
    Backend client shared by all gateways.

    Args:
        base_url: API root, e.g. ``https://api.blyssapp.fr/api``.
        token_provider: Callable returning the current bearer token, or None.
        timeout: Seconds before a request counts as a transport failure.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token_provider = token_provider or _static_token(settings.api.auth_token)
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api.base_url,
            timeout=httpx.Timeout(timeout or settings.api.timeout_sec),
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, *, auth: bool = False) -> Any:
        return await self._request("GET", path, auth=auth)

    async def post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        auth: bool = True,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        return await self._request("POST", path, auth=auth, json=payload, headers=headers)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        auth: bool,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        token = self._token_provider()
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        elif auth:
            raise UnauthenticatedError("Missing bearer token")

        try:
            response = await self._client.request(
                method, path, json=json, headers=request_headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise TransportError(CONNECTION_ERROR_MESSAGE) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(CONNECTION_ERROR_MESSAGE) from exc

        return self._unwrap(method, path, response)

    def _unwrap(self, method: str, path: str, response: httpx.Response) -> Any:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None

        if status == 401:
            raise UnauthenticatedError(_server_message(body) or "Unauthorized", status)

        if not response.is_success:
            if body is None:
                logger.warning("%s %s returned %d without a readable body", method, path, status)
                raise TransportError(CONNECTION_ERROR_MESSAGE, status)
            message = _server_message(body) or GENERIC_ERROR_MESSAGE
            logger.debug("%s %s rejected (%d): %s", method, path, status, message)
            raise ApiRequestError(message, status)

        if body is None:
            raise TransportError(CONNECTION_ERROR_MESSAGE, status)
        if not isinstance(body, dict):
            return body

        try:
            envelope = ApiResponse.model_validate(body)
        except ValidationError as exc:
            logger.warning("%s %s returned a malformed envelope", method, path)
            raise TransportError(INVALID_RESPONSE_MESSAGE, status) from exc
        if not envelope.success:
            raise ApiRequestError(_server_message(body) or GENERIC_ERROR_MESSAGE, status)
        return envelope.data if envelope.data is not None else body


def _server_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None
