"""Shared HTTP client for the Grand Central API."""

import logging
from typing import Any, Optional, Union

import httpx

from .auth import AuthManager
from .config import Settings
from .errors import ApiError, BusinessError, TransportError, ValidationError, error_message
from .models import Envelope

logger = logging.getLogger(__name__)

# Endpoints called before a token exists; they never carry the bearer header.
PUBLIC_PATHS = (
    "/employee/register",
    "/employee/send-otp",
    "/employee/verify-otp",
    "/employers",
)


class ApiClient:
    """
    One ``httpx.AsyncClient`` shared by every endpoint.

    Request hooks attach the headers every call needs (the token travels in a
    custom ``bearer`` header, not ``Authorization``) and log the call; response
    hooks log the status and drop the session on 401.
    """

    def __init__(
        self,
        settings: Settings,
        auth_manager: AuthManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            settings: Client settings (base URL, prefix, timeout)
            auth_manager: Source of the token and language
            transport: Optional transport override, used by tests
        """
        self.settings = settings
        self.auth_manager = auth_manager
        self.client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            follow_redirects=True,
            transport=transport,
            headers={
                "User-Agent": "grandcentral-mcp-server/0.1.0",
                "Accept": "application/json",
            },
            event_hooks={
                "request": [self._attach_headers, self._log_request],
                "response": [self._log_response, self._handle_unauthorized],
            },
        )

    def _is_public(self, path: str) -> bool:
        return any(path.endswith(public) for public in PUBLIC_PATHS)

    async def _attach_headers(self, request: httpx.Request) -> None:
        request.headers["Accept"] = "application/json"
        request.headers["Accept-Language"] = self.auth_manager.language
        token = self.auth_manager.get_token()
        if token and not self._is_public(request.url.path):
            request.headers["bearer"] = token

    async def _log_request(self, request: httpx.Request) -> None:
        has_token = "bearer" in request.headers
        logger.info(f"API request: {request.method} {request.url} (bearer={'yes' if has_token else 'no'})")

    async def _log_response(self, response: httpx.Response) -> None:
        request = response.request
        logger.info(f"API response: {request.method} {request.url.path} status={response.status_code}")

    async def _handle_unauthorized(self, response: httpx.Response) -> None:
        if response.status_code == 401 and self.auth_manager.get_token():
            logger.warning("Received 401, clearing stored session")
            self.auth_manager.clear_session()

    def _to_error(self, payload: dict[str, Any], status_code: int) -> ApiError:
        message = error_message(payload)
        if isinstance(payload.get("errors"), dict) or isinstance(payload.get("error"), dict):
            return ValidationError(message, payload, status_code)
        if payload.get("success") is False or 400 <= status_code < 500:
            return BusinessError(message, payload, status_code)
        return ApiError(message, payload, status_code)

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        envelope: bool = True,
    ) -> Union[Envelope, dict[str, Any]]:
        """
        Send a request under the API prefix and normalise the outcome.

        Args:
            method: HTTP method
            path: Path below the API prefix, e.g. ``/employee/cart/get``
            json: JSON body
            data: Form-encoded body
            params: Query string parameters
            envelope: Parse the body as the standard envelope; when False the raw
                dict is returned

        Raises:
            TransportError: Network failure, timeout or non-JSON body
            ValidationError: The server returned an ``errors`` field map
            BusinessError: The server returned ``success: false``
            ApiError: Any other HTTP error status
        """
        url = f"{self.settings.api_prefix}{path}"
        try:
            response = await self.client.request(method, url, json=json, data=data, params=params)
        except httpx.HTTPError as e:
            logger.error(f"API {method} {url} failed: {e}")
            raise TransportError(f"Network error: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"API {method} {url} returned a non-JSON body (status={response.status_code})")
            raise TransportError(
                f"Invalid response from server (status {response.status_code})",
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise TransportError(
                "Unexpected response shape from server", status_code=response.status_code
            )

        if response.status_code >= 400 or payload.get("success") is False:
            error = self._to_error(payload, response.status_code)
            logger.warning(f"API {method} {url} rejected: {error.message}")
            raise error

        if not envelope:
            return payload
        return Envelope.model_validate(payload)

    async def get(self, path: str, params: Optional[dict[str, Any]] = None, envelope: bool = True) -> Any:
        return await self.request("GET", path, params=params, envelope=envelope)

    async def post(
        self,
        path: str,
        json: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        envelope: bool = True,
    ) -> Any:
        return await self.request("POST", path, json=json, data=data, envelope=envelope)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
