"""Error taxonomy and user-facing message extraction."""

from typing import Any, Optional

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class GrandCentralError(Exception):
    """Base class for every error raised by the client."""

    def __init__(
        self,
        message: str,
        payload: Optional[dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.payload = payload or {}
        self.status_code = status_code


class TransportError(GrandCentralError):
    """Network failure, timeout or a body that is not JSON."""


class ApiError(GrandCentralError):
    """The server answered with an error."""


class ValidationError(ApiError):
    """The server rejected the request with an ``errors`` field map."""

    @property
    def errors(self) -> dict[str, Any]:
        errors = self.payload.get("errors") or self.payload.get("error")
        return errors if isinstance(errors, dict) else {}


class BusinessError(ApiError):
    """``success: false`` with a message, e.g. out of allowance window."""


class GuardRejection(GrandCentralError):
    """A client-side guard refused the request before it was sent."""


class NotAuthenticatedError(GuardRejection):
    """No employee id or token is available."""


class StaleResponseError(GrandCentralError):
    """A response arrived for a request that has since been superseded."""


def _first_field_message(errors: Any) -> Optional[str]:
    if not isinstance(errors, dict) or not errors:
        return None
    first = next(iter(errors.values()))
    if isinstance(first, (list, tuple)):
        return str(first[0]) if first else None
    if first is None:
        return None
    return str(first)


def error_message(source: Any, fallback: str = DEFAULT_ERROR_MESSAGE) -> str:
    """
    Extract the message to show the user.

    Precedence: ``message`` string, then the first message of the
    ``errors``/``error`` field map, then a top-level ``error`` string, then
    ``fallback``. Unknown shapes never leak raw JSON.

    Args:
        source: A ``GrandCentralError``, a response payload dict, or anything else
        fallback: Message used when nothing usable is found
    """
    if isinstance(source, GrandCentralError):
        if isinstance(source, (GuardRejection, TransportError)):
            return source.message or fallback
        payload = source.payload
    elif isinstance(source, dict):
        payload = source
    else:
        return fallback

    message = payload.get("message")
    if isinstance(message, str) and message:
        return message

    for key in ("errors", "error"):
        field_message = _first_field_message(payload.get(key))
        if field_message:
            return field_message

    error = payload.get("error")
    if isinstance(error, str) and error:
        return error

    return fallback
