"""Tagged success/failure results returned by the gateways."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

from pydantic import ValidationError

from blyss_booking.gateways.http_client import (
    GENERIC_ERROR_MESSAGE,
    INVALID_RESPONSE_MESSAGE,
    ApiRequestError,
    GatewayError,
    UnauthenticatedError,
)

T = TypeVar("T")


class FailureKind(str, Enum):
    """Why a gateway call failed. The wizard maps each kind to a UI consequence."""
    TRANSPORT = "transport"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    RESERVATION_ERROR = "reservation_error"
    PAYMENT_SETUP_ERROR = "payment_setup_error"
    INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    status_code: Optional[int] = None
    ok: bool = False


GatewayResult = Union[Ok[T], Failure]


def failure_from_error(
    exc: Union[GatewayError, ValidationError],
    refused_kind: FailureKind,
) -> Failure:
    """
    Translate a client-side exception into a Failure.

    ``refused_kind`` is the business failure used when the backend
    understood the request and refused it.
    """
    if isinstance(exc, ValidationError):
        return Failure(FailureKind.INVALID_RESPONSE, INVALID_RESPONSE_MESSAGE)
    if isinstance(exc, UnauthenticatedError):
        return Failure(FailureKind.UNAUTHENTICATED, exc.message, exc.status_code)
    if isinstance(exc, ApiRequestError):
        kind = FailureKind.NOT_FOUND if exc.status_code == 404 else refused_kind
        return Failure(kind, exc.message or GENERIC_ERROR_MESSAGE, exc.status_code)
    return Failure(FailureKind.TRANSPORT, exc.message, exc.status_code)
