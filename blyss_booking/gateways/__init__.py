from blyss_booking.gateways.availability import AvailabilityGateway
from blyss_booking.gateways.catalog import CatalogGateway
from blyss_booking.gateways.http_client import (
    ApiClient,
    ApiRequestError,
    GatewayError,
    TransportError,
    UnauthenticatedError,
)
from blyss_booking.gateways.payment import (
    PaymentConfirmation,
    PaymentOutcome,
    PaymentProcessor,
    PaymentProcessorError,
    PaymentSessionAdapter,
    ProcessorResult,
    ProcessorStatus,
)
from blyss_booking.gateways.queries import DerivedQuery, QueryResult
from blyss_booking.gateways.reservation import ReservationGateway
from blyss_booking.gateways.results import Failure, FailureKind, GatewayResult, Ok

__all__ = [
    "ApiClient",
    "GatewayError",
    "TransportError",
    "UnauthenticatedError",
    "ApiRequestError",
    "AvailabilityGateway",
    "CatalogGateway",
    "ReservationGateway",
    "PaymentSessionAdapter",
    "PaymentProcessor",
    "PaymentProcessorError",
    "ProcessorResult",
    "ProcessorStatus",
    "PaymentConfirmation",
    "PaymentOutcome",
    "DerivedQuery",
    "QueryResult",
    "Ok",
    "Failure",
    "FailureKind",
    "GatewayResult",
]
