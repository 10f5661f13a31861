"""
Reservation and payment-authorization creation.

Both calls require a bearer token. The payment authorization may only be
requested for a reservation that already exists; the wizard sequences
the two calls, this gateway does not retry either of them.
"""

from typing import Optional

from pydantic import ValidationError

from blyss_booking.gateways.http_client import ApiClient, GatewayError
from blyss_booking.gateways.results import FailureKind, GatewayResult, Ok, failure_from_error
from blyss_booking.logging_context import get_session_logger
from blyss_booking.schemas.booking_schema import (
    PaymentAuthorization,
    PaymentAuthorizationRequest,
    Reservation,
    ReservationRequest,
)

logger = get_session_logger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class ReservationGateway:
    """Writes to the reservation and payment services."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def create_reservation(
        self,
        request: ReservationRequest,
        *,
        idempotency_key: Optional[str] = None,
    ) -> GatewayResult[Reservation]:
        """
        Create the reservation for the chosen prestation and slot.

        Fails with ``RESERVATION_ERROR`` when the slot is gone, the
        professional is inactive, or the backend rejects the input.
        """
        headers = {IDEMPOTENCY_HEADER: idempotency_key} if idempotency_key else None
        try:
            data = await self._client.post("/reservations", request.to_payload(), headers=headers)
            reservation = Reservation.model_validate(data)
        except (GatewayError, ValidationError) as exc:
            failure = failure_from_error(exc, FailureKind.RESERVATION_ERROR)
            logger.warning("Reservation for pro %s refused: %s", request.pro_id, failure.message)
            return failure

        logger.info(
            "Reservation %s created (pro=%s, prestation=%s, start=%s, deposit=%s%%)",
            reservation.id, request.pro_id, request.prestation_id,
            request.start_datetime, reservation.deposit_percentage,
        )
        return Ok(reservation)

    async def create_payment_authorization(
        self, request: PaymentAuthorizationRequest
    ) -> GatewayResult[PaymentAuthorization]:
        """
        Create a processor session for an existing reservation.

        Fails with ``PAYMENT_SETUP_ERROR`` when the reservation is not payable.
        """
        try:
            data = await self._client.post("/payments/intent", request.to_payload())
            authorization = PaymentAuthorization.model_validate(data)
        except (GatewayError, ValidationError) as exc:
            failure = failure_from_error(exc, FailureKind.PAYMENT_SETUP_ERROR)
            logger.warning(
                "Payment setup for reservation %s refused: %s",
                request.reservation_id, failure.message,
            )
            return failure

        if authorization.reservation_id is None:
            authorization = authorization.model_copy(
                update={"reservation_id": request.reservation_id}
            )
        logger.info(
            "Payment authorization ready for reservation %s (%s, %.2f)",
            request.reservation_id, request.type.value, authorization.amount,
        )
        return Ok(authorization)
