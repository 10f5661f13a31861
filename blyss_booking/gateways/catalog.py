"""Professional profile and prestation catalog, read once at wizard entry."""

import logging

from pydantic import TypeAdapter, ValidationError

from blyss_booking.gateways.http_client import ApiClient, GatewayError
from blyss_booking.gateways.results import (
    Failure,
    FailureKind,
    GatewayResult,
    Ok,
    failure_from_error,
)
from blyss_booking.schemas.booking_schema import Prestation, Professional

logger = logging.getLogger(__name__)

PROFESSIONAL_NOT_FOUND_MESSAGE = "Professionnel non trouvé"

_PRESTATION_LIST = TypeAdapter(list[Prestation])


class CatalogGateway:
    """Public catalog reads. No authentication required."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def get_professional(self, pro_id: int) -> GatewayResult[Professional]:
        try:
            data = await self._client.get(f"/users/pros/{pro_id}")
            return Ok(Professional.model_validate(data))
        except (GatewayError, ValidationError) as exc:
            failure = failure_from_error(exc, FailureKind.TRANSPORT)
            if failure.kind == FailureKind.NOT_FOUND:
                failure = Failure(
                    FailureKind.NOT_FOUND, PROFESSIONAL_NOT_FOUND_MESSAGE, failure.status_code
                )
            logger.warning("Professional %s unavailable: %s", pro_id, failure.message)
            return failure

    async def get_prestations(self, pro_id: int) -> GatewayResult[list[Prestation]]:
        """All prestations of a professional, active or not, in catalog order."""
        try:
            data = await self._client.get(f"/prestations/pro/{pro_id}")
            return Ok(_PRESTATION_LIST.validate_python(data or []))
        except (GatewayError, ValidationError) as exc:
            failure = failure_from_error(exc, FailureKind.TRANSPORT)
            logger.warning("Prestations of pro %s unavailable: %s", pro_id, failure.message)
            return failure
