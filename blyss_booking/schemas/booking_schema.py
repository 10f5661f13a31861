"""Catalog, availability, reservation and payment data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SLOT_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


class PaymentMethod(str, Enum):
    """How the client settles the prestation."""
    ON_SITE = "on-site"
    ONLINE = "online"


class PaymentType(str, Enum):
    """What an online payment authorization covers."""
    FULL = "full"
    DEPOSIT = "deposit"


class ApiResponse(BaseModel):
    """Envelope wrapping every backend response."""
    success: bool = True
    data: Any = None
    message: Optional[str] = None
    error: Optional[str] = None


class Professional(BaseModel):
    """Public profile of a professional."""
    id: int
    first_name: str = ""
    last_name: str = ""
    activity_name: Optional[str] = None
    city: Optional[str] = None
    instagram_account: Optional[str] = None
    profile_photo: Optional[str] = None
    banner_photo: Optional[str] = None
    bio: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.activity_name:
            return self.activity_name
        return f"{self.first_name} {self.last_name}".strip()


class Prestation(BaseModel):
    """A service offering. Only active prestations can be booked."""
    id: int
    name: str
    description: Optional[str] = None
    price: float
    duration_minutes: int = Field(gt=0)
    active: bool = True


class Slot(BaseModel):
    """A bookable opening on one date."""
    id: int
    time: str
    duration: int = 60
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        # The backend may send HH:MM:SS or an unpadded H:MM
        raw = value.strip()
        for fmt in SLOT_TIME_FORMATS:
            try:
                return datetime.strptime(raw, fmt).strftime("%H:%M")
            except ValueError:
                continue
        raise ValueError(f"not a time of day: {value!r}")


class ReservationRequest(BaseModel):
    """Body of ``POST /reservations``."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pro_id: int
    prestation_id: int
    start_datetime: str
    end_datetime: str
    price: float
    slot_id: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Reservation(BaseModel):
    """Reservation record as returned by the backend."""
    id: int
    pro_id: Optional[int] = None
    prestation_id: Optional[int] = None
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None
    price: Optional[float] = None
    slot_id: Optional[int] = None
    status: Optional[str] = None
    deposit_percentage: int = Field(default=0, ge=0, le=100)
    deposit_amount: float = 0.0


class PaymentAuthorizationRequest(BaseModel):
    """Body of ``POST /payments/intent``."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reservation_id: int
    type: PaymentType

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class PaymentAuthorization(BaseModel):
    """Processor session created for an existing reservation."""
    client_secret: str
    amount: float
    reservation_id: Optional[int] = None
