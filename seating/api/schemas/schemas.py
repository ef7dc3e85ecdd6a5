from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from seating.domain.state_machine import SeatStatus, SeatType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SeatResponse(CamelModel):
    id: int
    event_id: int
    seat_number: str
    row_number: str
    section: str
    type: SeatType
    price: Decimal
    status: SeatStatus
    reserved_by: int | None = None
    order_id: str | None = None
    reserved_at: datetime | None = None
    reservation_expires_at: datetime | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SeatCreateRequest(CamelModel):
    event_id: int
    seat_number: str = Field(min_length=1, max_length=10)
    row_number: str = Field(min_length=1, max_length=10)
    section: str = Field(min_length=1, max_length=50)
    type: SeatType = SeatType.REGULAR
    price: Decimal = Field(ge=0)


class SeatReservationRequest(CamelModel):
    event_id: int
    seat_ids: list[int] = Field(min_length=1)
    user_id: int
    order_id: str | None = None


class SeatReservationResponse(CamelModel):
    success: bool
    message: str
    reservation_id: str
    reserved_seats: list[SeatResponse]
    total_price: Decimal
    expires_at: datetime


class SeatAllocationRequest(CamelModel):
    seat_ids: list[int] = Field(min_length=1)
    order_id: str = Field(min_length=1, max_length=36)
    reservation_id: str | None = None


class SeatReleaseRequest(CamelModel):
    seat_ids: list[int]


class SeatAvailabilityResponse(CamelModel):
    event_id: int
    total_seats: int
    available_seats: int
    reserved_seats: int
    allocated_seats: int
    blocked_seats: int
    availability_by_section: dict[str, int]
    available_seats_list: list[SeatResponse]


class MessageResponse(BaseModel):
    message: str
