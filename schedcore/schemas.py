import re
from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, validator

ReasonKind = Literal["blackout", "weekend", "closed", "default", "capacity", "daily_limit"]
_HH_MM = re.compile(r"([01]\d|2[0-3]):[0-5]\d")


class InvalidSlotInput(ValueError):
    kind = "validation"

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class SlotQuery(BaseModel):
    day: date
    at: time | None = None

    @validator("at", pre=True)
    @classmethod
    def validate_hh_mm(cls, value):
        if value is None or isinstance(value, time):
            return value
        raw = str(value).strip()
        if not _HH_MM.fullmatch(raw):
            raise ValueError("time must be HH:MM (24-hour)")
        return time(int(raw[:2]), int(raw[3:]))


def parse_slot(day, at=None) -> tuple[date, time | None]:
    """Normalizes ISO date / HH:MM input or raises InvalidSlotInput."""
    try:
        query = SlotQuery(day=day, at=at)
    except ValidationError as exc:
        raise InvalidSlotInput("Invalid date or time", errors=exc.errors()) from exc
    return query.day, query.at


def format_hh_mm(value: time) -> str:
    return value.strftime("%H:%M")


class AvailabilityReason(BaseModel):
    kind: ReasonKind
    message: str


class Availability(BaseModel):
    bookable: bool
    reason: AvailabilityReason | None = None
    capacity_id: int | None = None
    max_appointments: int | None = None
    booked: int | None = None

    @property
    def remaining(self) -> int | None:
        if self.max_appointments is None or self.booked is None:
            return None
        return max(0, self.max_appointments - self.booked)


class AvailableSlot(BaseModel):
    time: str
    display: str
    capacity_remaining: int


class BookingAllowance(BaseModel):
    unlimited: bool
    limit: int | None = None
    used: int = 0
    remaining: int | None = None


class CustomerBooking(BaseModel):
    id: int
    appointment_date: date
    appointment_time: str
    status: str
    service_id: int | None = None


class AlternativeSlot(BaseModel):
    date: date
    time: str
    available_capacity: int
    utilization: float
    description: str


class StaffScore(BaseModel):
    staff_id: int
    name: str
    email: str
    score: int
    available: bool
    reasoning: list[str] = Field(default_factory=list)
    details: dict[str, int] = Field(default_factory=dict)


class SlotScore(BaseModel):
    time: str
    score: int
    available: bool
    reasoning: list[str] = Field(default_factory=list)
    available_staff: int
    booked: int = 0


class WorkloadEntry(BaseModel):
    staff_id: int
    staff_name: str
    appointments_scheduled: int
    capacity_percentage: float
    available_slots: int
    status: Literal["overloaded", "busy", "available"]


class DecisionDashboard(BaseModel):
    date: date
    workload_overview: list[WorkloadEntry]
    time_slot_recommendations: list[SlotScore]
    generated_at: datetime


class RiskRecommendation(BaseModel):
    action: str
    description: str
    priority: Literal["high", "medium", "low"]


class RiskAssessment(BaseModel):
    appointment_id: int
    risk_level: Literal["high", "medium", "low"]
    risk_score: int
    risk_factors: list[str] = Field(default_factory=list)
    recommendations: list[RiskRecommendation] = Field(default_factory=list)


class CancellationRiskNotice(BaseModel):
    show_notice: bool
    risk_level: Literal["high", "medium", "low"]
    utilization_rate: int
    current_bookings: int
    message: str | None = None


class BookingOutcome(BaseModel):
    accepted: bool
    appointment_id: int | None = None
    reason: AvailabilityReason | None = None
    remaining_bookings: int | None = None
    alternatives: list[AlternativeSlot] = Field(default_factory=list)
