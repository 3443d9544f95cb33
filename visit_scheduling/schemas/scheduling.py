# visit_scheduling/schemas/scheduling.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from visit_scheduling.models.participant_visit import SchedulingMethod, VisitStatus


def to_naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """Scheduling works in naive local time; aware inputs are converted."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class CamelModel(BaseModel):
    """JSON uses camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------- Requests ----------

class VisitFilters(CamelModel):
    coordinator_id: Optional[int] = None
    participant_id: Optional[int] = None
    study_id: Optional[int] = None
    status: Optional[VisitStatus] = None
    # Applied only when both are present; end_date is inclusive
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class VisitCreate(CamelModel):
    # Required, but left optional here so the booking engine can report
    # every missing field in one error.
    participant_id: Optional[int] = None
    study_visit_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None

    coordinator_id: Optional[int] = None
    facility_id: Optional[int] = None
    scheduling_method: Optional[SchedulingMethod] = None
    notes: Optional[str] = None

    @field_validator("scheduled_date")
    @classmethod
    def naive_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)


class VisitUpdate(CamelModel):
    """
    Partial update. Only keys present in the request are applied;
    an explicit null for coordinatorId, notes or noShowReason clears it.
    """

    id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    coordinator_id: Optional[int] = None
    status: Optional[VisitStatus] = None
    notes: Optional[str] = None
    no_show_reason: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    completed_date: Optional[datetime] = None

    @field_validator("scheduled_date", "check_in_time", "check_out_time", "completed_date")
    @classmethod
    def naive_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)


# ---------- Responses ----------

class CandidateSlotOut(CamelModel):
    start: datetime
    end: datetime
    coordinator_id: int
    coordinator_name: str
    score: float
    availability: str


class SlotSearchOut(CamelModel):
    slots: List[CandidateSlotOut]
    total_slots_found: int


class StudySummary(CamelModel):
    id: int
    title: str
    protocol_number: Optional[str] = None


class ParticipantSummary(CamelModel):
    id: int
    participant_code: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    study: Optional[StudySummary] = None


class StudyVisitSummary(CamelModel):
    id: int
    visit_name: str
    visit_number: int
    visit_type: Optional[str] = None
    duration_minutes: Optional[int] = None


class CoordinatorSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None


class FacilitySummary(CamelModel):
    id: int
    name: str
    active: bool


class FacilityBookingOut(CamelModel):
    id: int
    facility_id: int
    start_time: datetime
    end_time: datetime
    purpose: Optional[str] = None
    booked_by: str
    status: str
    facility: Optional[FacilitySummary] = None


class VisitOut(CamelModel):
    id: int
    participant_id: int
    study_visit_id: int
    coordinator_id: Optional[int] = None
    scheduled_date: datetime
    scheduling_method: str
    status: str
    notes: Optional[str] = None
    no_show_reason: Optional[str] = None
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    wait_time: Optional[int] = None
    completed_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    participant: Optional[ParticipantSummary] = None
    study_visit: Optional[StudyVisitSummary] = None
    assigned_coordinator: Optional[CoordinatorSummary] = None
    facility_bookings: List[FacilityBookingOut] = []
