# visit_scheduling/schemas/availability.py
from datetime import date, datetime, time
from typing import Optional

from pydantic import Field, model_validator

from visit_scheduling.schemas.scheduling import CamelModel, CoordinatorSummary


class AvailabilityCreate(CamelModel):
    coordinator_id: int
    day_of_week: int = Field(ge=0, le=6, description="0=Sunday .. 6=Saturday")
    start_time: time
    end_time: time
    effective_from: date
    effective_to: Optional[date] = None
    is_recurring: bool = True

    @model_validator(mode="after")
    def check_end_after_start(self) -> "AvailabilityCreate":
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class AvailabilityOut(CamelModel):
    id: int
    coordinator_id: int
    day_of_week: int
    start_time: time
    end_time: time
    effective_from: date
    effective_to: Optional[date] = None
    is_recurring: bool
    coordinator: Optional[CoordinatorSummary] = None


class TimeOffCreate(CamelModel):
    coordinator_id: int
    start_date: date
    end_date: date
    request_type: str
    reason: Optional[str] = None


class TimeOffReview(CamelModel):
    id: Optional[int] = None
    status: Optional[str] = None
    approver_id: Optional[str] = None


class TimeOffOut(CamelModel):
    id: int
    coordinator_id: int
    start_date: date
    end_date: date
    request_type: str
    reason: Optional[str] = None
    status: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    coordinator: Optional[CoordinatorSummary] = None
