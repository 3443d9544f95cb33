# visit_scheduling/models/coordinator.py
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship

from visit_scheduling.models.base import Base


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


class Coordinator(Base):
    __tablename__ = "coordinators"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class CoordinatorAvailability(Base):
    """
    Recurring weekly window during which a coordinator can take visits.

    day_of_week follows the stored convention 0=Sunday .. 6=Saturday.
    Several rows per (coordinator, day_of_week) model split shifts.
    """

    __tablename__ = "coordinator_availability"

    id = Column(Integer, primary_key=True, index=True)

    coordinator_id = Column(
        Integer,
        ForeignKey("coordinators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    effective_from = Column(Date, nullable=False)
    # NULL = open-ended
    effective_to = Column(Date, nullable=True)

    is_recurring = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    coordinator = relationship("Coordinator", backref="availability")


class TimeOffRequest(Base):
    __tablename__ = "time_off_requests"

    id = Column(Integer, primary_key=True, index=True)

    coordinator_id = Column(
        Integer,
        ForeignKey("coordinators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Inclusive, whole days
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    request_type = Column(String(64), nullable=False, default="vacation")
    reason = Column(String, nullable=True)

    status = Column(String(32), nullable=False, default=TimeOffStatus.PENDING.value)
    approved_by = Column(String(64), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    coordinator = relationship("Coordinator", backref="time_off_requests")
