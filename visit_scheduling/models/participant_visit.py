# visit_scheduling/models/participant_visit.py
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from visit_scheduling.models.base import Base


class VisitStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that hold a coordinator's time and count towards double-booking
ACTIVE_VISIT_STATUSES = (VisitStatus.SCHEDULED.value, VisitStatus.CONFIRMED.value)

_ACTIVE_PREDICATE = text("status IN ('scheduled', 'confirmed')")


class SchedulingMethod(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class ParticipantVisit(Base):
    """
    One concrete visit of a participant for a StudyVisit template.

    Rows are never deleted; cancellation and no-shows are status changes.
    The partial unique index keeps at most one active visit per
    (participant, study visit) even under concurrent writers.
    """

    __tablename__ = "participant_visits"
    __table_args__ = (
        Index(
            "uq_participant_visit_active",
            "participant_id",
            "study_visit_id",
            unique=True,
            sqlite_where=_ACTIVE_PREDICATE,
            postgresql_where=_ACTIVE_PREDICATE,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    participant_id = Column(
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    study_visit_id = Column(
        Integer,
        ForeignKey("study_visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    coordinator_id = Column(
        Integer,
        ForeignKey("coordinators.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    scheduled_date = Column(DateTime, nullable=False, index=True)
    scheduling_method = Column(String(32), nullable=False, default=SchedulingMethod.MANUAL.value)

    status = Column(String(32), nullable=False, default=VisitStatus.SCHEDULED.value)

    notes = Column(String, nullable=True)
    no_show_reason = Column(String, nullable=True)

    check_in_time = Column(DateTime, nullable=True)
    check_out_time = Column(DateTime, nullable=True)
    # Minutes between scheduled start and check-in
    wait_time = Column(Integer, nullable=True)

    completed_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    participant = relationship("Participant", backref="visits")
    study_visit = relationship("StudyVisit", backref="participant_visits")
    assigned_coordinator = relationship("Coordinator", backref="visits")
    facility_bookings = relationship(
        "FacilityBooking",
        back_populates="participant_visit",
        order_by="FacilityBooking.start_time",
    )
