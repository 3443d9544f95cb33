# visit_scheduling/models/facility.py
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from visit_scheduling.models.base import Base


class FacilityBookingStatus:
    BOOKED = "booked"
    CANCELLED = "cancelled"


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)


class FacilityBooking(Base):
    __tablename__ = "facility_bookings"

    id = Column(Integer, primary_key=True, index=True)

    facility_id = Column(
        Integer,
        ForeignKey("facilities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    participant_visit_id = Column(
        Integer,
        ForeignKey("participant_visits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    purpose = Column(String(255), nullable=True)
    # Principal id of whoever booked it
    booked_by = Column(String(64), nullable=False)

    status = Column(String(32), nullable=False, default=FacilityBookingStatus.BOOKED)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    facility = relationship("Facility", backref="bookings")
    participant_visit = relationship("ParticipantVisit", back_populates="facility_bookings")
