# visit_scheduling/models/study.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from visit_scheduling.models.base import Base


class Study(Base):
    __tablename__ = "studies"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    protocol_number = Column(String(64), nullable=True, unique=True)


class StudyCoordinator(Base):
    """
    Roster entry: a coordinator assigned to a study.

    Only `active` rows are considered when looking for slots.
    """

    __tablename__ = "study_coordinators"
    __table_args__ = (
        UniqueConstraint("study_id", "coordinator_id", name="uq_study_coordinator"),
    )

    id = Column(Integer, primary_key=True, index=True)

    study_id = Column(
        Integer,
        ForeignKey("studies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    coordinator_id = Column(
        Integer,
        ForeignKey("coordinators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    active = Column(Boolean, nullable=False, default=True)

    study = relationship("Study", backref="coordinator_assignments")
    coordinator = relationship("Coordinator", backref="study_assignments")


class StudyVisit(Base):
    """Protocol-defined visit template shared by every participant of a study."""

    __tablename__ = "study_visits"

    id = Column(Integer, primary_key=True, index=True)

    study_id = Column(
        Integer,
        ForeignKey("studies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    visit_name = Column(String(255), nullable=False)
    visit_number = Column(Integer, nullable=False, default=1)
    visit_type = Column(String(64), nullable=True)

    # Nominal duration in minutes; NULL means "use the default" (60)
    duration_minutes = Column(Integer, nullable=True)

    study = relationship("Study", backref="visits")


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, index=True)

    study_id = Column(
        Integer,
        ForeignKey("studies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Human-facing enrollment code, e.g. "P-001"
    participant_code = Column(String(64), nullable=False)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    study = relationship("Study", backref="participants")
