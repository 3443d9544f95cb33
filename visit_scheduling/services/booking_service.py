# visit_scheduling/services/booking_service.py
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from visit_scheduling.errors import ConflictError, MissingFieldError, NotFoundError
from visit_scheduling.models.coordinator import Coordinator
from visit_scheduling.models.facility import Facility, FacilityBooking, FacilityBookingStatus
from visit_scheduling.models.participant_visit import (
    ACTIVE_VISIT_STATUSES,
    ParticipantVisit,
    SchedulingMethod,
    VisitStatus,
)
from visit_scheduling.models.study import Participant, StudyVisit
from visit_scheduling.schemas.scheduling import VisitFilters, VisitUpdate
from visit_scheduling.services.conflict_service import template_duration_minutes

logger = logging.getLogger(__name__)

# Terminal statuses have no outgoing transitions
VISIT_TRANSITIONS: Dict[str, Set[str]] = {
    VisitStatus.SCHEDULED.value: {
        VisitStatus.CONFIRMED.value,
        VisitStatus.COMPLETED.value,
        VisitStatus.CANCELLED.value,
        VisitStatus.NO_SHOW.value,
    },
    VisitStatus.CONFIRMED.value: {
        VisitStatus.COMPLETED.value,
        VisitStatus.CANCELLED.value,
        VisitStatus.NO_SHOW.value,
    },
}

ALREADY_SCHEDULED = "Visit already scheduled for this participant"


def _visit_query(db: Session):
    return db.query(ParticipantVisit).options(
        joinedload(ParticipantVisit.participant).joinedload(Participant.study),
        joinedload(ParticipantVisit.study_visit),
        joinedload(ParticipantVisit.assigned_coordinator),
        selectinload(ParticipantVisit.facility_bookings).joinedload(FacilityBooking.facility),
    )


def get_visit(db: Session, visit_id: int) -> ParticipantVisit:
    visit = _visit_query(db).filter(ParticipantVisit.id == visit_id).first()
    if not visit:
        raise NotFoundError("Visit not found")
    return visit


def list_visits(db: Session, filters: Optional[VisitFilters] = None) -> List[ParticipantVisit]:
    """
    Visits with participant, template, coordinator and facility bookings
    loaded, in ascending scheduled order.
    """
    filters = filters or VisitFilters()
    query = _visit_query(db)

    if filters.coordinator_id is not None:
        query = query.filter(ParticipantVisit.coordinator_id == filters.coordinator_id)
    if filters.participant_id is not None:
        query = query.filter(ParticipantVisit.participant_id == filters.participant_id)
    if filters.status is not None:
        query = query.filter(ParticipantVisit.status == filters.status.value)
    if filters.start_date and filters.end_date:
        range_start = datetime.combine(filters.start_date, datetime.min.time())
        range_end = datetime.combine(filters.end_date + timedelta(days=1), datetime.min.time())
        query = query.filter(
            ParticipantVisit.scheduled_date >= range_start,
            ParticipantVisit.scheduled_date < range_end,
        )
    if filters.study_id is not None:
        query = query.filter(
            ParticipantVisit.participant.has(Participant.study_id == filters.study_id)
        )

    return query.order_by(ParticipantVisit.scheduled_date.asc(), ParticipantVisit.id.asc()).all()


def _active_visit_for(db: Session, participant_id: int, study_visit_id: int) -> Optional[ParticipantVisit]:
    return (
        db.query(ParticipantVisit)
        .filter(
            ParticipantVisit.participant_id == participant_id,
            ParticipantVisit.study_visit_id == study_visit_id,
            ParticipantVisit.status.in_(ACTIVE_VISIT_STATUSES),
        )
        .first()
    )


def _facility_is_taken(
    db: Session,
    facility_id: int,
    start: datetime,
    end: datetime,
    exclude_visit_id: Optional[int] = None,
) -> bool:
    query = db.query(FacilityBooking).filter(
        FacilityBooking.facility_id == facility_id,
        FacilityBooking.status == FacilityBookingStatus.BOOKED,
        FacilityBooking.start_time < end,
        FacilityBooking.end_time > start,
    )
    if exclude_visit_id is not None:
        query = query.filter(FacilityBooking.participant_visit_id != exclude_visit_id)
    return db.query(query.exists()).scalar()


def create_visit(
    db: Session,
    *,
    participant_id: Optional[int],
    study_visit_id: Optional[int],
    scheduled_date: Optional[datetime],
    booked_by: str,
    coordinator_id: Optional[int] = None,
    facility_id: Optional[int] = None,
    scheduling_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> ParticipantVisit:
    """
    Book a visit for a participant, optionally reserving a facility.

    All validation happens before anything is written:
    - participant, study visit and scheduled date are required
    - referenced rows must exist (facility must also be active)
    - no other scheduled/confirmed visit for the same participant and
      study visit
    - the facility must be free for the whole visit

    The visit and its facility booking are written in one transaction. A
    concurrent writer that slips past the pre-check hits the partial unique
    index and gets a ConflictError as well.
    """
    missing = [
        name
        for name, value in (
            ("participantId", participant_id),
            ("studyVisitId", study_visit_id),
            ("scheduledDate", scheduled_date),
        )
        if value is None
    ]
    if missing:
        raise MissingFieldError(*missing)

    if not db.get(Participant, participant_id):
        raise NotFoundError("Participant not found")

    study_visit = db.get(StudyVisit, study_visit_id)
    if not study_visit:
        raise NotFoundError("Study visit not found")

    if coordinator_id is not None and not db.get(Coordinator, coordinator_id):
        raise NotFoundError("Coordinator not found")

    if _active_visit_for(db, participant_id, study_visit_id):
        raise ConflictError(ALREADY_SCHEDULED)

    visit_end = scheduled_date + timedelta(minutes=template_duration_minutes(study_visit))

    if facility_id is not None:
        facility = db.get(Facility, facility_id)
        if not facility or not facility.active:
            raise NotFoundError("Facility not found")
        if _facility_is_taken(db, facility_id, scheduled_date, visit_end):
            raise ConflictError("Facility is already booked for this time")

    visit = ParticipantVisit(
        participant_id=participant_id,
        study_visit_id=study_visit_id,
        scheduled_date=scheduled_date,
        coordinator_id=coordinator_id,
        scheduling_method=scheduling_method or SchedulingMethod.MANUAL.value,
        status=VisitStatus.SCHEDULED.value,
        notes=notes,
    )

    try:
        db.add(visit)
        db.flush()

        if facility_id is not None:
            db.add(
                FacilityBooking(
                    facility_id=facility_id,
                    participant_visit_id=visit.id,
                    start_time=scheduled_date,
                    end_time=visit_end,
                    purpose=f"Visit: {study_visit.visit_name}",
                    booked_by=booked_by,
                    status=FacilityBookingStatus.BOOKED,
                )
            )

        db.commit()
    except IntegrityError:
        db.rollback()
        # Only the active-visit index means a concurrent double booking;
        # any other constraint failure is a storage error.
        if _active_visit_for(db, participant_id, study_visit_id):
            logger.warning(
                "Concurrent booking rejected for participant=%s study_visit=%s",
                participant_id, study_visit_id,
            )
            raise ConflictError(ALREADY_SCHEDULED)
        logger.exception("Failed to write visit for participant=%s", participant_id)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write visit for participant=%s", participant_id)
        raise

    logger.info(
        "Visit %s scheduled for participant=%s study_visit=%s at %s (coordinator=%s facility=%s)",
        visit.id, participant_id, study_visit_id, scheduled_date.isoformat(), coordinator_id, facility_id,
    )
    db.expire_all()
    return get_visit(db, visit.id)


def _check_transition(current: str, new: str) -> None:
    if new == current:
        return
    if new not in VISIT_TRANSITIONS.get(current, set()):
        raise ConflictError(f"Cannot change visit status from {current} to {new}")


def update_visit(db: Session, visit_id: int, patch: VisitUpdate) -> ParticipantVisit:
    """
    Apply a partial update to a visit.

    - `status` follows the visit state machine; `completed` stamps
      completed_date unless one is supplied.
    - cancelling or marking a no-show releases the visit's facility
      bookings; rescheduling moves them.
    - when check_out_time is supplied, wait_time is recomputed from the
      check-in time (from the patch, else the stored one) and the stored
      scheduled time as it was before this update.
    """
    visit = get_visit(db, visit_id)
    changes = patch.model_dump(exclude_unset=True, exclude={"id"})

    previous_scheduled = visit.scheduled_date
    new_status = changes.get("status")
    if new_status is not None:
        new_status = VisitStatus(new_status).value
        _check_transition(visit.status, new_status)

    if changes.get("coordinator_id") is not None and not db.get(Coordinator, changes["coordinator_id"]):
        raise NotFoundError("Coordinator not found")

    new_scheduled = changes.get("scheduled_date")
    if new_scheduled is not None and new_scheduled != previous_scheduled:
        if visit.status not in ACTIVE_VISIT_STATUSES:
            raise ConflictError(f"Cannot reschedule a {visit.status} visit")
        _move_facility_bookings(db, visit, new_scheduled)
        visit.scheduled_date = new_scheduled

    if "coordinator_id" in changes:
        visit.coordinator_id = changes["coordinator_id"]

    if "notes" in changes:
        visit.notes = changes["notes"]

    if "no_show_reason" in changes:
        visit.no_show_reason = changes["no_show_reason"]

    if changes.get("check_in_time") is not None:
        visit.check_in_time = changes["check_in_time"]

    if changes.get("check_out_time") is not None:
        visit.check_out_time = changes["check_out_time"]
        # Re-read the stored check-in unless this call sets it
        check_in = changes.get("check_in_time") or visit.check_in_time
        if check_in is not None:
            visit.wait_time = int((check_in - previous_scheduled).total_seconds() // 60)

    if new_status is not None and new_status != visit.status:
        visit.status = new_status
        if new_status == VisitStatus.COMPLETED.value:
            visit.completed_date = changes.get("completed_date") or datetime.now()
        elif new_status in (VisitStatus.CANCELLED.value, VisitStatus.NO_SHOW.value):
            for booking in visit.facility_bookings:
                if booking.status == FacilityBookingStatus.BOOKED:
                    booking.status = FacilityBookingStatus.CANCELLED
            if new_status == VisitStatus.NO_SHOW.value and not visit.no_show_reason:
                logger.warning("Visit %s marked no_show without a reason", visit.id)
    elif changes.get("completed_date") is not None:
        visit.completed_date = changes["completed_date"]

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to update visit %s", visit_id)
        raise

    logger.info("Visit %s updated: %s", visit_id, ", ".join(sorted(changes)) or "no changes")
    db.expire_all()
    return get_visit(db, visit_id)


def _move_facility_bookings(db: Session, visit: ParticipantVisit, new_start: datetime) -> None:
    duration = timedelta(minutes=template_duration_minutes(visit.study_visit))
    new_end = new_start + duration
    bookings = [b for b in visit.facility_bookings if b.status == FacilityBookingStatus.BOOKED]
    # Check every booking before moving any of them
    for booking in bookings:
        if _facility_is_taken(db, booking.facility_id, new_start, new_end, exclude_visit_id=visit.id):
            raise ConflictError("Facility is already booked for this time")
    for booking in bookings:
        booking.start_time = new_start
        booking.end_time = new_end
