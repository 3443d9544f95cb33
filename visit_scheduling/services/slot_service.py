# visit_scheduling/services/slot_service.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from visit_scheduling.config import get_settings
from visit_scheduling.errors import NotFoundError, ValidationError
from visit_scheduling.models.coordinator import (
    Coordinator,
    CoordinatorAvailability,
    TimeOffRequest,
    TimeOffStatus,
)
from visit_scheduling.models.facility import Facility
from visit_scheduling.models.participant_visit import ACTIVE_VISIT_STATUSES, ParticipantVisit
from visit_scheduling.models.study import StudyCoordinator, StudyVisit
from visit_scheduling.services.availability_service import open_intervals_for_day
from visit_scheduling.services.conflict_service import has_conflict
from visit_scheduling.services.scoring_service import CandidateSlot, rank_slots

logger = logging.getLogger(__name__)


@dataclass
class SlotSearchResult:
    slots: List[CandidateSlot]
    total_slots_found: int


def iter_days(start_date: date, end_date: date):
    day = start_date
    while day <= end_date:
        yield day
        day += timedelta(days=1)


def generate_slots(
    *,
    start_date: date,
    end_date: date,
    duration_minutes: int,
    coordinators: Iterable[Tuple[int, str]],
    availability: List[CoordinatorAvailability],
    time_off: List[TimeOffRequest],
    existing_visits: List[ParticipantVisit],
    step_minutes: int = 30,
) -> List[CandidateSlot]:
    """
    Enumerate every feasible slot in [start_date, end_date] (inclusive).

    For each day, coordinator and open interval we walk a cursor from the
    interval start in `step_minutes` steps and keep [cursor, cursor+duration)
    when it fits in the interval and the coordinator has no overlapping
    visit. The cursor always advances by the step, not by the duration, so
    candidates may overlap each other.

    Output is unranked.
    """
    slots: List[CandidateSlot] = []
    if end_date < start_date or duration_minutes <= 0:
        return slots

    coordinators = list(coordinators)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)

    for day in iter_days(start_date, end_date):
        for coordinator_id, coordinator_name in coordinators:
            for start_tod, end_tod in open_intervals_for_day(coordinator_id, day, availability, time_off):
                cursor = datetime.combine(day, start_tod)
                window_end = datetime.combine(day, end_tod)

                while cursor + duration <= window_end:
                    slot_end = cursor + duration
                    if not has_conflict(coordinator_id, cursor, slot_end, existing_visits):
                        slots.append(
                            CandidateSlot(
                                start=cursor,
                                end=slot_end,
                                coordinator_id=coordinator_id,
                                coordinator_name=coordinator_name,
                            )
                        )
                    cursor += step

    return slots


def find_available_slots(
    db: Session,
    *,
    study_visit_id: int,
    start_date: date,
    end_date: date,
    duration_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SlotSearchResult:
    """
    Load the roster and supporting data for a study visit, then generate and
    rank slots.

    Raises NotFoundError for an unknown study visit or a study without active
    coordinators, ValidationError for a bad duration or an oversized range.
    "Nothing free" is an empty result.
    """
    settings = get_settings()
    if duration_minutes is None:
        duration_minutes = settings.DEFAULT_VISIT_DURATION_MINUTES

    if duration_minutes <= 0:
        raise ValidationError("duration must be positive")
    if (end_date - start_date).days > settings.MAX_SLOT_SEARCH_DAYS:
        raise ValidationError(
            f"Date range may not exceed {settings.MAX_SLOT_SEARCH_DAYS} days"
        )

    study_visit = db.get(StudyVisit, study_visit_id)
    if not study_visit:
        raise NotFoundError("Study visit not found")

    roster: List[Tuple[int, str]] = [
        (c.id, c.display_name)
        for c in (
            db.query(Coordinator)
            .join(StudyCoordinator, StudyCoordinator.coordinator_id == Coordinator.id)
            .filter(
                StudyCoordinator.study_id == study_visit.study_id,
                StudyCoordinator.active.is_(True),
            )
            .order_by(Coordinator.id.asc())
            .all()
        )
    ]
    if not roster:
        raise NotFoundError("No coordinators assigned to this study")

    if end_date < start_date:
        return SlotSearchResult(slots=[], total_slots_found=0)

    coordinator_ids = [cid for cid, _ in roster]

    availability = (
        db.query(CoordinatorAvailability)
        .filter(
            CoordinatorAvailability.coordinator_id.in_(coordinator_ids),
            CoordinatorAvailability.effective_from <= end_date,
            (CoordinatorAvailability.effective_to.is_(None))
            | (CoordinatorAvailability.effective_to >= start_date),
        )
        .all()
    )

    time_off = (
        db.query(TimeOffRequest)
        .filter(
            TimeOffRequest.coordinator_id.in_(coordinator_ids),
            TimeOffRequest.status == TimeOffStatus.APPROVED.value,
            TimeOffRequest.start_date <= end_date,
            TimeOffRequest.end_date >= start_date,
        )
        .all()
    )

    # Visits on the whole of end_date count, hence the exclusive next-day bound
    range_start = datetime.combine(start_date, datetime.min.time())
    range_end = datetime.combine(end_date + timedelta(days=1), datetime.min.time())
    existing_visits = (
        db.query(ParticipantVisit)
        .options(joinedload(ParticipantVisit.study_visit))
        .filter(
            ParticipantVisit.coordinator_id.in_(coordinator_ids),
            ParticipantVisit.scheduled_date >= range_start,
            ParticipantVisit.scheduled_date < range_end,
            ParticipantVisit.status.in_(ACTIVE_VISIT_STATUSES),
        )
        .all()
    )

    facilities = db.query(Facility).filter(Facility.active.is_(True)).all()

    slots = generate_slots(
        start_date=start_date,
        end_date=end_date,
        duration_minutes=duration_minutes,
        coordinators=roster,
        availability=availability,
        time_off=time_off,
        existing_visits=existing_visits,
        step_minutes=settings.SLOT_STEP_MINUTES,
    )

    top, total = rank_slots(
        slots,
        existing_visits,
        limit=settings.MAX_SLOT_RESULTS,
        now=now,
    )

    logger.info(
        "Slot search study_visit=%s %s..%s duration=%s: %s candidates, %s coordinators, %s active facilities",
        study_visit_id, start_date, end_date, duration_minutes, total, len(roster), len(facilities),
    )
    return SlotSearchResult(slots=top, total_slots_found=total)
