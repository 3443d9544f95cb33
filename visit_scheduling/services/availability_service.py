# visit_scheduling/services/availability_service.py
import logging
from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from visit_scheduling.errors import NotFoundError, ValidationError
from visit_scheduling.models.coordinator import (
    Coordinator,
    CoordinatorAvailability,
    TimeOffRequest,
    TimeOffStatus,
)

logger = logging.getLogger(__name__)


def day_of_week(day: date) -> int:
    """Weekday in the stored convention: 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def window_is_effective(window: CoordinatorAvailability, day: date) -> bool:
    if window.effective_from is not None and window.effective_from > day:
        return False
    if window.effective_to is not None and window.effective_to < day:
        return False
    return True


def is_on_time_off(
    coordinator_id: int,
    day: date,
    time_off: Iterable[TimeOffRequest],
) -> bool:
    return any(
        to.coordinator_id == coordinator_id
        and to.status == TimeOffStatus.APPROVED.value
        and to.start_date <= day <= to.end_date
        for to in time_off
    )


def open_intervals_for_day(
    coordinator_id: int,
    day: date,
    windows: Iterable[CoordinatorAvailability],
    time_off: Iterable[TimeOffRequest],
) -> List[Tuple[time, time]]:
    """
    Time-of-day intervals during which a coordinator is schedulable on `day`.

    - Only windows for the coordinator, on the day's weekday, effective on
      that date count.
    - Any approved time-off covering the date (inclusive) empties the day;
      time-off is whole-day, hours are not compared.

    An empty list simply means "not available".
    """
    if is_on_time_off(coordinator_id, day, time_off):
        return []

    dow = day_of_week(day)
    intervals = [
        (w.start_time, w.end_time)
        for w in windows
        if w.coordinator_id == coordinator_id
        and w.day_of_week == dow
        and window_is_effective(w, day)
        and w.start_time < w.end_time
    ]
    intervals.sort()
    return intervals


# ---------- Availability windows ----------

def _get_coordinator(db: Session, coordinator_id: int) -> Coordinator:
    coordinator = db.get(Coordinator, coordinator_id)
    if not coordinator:
        raise NotFoundError("Coordinator not found")
    return coordinator


def list_availability(
    db: Session,
    *,
    coordinator_id: Optional[int] = None,
    on_date: Optional[date] = None,
) -> List[CoordinatorAvailability]:
    query = db.query(CoordinatorAvailability)
    if coordinator_id is not None:
        query = query.filter(CoordinatorAvailability.coordinator_id == coordinator_id)
    if on_date is not None:
        query = query.filter(
            CoordinatorAvailability.effective_from <= on_date,
            (CoordinatorAvailability.effective_to.is_(None))
            | (CoordinatorAvailability.effective_to >= on_date),
        )
    return query.order_by(
        CoordinatorAvailability.day_of_week.asc(),
        CoordinatorAvailability.start_time.asc(),
    ).all()


def create_availability(
    db: Session,
    *,
    coordinator_id: int,
    day_of_week: int,
    start_time: time,
    end_time: time,
    effective_from: date,
    effective_to: Optional[date] = None,
    is_recurring: bool = True,
) -> CoordinatorAvailability:
    if not 0 <= day_of_week <= 6:
        raise ValidationError("Invalid dayOfWeek. Must be 0-6 (Sunday-Saturday)")
    if end_time <= start_time:
        raise ValidationError("endTime must be after startTime")
    if effective_to is not None and effective_to < effective_from:
        raise ValidationError("effectiveTo must not be before effectiveFrom")

    _get_coordinator(db, coordinator_id)

    window = CoordinatorAvailability(
        coordinator_id=coordinator_id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        effective_from=effective_from,
        effective_to=effective_to,
        is_recurring=is_recurring,
    )
    db.add(window)
    db.commit()
    db.refresh(window)
    logger.info(
        "Availability %s created for coordinator %s (day %s %s-%s)",
        window.id, coordinator_id, day_of_week, start_time, end_time,
    )
    return window


def delete_availability(db: Session, availability_id: int) -> None:
    window = db.get(CoordinatorAvailability, availability_id)
    if not window:
        raise NotFoundError("Availability not found")
    db.delete(window)
    db.commit()
    logger.info("Availability %s deleted", availability_id)


# ---------- Time off ----------

def list_time_off(
    db: Session,
    *,
    coordinator_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[TimeOffRequest]:
    query = db.query(TimeOffRequest)
    if coordinator_id is not None:
        query = query.filter(TimeOffRequest.coordinator_id == coordinator_id)
    if status:
        query = query.filter(TimeOffRequest.status == status)
    return query.order_by(TimeOffRequest.start_date.asc()).all()


def create_time_off(
    db: Session,
    *,
    coordinator_id: int,
    start_date: date,
    end_date: date,
    request_type: str,
    reason: Optional[str] = None,
) -> TimeOffRequest:
    if end_date < start_date:
        raise ValidationError("End date must be after start date")

    _get_coordinator(db, coordinator_id)

    request = TimeOffRequest(
        coordinator_id=coordinator_id,
        start_date=start_date,
        end_date=end_date,
        request_type=request_type,
        reason=reason,
        status=TimeOffStatus.PENDING.value,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def review_time_off(
    db: Session,
    time_off_id: int,
    *,
    status: str,
    reviewer_id: str,
    approver_id: Optional[str] = None,
) -> TimeOffRequest:
    """
    Approve, deny or reset a time-off request.

    Any decision other than `pending` records who made it and when.
    """
    allowed = {s.value for s in TimeOffStatus}
    if status not in allowed:
        raise ValidationError("Invalid status. Must be pending, approved, or denied")

    request = db.get(TimeOffRequest, time_off_id)
    if not request:
        raise NotFoundError("Time off request not found")

    request.status = status
    if status != TimeOffStatus.PENDING.value:
        request.approved_by = approver_id or reviewer_id
        request.approved_at = datetime.now()
    else:
        request.approved_by = None
        request.approved_at = None

    db.commit()
    db.refresh(request)
    logger.info("Time off %s marked %s by %s", time_off_id, status, reviewer_id)
    return request
