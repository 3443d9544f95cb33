# visit_scheduling/services/conflict_service.py
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

from visit_scheduling.config import get_settings
from visit_scheduling.models.participant_visit import ACTIVE_VISIT_STATUSES, ParticipantVisit


def template_duration_minutes(study_visit, default: Optional[int] = None) -> int:
    if default is None:
        default = get_settings().DEFAULT_VISIT_DURATION_MINUTES
    duration = getattr(study_visit, "duration_minutes", None) if study_visit is not None else None
    return duration or default


def visit_interval(visit: ParticipantVisit, default_minutes: Optional[int] = None) -> Tuple[datetime, datetime]:
    """[start, end) of a booked visit, using its template's duration."""
    start = visit.scheduled_date
    minutes = template_duration_minutes(visit.study_visit, default_minutes)
    return start, start + timedelta(minutes=minutes)


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    # Touching boundaries (end == other_start) are not an overlap
    return start < other_end and end > other_start


def has_conflict(
    coordinator_id: int,
    start: datetime,
    end: datetime,
    visits: Iterable[ParticipantVisit],
    default_minutes: Optional[int] = None,
) -> bool:
    """
    True if [start, end) overlaps any scheduled/confirmed visit of the
    coordinator. Cancelled, completed and no-show visits never block.
    """
    for visit in visits:
        if visit.coordinator_id != coordinator_id:
            continue
        if visit.status not in ACTIVE_VISIT_STATUSES:
            continue
        visit_start, visit_end = visit_interval(visit, default_minutes)
        if overlaps(start, end, visit_start, visit_end):
            return True
    return False
