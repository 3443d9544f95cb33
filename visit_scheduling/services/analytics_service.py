# visit_scheduling/services/analytics_service.py
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from visit_scheduling.errors import ValidationError
from visit_scheduling.models.coordinator import CoordinatorAvailability
from visit_scheduling.models.participant_visit import ParticipantVisit, VisitStatus
from visit_scheduling.models.study import Participant
from visit_scheduling.services.availability_service import day_of_week


def _rate(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _window_hours(window: CoordinatorAvailability) -> float:
    start = datetime.combine(date.min, window.start_time)
    end = datetime.combine(date.min, window.end_time)
    return (end - start).total_seconds() / 3600


def scheduling_summary(
    db: Session,
    *,
    start_date: date,
    end_date: date,
    coordinator_id: Optional[int] = None,
    study_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Visit metrics over [start_date, end_date] (whole days).

    Utilisation is only computed for a single coordinator: booked hours
    (one per scheduled or completed visit) over the weekly available hours
    times the number of weeks in the range.
    """
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    query = db.query(ParticipantVisit).filter(
        ParticipantVisit.scheduled_date >= datetime.combine(start_date, datetime.min.time()),
        ParticipantVisit.scheduled_date < datetime.combine(end_date + timedelta(days=1), datetime.min.time()),
    )
    if coordinator_id is not None:
        query = query.filter(ParticipantVisit.coordinator_id == coordinator_id)
    if study_id is not None:
        query = query.filter(ParticipantVisit.participant.has(Participant.study_id == study_id))
    visits: List[ParticipantVisit] = query.all()

    total = len(visits)
    counts = {s.value: 0 for s in VisitStatus}
    for v in visits:
        counts[v.status] = counts.get(v.status, 0) + 1

    waits = [v.wait_time for v in visits if v.wait_time is not None]
    avg_wait = round(sum(waits) / len(waits), 1) if waits else 0.0

    utilization: Optional[float] = None
    if coordinator_id is not None:
        windows = (
            db.query(CoordinatorAvailability)
            .filter(CoordinatorAvailability.coordinator_id == coordinator_id)
            .all()
        )
        weekly_hours = sum(_window_hours(w) for w in windows)
        weeks = (end_date - start_date).days / 7
        available_hours = weekly_hours * weeks
        booked_hours = counts[VisitStatus.COMPLETED.value] + counts[VisitStatus.SCHEDULED.value]
        utilization = _rate(booked_hours, available_hours)

    by_day = [0] * 7
    by_hour = [0] * 24
    daily: Dict[str, int] = {}
    for v in visits:
        by_day[day_of_week(v.scheduled_date.date())] += 1
        by_hour[v.scheduled_date.hour] += 1
        key = v.scheduled_date.date().isoformat()
        daily[key] = daily.get(key, 0) + 1

    return {
        "summary": {
            "totalVisits": total,
            "scheduledVisits": counts[VisitStatus.SCHEDULED.value],
            "confirmedVisits": counts[VisitStatus.CONFIRMED.value],
            "completedVisits": counts[VisitStatus.COMPLETED.value],
            "cancelledVisits": counts[VisitStatus.CANCELLED.value],
            "noShowVisits": counts[VisitStatus.NO_SHOW.value],
            "completionRate": _rate(counts[VisitStatus.COMPLETED.value], total),
            "noShowRate": _rate(counts[VisitStatus.NO_SHOW.value], total),
            "avgWaitTime": avg_wait,
            "utilizationRate": utilization,
        },
        "distribution": {
            "byDayOfWeek": by_day,
            "byHour": by_hour,
        },
        "trend": {
            "daily": dict(sorted(daily.items())),
        },
    }
