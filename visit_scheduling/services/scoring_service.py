# visit_scheduling/services/scoring_service.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from visit_scheduling.models.participant_visit import ACTIVE_VISIT_STATUSES, ParticipantVisit

BASE_SCORE = 100
WEEKDAY_BONUS = 15
SAME_DAY_LOAD_PENALTY = 5
SOON_BONUS = 10
SOON_WINDOW = timedelta(days=7)


@dataclass
class CandidateSlot:
    start: datetime
    end: datetime
    coordinator_id: int
    coordinator_name: str
    score: float = 0
    availability: str = "available"


def _time_of_day_bonus(dt: datetime) -> int:
    """
    Morning first, then lunch, then afternoon.

    09:00-12:00  +20
    12:00-14:00  +10
    14:00-17:00  +5
    otherwise     0
    """
    h = dt.hour
    if 9 <= h < 12:
        return 20
    if 12 <= h < 14:
        return 10
    if 14 <= h < 17:
        return 5
    return 0


def coordinator_load(
    coordinator_id: int,
    slot_start: datetime,
    existing_visits: Iterable[ParticipantVisit],
) -> int:
    """Active visits the coordinator already has on the slot's calendar date."""
    day = slot_start.date()
    return sum(
        1
        for v in existing_visits
        if v.coordinator_id == coordinator_id
        and v.status in ACTIVE_VISIT_STATUSES
        and v.scheduled_date.date() == day
    )


def compute_slot_score(
    slot: CandidateSlot,
    existing_visits: Iterable[ParticipantVisit],
    now: datetime,
) -> float:
    """
    Score = 100
            + time-of-day bonus (20 / 10 / 5)
            + 15 on Monday-Friday
            - 5 per visit the coordinator already has that day
            + 10 if the slot starts less than a week from `now`

    Adjustments are independent of each other; the result never goes
    below zero.
    """
    score = BASE_SCORE
    score += _time_of_day_bonus(slot.start)

    if slot.start.weekday() < 5:
        score += WEEKDAY_BONUS

    score -= coordinator_load(slot.coordinator_id, slot.start, existing_visits) * SAME_DAY_LOAD_PENALTY

    if slot.start - now < SOON_WINDOW:
        score += SOON_BONUS

    return float(max(0, score))


def rank_slots(
    slots: List[CandidateSlot],
    existing_visits: List[ParticipantVisit],
    *,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> Tuple[List[CandidateSlot], int]:
    """
    Score every slot and keep the best `limit`.

    Returns (top slots, total number of candidates). Sorting is stable, so
    equal scores keep generation order.
    """
    now = now or datetime.now()
    for slot in slots:
        slot.score = compute_slot_score(slot, existing_visits, now)

    ranked = sorted(slots, key=lambda s: s.score, reverse=True)
    return ranked[:limit], len(slots)
