# scripts/find_slots.py
"""
Print ranked visit slots from the command line.

Handy for checking coordinator availability data without going through
the API, e.g.:

    python scripts/find_slots.py --study-visit-id 3 --start 2030-01-07 --end 2030-01-11
"""

from __future__ import annotations

import argparse
from datetime import date

from visit_scheduling.db.session import SessionLocal
from visit_scheduling.errors import SchedulingError
from visit_scheduling.logging_config import setup_logging
from visit_scheduling.services.slot_service import find_available_slots


def run_once(study_visit_id: int, start: date, end: date, duration: int | None = None) -> int:
    db = SessionLocal()
    try:
        try:
            result = find_available_slots(
                db,
                study_visit_id=study_visit_id,
                start_date=start,
                end_date=end,
                duration_minutes=duration,
            )
        except SchedulingError as e:
            print(f"[find_slots] {e}")
            return 1

        print(
            f"[find_slots] {result.total_slots_found} slots found, "
            f"showing {len(result.slots)}"
        )
        for slot in result.slots:
            print(
                f"{slot.start:%Y-%m-%d %a %H:%M}-{slot.end:%H:%M}  "
                f"{slot.coordinator_name:<24} score={slot.score:g}"
            )
        return 0

    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="List ranked slots for a study visit")
    parser.add_argument("--study-visit-id", type=int, required=True)
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, required=True, help="YYYY-MM-DD, inclusive")
    parser.add_argument(
        "--duration",
        type=int,
        default=None,
        help="Visit length in minutes (default 60)",
    )
    args = parser.parse_args()

    setup_logging()
    raise SystemExit(run_once(args.study_visit_id, args.start, args.end, args.duration))


if __name__ == "__main__":
    main()
