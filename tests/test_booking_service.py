# tests/test_booking_service.py
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from visit_scheduling.errors import ConflictError, MissingFieldError, NotFoundError
from visit_scheduling.models import Facility, FacilityBooking, Participant, ParticipantVisit
from visit_scheduling.schemas.scheduling import VisitFilters, VisitUpdate
from visit_scheduling.services import booking_service
from visit_scheduling.services.booking_service import create_visit, list_visits, update_visit

MONDAY_9 = datetime(2030, 1, 7, 9, 0)


def _book(db, world, **overrides):
    params = dict(
        participant_id=world.participant_id,
        study_visit_id=world.study_visit_id,
        scheduled_date=MONDAY_9,
        coordinator_id=world.coordinator_id,
        booked_by="user-123",
    )
    params.update(overrides)
    return create_visit(db, **params)


def test_create_visit_defaults(db, world):
    visit = _book(db, world, notes="Fasting required")

    assert visit.status == "scheduled"
    assert visit.scheduling_method == "manual"
    assert visit.notes == "Fasting required"
    assert visit.participant.participant_code == "P-001"
    assert visit.study_visit.visit_name == "Baseline"
    assert visit.assigned_coordinator.display_name == "Casey Jones"
    assert visit.facility_bookings == []


def test_create_visit_requires_fields(db, world):
    with pytest.raises(MissingFieldError) as exc:
        create_visit(
            db,
            participant_id=None,
            study_visit_id=world.study_visit_id,
            scheduled_date=None,
            booked_by="user-123",
        )
    assert exc.value.fields == ["participantId", "scheduledDate"]


def test_create_visit_unknown_references(db, world):
    with pytest.raises(NotFoundError):
        _book(db, world, participant_id=9999)
    with pytest.raises(NotFoundError):
        _book(db, world, study_visit_id=9999)
    with pytest.raises(NotFoundError):
        _book(db, world, coordinator_id=9999)
    with pytest.raises(NotFoundError):
        _book(db, world, facility_id=9999)


def test_second_active_booking_for_same_pair_conflicts(db, world):
    _book(db, world)

    with pytest.raises(ConflictError):
        _book(db, world, scheduled_date=MONDAY_9 + timedelta(days=7))

    assert db.query(ParticipantVisit).count() == 1


def test_rebooking_allowed_after_terminal_status(db, world):
    first = _book(db, world)
    update_visit(db, first.id, VisitUpdate(status="cancelled"))

    second = _book(db, world, scheduled_date=MONDAY_9 + timedelta(days=7))
    assert second.id != first.id
    assert second.status == "scheduled"


def test_unique_index_rejects_concurrent_active_duplicate(db, world):
    _book(db, world)

    # Simulates a writer that skipped the pre-check
    db.add(
        ParticipantVisit(
            participant_id=world.participant_id,
            study_visit_id=world.study_visit_id,
            scheduled_date=MONDAY_9,
            status="confirmed",
        )
    )
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_facility_booking_created_with_visit(db, world):
    visit = _book(db, world, facility_id=world.facility_id)

    bookings = db.query(FacilityBooking).all()
    assert len(bookings) == 1
    booking = bookings[0]
    assert booking.participant_visit_id == visit.id
    assert booking.start_time == MONDAY_9
    assert booking.end_time == MONDAY_9 + timedelta(minutes=60)
    assert booking.purpose == "Visit: Baseline"
    assert booking.booked_by == "user-123"
    assert booking.status == "booked"
    assert visit.facility_bookings[0].facility.name == "Exam Room 1"


def test_overlapping_facility_booking_conflicts_and_writes_nothing(db, world):
    _book(db, world, facility_id=world.facility_id)

    other = Participant(study_id=world.study_id, participant_code="P-002", first_name="Sam", last_name="Lee")
    db.add(other)
    db.commit()

    with pytest.raises(ConflictError):
        _book(
            db,
            world,
            participant_id=other.id,
            scheduled_date=MONDAY_9 + timedelta(minutes=30),
            facility_id=world.facility_id,
        )
    assert db.query(ParticipantVisit).count() == 1
    assert db.query(FacilityBooking).count() == 1

    # back-to-back is fine
    _book(
        db,
        world,
        participant_id=other.id,
        scheduled_date=MONDAY_9 + timedelta(minutes=60),
        facility_id=world.facility_id,
    )
    assert db.query(FacilityBooking).count() == 2


def test_inactive_facility_is_not_bookable(db, world):
    facility = db.get(Facility, world.facility_id)
    facility.active = False
    db.commit()

    with pytest.raises(NotFoundError):
        _book(db, world, facility_id=world.facility_id)
    assert db.query(ParticipantVisit).count() == 0


def test_list_visits_filters_and_orders(db, world):
    other = Participant(study_id=world.study_id, participant_code="P-002", first_name="Sam", last_name="Lee")
    db.add(other)
    db.commit()

    later = _book(db, world, participant_id=other.id, scheduled_date=MONDAY_9 + timedelta(days=1))
    earlier = _book(db, world)

    assert [v.id for v in list_visits(db)] == [earlier.id, later.id]
    assert [v.id for v in list_visits(db, VisitFilters(participant_id=other.id))] == [later.id]
    assert [v.id for v in list_visits(db, VisitFilters(study_id=world.study_id))] == [earlier.id, later.id]
    assert list_visits(db, VisitFilters(study_id=9999)) == []
    assert list_visits(db, VisitFilters(status="confirmed")) == []

    day_one = VisitFilters(start_date=date(2030, 1, 7), end_date=date(2030, 1, 7))
    assert [v.id for v in list_visits(db, day_one)] == [earlier.id]

    # a lone start date is ignored
    assert len(list_visits(db, VisitFilters(start_date=date(2030, 1, 8)))) == 2


def test_status_transitions(db, world):
    visit = _book(db, world)

    visit = update_visit(db, visit.id, VisitUpdate(status="confirmed"))
    assert visit.status == "confirmed"

    visit = update_visit(db, visit.id, VisitUpdate(status="completed"))
    assert visit.status == "completed"
    assert visit.completed_date is not None

    with pytest.raises(ConflictError):
        update_visit(db, visit.id, VisitUpdate(status="scheduled"))
    with pytest.raises(ConflictError):
        update_visit(db, visit.id, VisitUpdate(status="cancelled"))


def test_completion_keeps_supplied_completed_date(db, world):
    visit = _book(db, world)
    done_at = datetime(2030, 1, 7, 10, 15)

    visit = update_visit(db, visit.id, VisitUpdate(status="completed", completed_date=done_at))
    assert visit.completed_date == done_at


def test_confirmed_cannot_go_back_to_scheduled(db, world):
    visit = _book(db, world)
    update_visit(db, visit.id, VisitUpdate(status="confirmed"))

    with pytest.raises(ConflictError):
        update_visit(db, visit.id, VisitUpdate(status="scheduled"))


def test_no_show_records_reason_and_releases_facility(db, world):
    visit = _book(db, world, facility_id=world.facility_id)

    visit = update_visit(
        db, visit.id, VisitUpdate(status="no_show", no_show_reason="Did not answer phone")
    )
    assert visit.status == "no_show"
    assert visit.no_show_reason == "Did not answer phone"
    assert visit.facility_bookings[0].status == "cancelled"


def test_wait_time_from_same_call_check_in(db, world):
    visit = _book(db, world)

    visit = update_visit(
        db,
        visit.id,
        VisitUpdate(
            check_in_time=MONDAY_9 + timedelta(minutes=17, seconds=40),
            check_out_time=MONDAY_9 + timedelta(minutes=80),
        ),
    )
    assert visit.wait_time == 17


def test_wait_time_rereads_stored_check_in(db, world):
    visit = _book(db, world)

    update_visit(db, visit.id, VisitUpdate(check_in_time=MONDAY_9 + timedelta(minutes=12)))
    visit = update_visit(db, visit.id, VisitUpdate(check_out_time=MONDAY_9 + timedelta(minutes=70)))

    assert visit.wait_time == 12
    assert visit.check_out_time == MONDAY_9 + timedelta(minutes=70)


def test_check_out_without_check_in_leaves_wait_time_empty(db, world):
    visit = _book(db, world)
    visit = update_visit(db, visit.id, VisitUpdate(check_out_time=MONDAY_9 + timedelta(minutes=70)))
    assert visit.wait_time is None


def test_early_check_in_gives_negative_wait_time(db, world):
    visit = _book(db, world)
    visit = update_visit(
        db,
        visit.id,
        VisitUpdate(
            check_in_time=MONDAY_9 - timedelta(minutes=5),
            check_out_time=MONDAY_9 + timedelta(minutes=60),
        ),
    )
    assert visit.wait_time == -5


def test_reschedule_moves_facility_booking_and_reassigns(db, world):
    visit = _book(db, world, facility_id=world.facility_id)
    new_time = datetime.combine(date(2030, 1, 14), time(10, 0))

    visit = update_visit(
        db,
        visit.id,
        VisitUpdate(scheduled_date=new_time, coordinator_id=None, notes="Moved by phone"),
    )

    assert visit.scheduled_date == new_time
    assert visit.coordinator_id is None
    assert visit.notes == "Moved by phone"
    booking = visit.facility_bookings[0]
    assert booking.start_time == new_time
    assert booking.end_time == new_time + timedelta(minutes=60)


def test_partial_update_leaves_unset_fields_alone(db, world):
    visit = _book(db, world, notes="keep me")
    visit = update_visit(db, visit.id, VisitUpdate(status="confirmed"))

    assert visit.notes == "keep me"
    assert visit.coordinator_id == world.coordinator_id


def test_update_unknown_visit(db, world):
    with pytest.raises(NotFoundError):
        update_visit(db, 9999, VisitUpdate(notes="x"))


def test_cannot_reschedule_cancelled_visit(db, world):
    visit = _book(db, world)
    update_visit(db, visit.id, VisitUpdate(status="cancelled"))

    with pytest.raises(ConflictError):
        update_visit(db, visit.id, VisitUpdate(scheduled_date=MONDAY_9 + timedelta(days=1)))


def test_failed_facility_insert_rolls_back_visit_and_is_not_a_conflict(db, world):
    # booked_by is NOT NULL on facility bookings, so the second insert fails
    with pytest.raises(IntegrityError):
        _book(db, world, facility_id=world.facility_id, booked_by=None)

    assert db.query(ParticipantVisit).count() == 0
    assert db.query(FacilityBooking).count() == 0


def test_concurrent_duplicate_caught_by_index_is_a_conflict(db, world, monkeypatch):
    _book(db, world)

    real_lookup = booking_service._active_visit_for
    calls = []

    def stale_then_real(*args):
        calls.append(args)
        # The first lookup runs before the other writer's visit is visible
        return None if len(calls) == 1 else real_lookup(*args)

    monkeypatch.setattr(booking_service, "_active_visit_for", stale_then_real)

    with pytest.raises(ConflictError):
        _book(db, world, scheduled_date=MONDAY_9 + timedelta(days=7))

    assert len(calls) == 2
    assert db.query(ParticipantVisit).count() == 1


def test_reschedule_conflict_moves_no_booking(db, world):
    visit = _book(db, world, facility_id=world.facility_id)

    second_room = Facility(name="Exam Room 2", active=True)
    other = Participant(study_id=world.study_id, participant_code="P-002", first_name="Sam", last_name="Lee")
    db.add_all([second_room, other])
    db.commit()
    db.add(
        FacilityBooking(
            facility_id=second_room.id,
            participant_visit_id=visit.id,
            start_time=MONDAY_9 + timedelta(minutes=30),
            end_time=MONDAY_9 + timedelta(minutes=90),
            purpose="Visit: Baseline",
            booked_by="user-123",
            status="booked",
        )
    )
    db.commit()

    tuesday_9 = MONDAY_9 + timedelta(days=1)
    _book(db, world, participant_id=other.id, scheduled_date=tuesday_9, facility_id=second_room.id)

    with pytest.raises(ConflictError):
        update_visit(db, visit.id, VisitUpdate(scheduled_date=tuesday_9))

    # Whatever the session still holds must not have moved the first room
    db.commit()
    db.expire_all()
    first_room_booking = (
        db.query(FacilityBooking)
        .filter(
            FacilityBooking.participant_visit_id == visit.id,
            FacilityBooking.facility_id == world.facility_id,
        )
        .one()
    )
    assert first_room_booking.start_time == MONDAY_9
    assert db.get(ParticipantVisit, visit.id).scheduled_date == MONDAY_9
