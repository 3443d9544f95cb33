# tests/conftest.py
import os

# Keep the test database apart from the dev one; must happen before the
# settings are first read.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_visit_scheduling.db")

from datetime import date, time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from visit_scheduling.db.session import SessionLocal, engine
from visit_scheduling.main import app
from visit_scheduling.models import (
    Base,
    Coordinator,
    CoordinatorAvailability,
    Facility,
    Participant,
    Study,
    StudyCoordinator,
    StudyVisit,
)
from visit_scheduling.security import Principal, get_principal
from visit_scheduling.services.notification_service import get_notifier

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)


class FakeNotifier:
    def __init__(self):
        self.scheduled_visit_ids = []

    def visit_scheduled(self, visit) -> None:
        self.scheduled_visit_ids.append(visit.id)


def _clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture
def db():
    _clean_db()
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def world(db):
    """
    One study with:
      - coordinator "Casey Jones" available Mondays 09:00-12:00
      - participant P-001
      - a 60-minute baseline visit template
      - an active exam room
    """
    study = Study(title="Sleep Study", protocol_number="SLP-001")
    db.add(study)
    db.flush()

    coordinator = Coordinator(first_name="Casey", last_name="Jones", email="casey@example.com")
    db.add(coordinator)
    db.flush()

    db.add(StudyCoordinator(study_id=study.id, coordinator_id=coordinator.id, active=True))
    db.add(
        CoordinatorAvailability(
            coordinator_id=coordinator.id,
            day_of_week=1,  # Monday
            start_time=time(9, 0),
            end_time=time(12, 0),
            effective_from=date(2029, 1, 1),
        )
    )

    participant = Participant(
        study_id=study.id,
        participant_code="P-001",
        first_name="Pat",
        last_name="Smith",
        email="pat@example.com",
        phone="+15550001111",
    )
    study_visit = StudyVisit(
        study_id=study.id,
        visit_name="Baseline",
        visit_number=1,
        visit_type="screening",
        duration_minutes=60,
    )
    facility = Facility(name="Exam Room 1", active=True)
    db.add_all([participant, study_visit, facility])
    db.commit()

    return SimpleNamespace(
        study_id=study.id,
        coordinator_id=coordinator.id,
        participant_id=participant.id,
        study_visit_id=study_visit.id,
        facility_id=facility.id,
    )


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(notifier):
    app.dependency_overrides[get_principal] = lambda: Principal(user_id="user-123")
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
