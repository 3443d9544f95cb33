from sqlalchemy import text
from sqlalchemy.orm import Session

from visit_scheduling.db.session import engine, SessionLocal
from visit_scheduling.models import Base, Coordinator


def test_db_can_create_schema():
    # Ensure metadata can create tables
    Base.metadata.create_all(bind=engine)

    # Simple connectivity test
    with engine.connect() as conn:
        result = conn.execute(text("SELECT 1"))
        assert result.scalar() == 1


def test_create_and_read_coordinator():
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        # Clean slate so the unique email does not collide between runs
        db.query(Coordinator).delete()
        db.commit()

        coordinator = Coordinator(first_name="Test", last_name="Coordinator", email="test@example.com")
        db.add(coordinator)
        db.commit()
        db.refresh(coordinator)

        assert coordinator.id is not None

        fetched = db.query(Coordinator).filter_by(email="test@example.com").first()
        assert fetched is not None
        assert fetched.display_name == "Test Coordinator"
    finally:
        db.close()
