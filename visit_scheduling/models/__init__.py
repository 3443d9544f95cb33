# visit_scheduling/models/__init__.py
from visit_scheduling.models.base import Base  # noqa: F401

from visit_scheduling.models.study import Study, StudyCoordinator, StudyVisit, Participant  # noqa: F401
from visit_scheduling.models.coordinator import (  # noqa: F401
    Coordinator,
    CoordinatorAvailability,
    TimeOffRequest,
)
from visit_scheduling.models.facility import Facility, FacilityBooking  # noqa: F401
from visit_scheduling.models.participant_visit import ParticipantVisit  # noqa: F401
