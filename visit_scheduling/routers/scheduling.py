# visit_scheduling/routers/scheduling.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from visit_scheduling.db.session import get_db
from visit_scheduling.errors import SchedulingError
from visit_scheduling.models.participant_visit import VisitStatus
from visit_scheduling.schemas.scheduling import (
    CandidateSlotOut,
    SlotSearchOut,
    VisitCreate,
    VisitFilters,
    VisitOut,
    VisitUpdate,
)
from visit_scheduling.security import Principal, get_principal
from visit_scheduling.services import booking_service
from visit_scheduling.services.notification_service import (
    Notifier,
    get_notifier,
    notify_visit_scheduled,
)
from visit_scheduling.services.slot_service import find_available_slots

router = APIRouter(
    prefix="/scheduling",
    tags=["scheduling"],
    dependencies=[Depends(get_principal)],
)


@router.get("/slots", response_model=SlotSearchOut)
def get_available_slots(
    study_visit_id: int = Query(..., alias="studyVisitId"),
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    duration: int = Query(60, gt=0, description="minutes"),
    db: Session = Depends(get_db),
):
    """
    Ranked candidate slots for a study visit.

    Looks at every active coordinator of the owning study across the
    inclusive date range and returns the best 20, plus how many feasible
    slots were found overall.
    """
    try:
        result = find_available_slots(
            db,
            study_visit_id=study_visit_id,
            start_date=start_date,
            end_date=end_date,
            duration_minutes=duration,
        )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return SlotSearchOut(
        slots=[CandidateSlotOut.model_validate(s) for s in result.slots],
        total_slots_found=result.total_slots_found,
    )


@router.get("/visits", response_model=List[VisitOut])
def get_visits(
    coordinator_id: Optional[int] = Query(None, alias="coordinatorId"),
    participant_id: Optional[int] = Query(None, alias="participantId"),
    study_id: Optional[int] = Query(None, alias="studyId"),
    status: Optional[VisitStatus] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    filters = VisitFilters(
        coordinator_id=coordinator_id,
        participant_id=participant_id,
        study_id=study_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    return booking_service.list_visits(db, filters)


@router.post("/visits", response_model=VisitOut, status_code=201)
def schedule_visit(
    payload: VisitCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Book a visit, optionally reserving a facility for its duration.

    - 400 when participantId, studyVisitId or scheduledDate is missing
    - 404 when a referenced record does not exist
    - 409 when the participant already has an active visit for this study
      visit, or the facility is taken
    """
    try:
        visit = booking_service.create_visit(
            db,
            participant_id=payload.participant_id,
            study_visit_id=payload.study_visit_id,
            scheduled_date=payload.scheduled_date,
            coordinator_id=payload.coordinator_id,
            facility_id=payload.facility_id,
            scheduling_method=payload.scheduling_method.value if payload.scheduling_method else None,
            notes=payload.notes,
            booked_by=principal.user_id,
        )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    notify_visit_scheduled(notifier, visit)
    return visit


@router.patch("/visits", response_model=VisitOut)
def update_visit(
    payload: VisitUpdate,
    db: Session = Depends(get_db),
):
    """
    Reschedule, reassign, confirm, check in/out, complete, cancel or mark
    a visit as no-show.
    """
    if payload.id is None:
        raise HTTPException(status_code=400, detail="Missing visit ID")

    try:
        return booking_service.update_visit(db, payload.id, payload)
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
