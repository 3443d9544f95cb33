# visit_scheduling/routers/availability.py
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from visit_scheduling.db.session import get_db
from visit_scheduling.errors import SchedulingError
from visit_scheduling.schemas.availability import AvailabilityCreate, AvailabilityOut
from visit_scheduling.security import get_principal
from visit_scheduling.services import availability_service

router = APIRouter(
    prefix="/scheduling/availability",
    tags=["availability"],
    dependencies=[Depends(get_principal)],
)


@router.get("", response_model=List[AvailabilityOut])
def get_availability(
    coordinator_id: Optional[int] = Query(None, alias="coordinatorId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    db: Session = Depends(get_db),
):
    """Weekly windows, optionally only those in effect on `startDate`."""
    return availability_service.list_availability(
        db, coordinator_id=coordinator_id, on_date=start_date
    )


@router.post("", response_model=AvailabilityOut, status_code=201)
def create_availability(
    payload: AvailabilityCreate,
    db: Session = Depends(get_db),
):
    try:
        return availability_service.create_availability(db, **payload.model_dump())
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("")
def delete_availability(
    availability_id: int = Query(..., alias="id"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        availability_service.delete_availability(db, availability_id)
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Availability deleted successfully"}
