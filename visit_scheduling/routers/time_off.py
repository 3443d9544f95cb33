# visit_scheduling/routers/time_off.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from visit_scheduling.db.session import get_db
from visit_scheduling.errors import SchedulingError
from visit_scheduling.schemas.availability import TimeOffCreate, TimeOffOut, TimeOffReview
from visit_scheduling.security import Principal, get_principal
from visit_scheduling.services import availability_service

router = APIRouter(
    prefix="/scheduling/time-off",
    tags=["time-off"],
    dependencies=[Depends(get_principal)],
)


@router.get("", response_model=List[TimeOffOut])
def get_time_off(
    coordinator_id: Optional[int] = Query(None, alias="coordinatorId"),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return availability_service.list_time_off(db, coordinator_id=coordinator_id, status=status)


@router.post("", response_model=TimeOffOut, status_code=201)
def request_time_off(
    payload: TimeOffCreate,
    db: Session = Depends(get_db),
):
    """New requests start out `pending` and do not block slots until approved."""
    try:
        return availability_service.create_time_off(db, **payload.model_dump())
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("", response_model=TimeOffOut)
def review_time_off(
    payload: TimeOffReview,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    if payload.id is None or not payload.status:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        return availability_service.review_time_off(
            db,
            payload.id,
            status=payload.status,
            reviewer_id=principal.user_id,
            approver_id=payload.approver_id,
        )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
