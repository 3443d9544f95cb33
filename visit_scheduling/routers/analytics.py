# visit_scheduling/routers/analytics.py
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from visit_scheduling.db.session import get_db
from visit_scheduling.errors import SchedulingError
from visit_scheduling.security import get_principal
from visit_scheduling.services.analytics_service import scheduling_summary

router = APIRouter(
    prefix="/scheduling/analytics",
    tags=["analytics"],
    dependencies=[Depends(get_principal)],
)


@router.get("")
def get_scheduling_analytics(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    coordinator_id: Optional[int] = Query(None, alias="coordinatorId"),
    study_id: Optional[int] = Query(None, alias="studyId"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    try:
        return scheduling_summary(
            db,
            start_date=start_date,
            end_date=end_date,
            coordinator_id=coordinator_id,
            study_id=study_id,
        )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
