from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.services.billing_service import BillingService, CYCLE_OPTIONS
from app.services.time_log_service import TimeLogService
from app.utils.time_calculations import validate_plt_config
from app.config import get_settings
from datetime import date, datetime
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["dashboard"])


@router.get("/dashboard")
def dashboard(
    cycle: str = Query("current"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_lead_time: bool = True,
    include_buffer: bool = True,
    use_progressive_plt: bool = True,
    db: Session = Depends(get_db)
):
    if cycle not in CYCLE_OPTIONS:
        raise HTTPException(status_code=422, detail=f"cycle must be one of: {', '.join(CYCLE_OPTIONS)}")

    plt_config = get_settings().plt_config()
    if not validate_plt_config(plt_config):
        logger.warning(f"PLT settings out of range: {plt_config}")

    try:
        clients = BillingService.get_client_time_data(
            db,
            cycle=cycle,
            reference=datetime.now().astimezone(),
            include_lead_time=include_lead_time,
            include_buffer=include_buffer,
            use_progressive_plt=use_progressive_plt,
            plt_config=plt_config,
            custom_start=start_date,
            custom_end=end_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "cycle": cycle,
        "clients": clients,
        "users": BillingService.get_users_map(db),
    }


@router.get("/timelogs")
def time_logs(
    client_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db)
):
    logs = TimeLogService.list_time_logs(db, client_id, start_date, end_date)
    return [TimeLogService.serialize(log) for log in logs]
