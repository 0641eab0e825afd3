from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.database import get_db
from app.services.sync_service import SyncService, SyncInProgressError
from app.utils.timezone import format_utc_iso, get_utc_now, to_utc_iso
from app.config import get_settings
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_service(db: Session = Depends(get_db)) -> SyncService:
    return SyncService(db, get_settings())


@router.post("")
def trigger_sync(service: SyncService = Depends(get_sync_service)):
    """Run a manual sync. Runs to completion even if the caller disconnects."""
    logger.info("Sync API route called")
    try:
        result = service.run_sync(mode="manual")
    except SyncInProgressError as e:
        return JSONResponse(
            status_code=409,
            content={"error": str(e), "timestamp": to_utc_iso(get_utc_now())}
        )
    except Exception as e:
        logger.error(f"Sync API error: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"error": str(e) or "Unknown error occurred", "timestamp": to_utc_iso(get_utc_now())}
        )

    return result


@router.get("/last")
def last_sync(service: SyncService = Depends(get_sync_service)):
    """Timestamp of the newest successful sync; failed runs are ignored."""
    entry = service.get_last_successful_sync()
    return {"lastSynced": format_utc_iso(entry.synced_at) if entry else None}


@router.get("/logs")
def sync_logs(
    limit: int = Query(20, ge=1, le=200),
    service: SyncService = Depends(get_sync_service)
):
    return [
        {
            "id": entry.id,
            "synced_at": format_utc_iso(entry.synced_at),
            "mode": entry.mode,
            "duration_ms": entry.duration_ms,
            "entries_synced": entry.entries_synced,
            "entries_updated": entry.entries_updated,
            "entries_deleted": entry.entries_deleted,
            "error_message": entry.error_message,
        }
        for entry in service.get_recent_syncs(limit)
    ]
