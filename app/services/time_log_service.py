from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.models.time_log import TimeLog
from app.services.reconciliation import LocalEntry, ReconciliationPlan
from app.utils.timezone import parse_utc_iso, to_naive_utc, to_utc_iso
from datetime import datetime
from typing import List, Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert reconciler values (ISO start times) into column values."""
    values = dict(fields)
    if isinstance(values.get("start_time"), str):
        values["start_time"] = to_naive_utc(parse_utc_iso(values["start_time"]))
    return values


class TimeLogService:
    @staticmethod
    def to_local_entry(log: TimeLog) -> LocalEntry:
        return LocalEntry(
            id=log.id,
            clickup_time_entry_id=log.clickup_time_entry_id,
            clickup_task_id=log.clickup_task_id,
            clickup_user_id=log.clickup_user_id,
            start_time=to_utc_iso(log.start_time),
            duration_minutes=log.duration_minutes,
            description=log.description,
        )

    @staticmethod
    def get_logs_in_window(
        db: Session,
        client_id: int,
        start: datetime,
        end: datetime
    ) -> List[TimeLog]:
        """Time logs for a client with start <= start_time <= end (inclusive)."""
        return db.query(TimeLog).filter(
            TimeLog.client_id == client_id,
            TimeLog.start_time >= to_naive_utc(start),
            TimeLog.start_time <= to_naive_utc(end)
        ).order_by(TimeLog.start_time).all()

    @staticmethod
    def get_local_entries(
        db: Session,
        client_id: int,
        start: datetime,
        end: datetime
    ) -> List[LocalEntry]:
        logs = TimeLogService.get_logs_in_window(db, client_id, start, end)
        return [TimeLogService.to_local_entry(log) for log in logs]

    @staticmethod
    def get_keyed_entries(
        db: Session,
        client_id: int,
        entry_ids: List[str]
    ) -> List[LocalEntry]:
        """Rows for a client carrying any of the given ClickUp ids, whatever their start_time."""
        if not entry_ids:
            return []
        logs = db.query(TimeLog).filter(
            TimeLog.client_id == client_id,
            TimeLog.clickup_time_entry_id.in_(entry_ids)
        ).order_by(TimeLog.id).all()
        return [TimeLogService.to_local_entry(log) for log in logs]

    @staticmethod
    def list_time_logs(
        db: Session,
        client_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[TimeLog]:
        """Newest first, optionally filtered by client and start_time range."""
        query = db.query(TimeLog)

        if client_id is not None:
            query = query.filter(TimeLog.client_id == client_id)
        if start is not None:
            query = query.filter(TimeLog.start_time >= to_naive_utc(start))
        if end is not None:
            query = query.filter(TimeLog.start_time <= to_naive_utc(end))

        return query.order_by(TimeLog.start_time.desc()).all()

    @staticmethod
    def apply_plan(db: Session, plan: ReconciliationPlan) -> Dict[str, int]:
        """
        Write a reconciliation plan row by row.

        Each write is committed on its own. A failed write is rolled back and
        logged and the remaining rows are still attempted, so the returned
        counts only include writes that succeeded.
        """
        inserted = updated = deleted = 0

        for item in plan.inserts:
            try:
                log = TimeLog(**_column_values(vars(item)))
                db.add(log)
                db.commit()
                inserted += 1
                logger.debug(f"Inserted new time entry: {item.clickup_time_entry_id}")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to insert time entry {item.clickup_time_entry_id} for client {plan.client_id}: {str(e)}")

        for item in plan.updates:
            try:
                count = db.query(TimeLog).filter(TimeLog.id == item.time_log_id).update(
                    _column_values(item.patch), synchronize_session=False
                )
                db.commit()
                if count:
                    updated += 1
                    if item.claimed:
                        logger.debug(f"Updated existing time entry with ClickUp ID: {item.clickup_time_entry_id}")
                    else:
                        logger.debug(f"Updated time entry: {item.clickup_time_entry_id}")
                else:
                    logger.warning(f"Time log {item.time_log_id} vanished before update")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to update time log {item.time_log_id} for client {plan.client_id}: {str(e)}")

        for time_log_id in plan.deletes:
            try:
                count = db.query(TimeLog).filter(TimeLog.id == time_log_id).delete(synchronize_session=False)
                db.commit()
                deleted += count
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to delete time log {time_log_id} for client {plan.client_id}: {str(e)}")

        return {"inserted": inserted, "updated": updated, "deleted": deleted}

    @staticmethod
    def serialize(log: TimeLog) -> Dict[str, Any]:
        return {
            "id": log.id,
            "client_id": log.client_id,
            "clickup_time_entry_id": log.clickup_time_entry_id,
            "clickup_task_id": log.clickup_task_id,
            "clickup_user_id": log.clickup_user_id,
            "start_time": to_utc_iso(log.start_time),
            "duration_minutes": log.duration_minutes,
            "description": log.description,
        }
