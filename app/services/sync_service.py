from sqlalchemy.orm import Session
from app.config import Settings, get_settings
from app.models.client import Client
from app.models.sync_log import SyncLog
from app.models.team_member import TeamMember
from app.services.clickup_service import ClickUpClient
from app.services.reconciliation import reconcile
from app.services.time_log_service import TimeLogService
from app.utils.timezone import get_utc_now, to_epoch_millis, to_naive_utc, to_utc_iso
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional
import threading
import logging
import time

logger = logging.getLogger(__name__)

SYNC_MODES = ("auto", "manual")

# Guards against two runs overlapping inside one process
_sync_lock = threading.Lock()


class SyncInProgressError(Exception):
    """Raised when a sync is requested while another one is still running."""


@dataclass(frozen=True)
class SyncWindow:
    """Look-back window shared by the ClickUp query and the local query."""

    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, end: datetime, lookback_days: int) -> "SyncWindow":
        # Whole milliseconds, so the local bounds equal the ClickUp query bounds
        end = end.replace(microsecond=end.microsecond // 1000 * 1000)
        return cls(start=end - timedelta(days=lookback_days), end=end)

    @property
    def start_ms(self) -> int:
        return to_epoch_millis(self.start)

    @property
    def end_ms(self) -> int:
        return to_epoch_millis(self.end)


class SyncService:
    def __init__(self, db: Session, settings: Settings = None, clickup_client: Optional[ClickUpClient] = None, clock=None):
        self.db = db
        self.settings = settings or get_settings()
        self._clickup_client = clickup_client
        self.clock = clock or get_utc_now

    @property
    def clickup_client(self) -> ClickUpClient:
        if self._clickup_client is None:
            self._clickup_client = ClickUpClient(self.settings)
        return self._clickup_client

    def get_sync_clients(self) -> List[Client]:
        clients = self.db.query(Client).filter(
            Client.clickup_list_id.isnot(None)
        ).order_by(Client.id).all()

        eligible = []
        for client in clients:
            if client.is_billable:
                eligible.append(client)
            else:
                logger.info(f"Skipping client {client.name} (id={client.id}): billing start day or weekly hours not set")
        return eligible

    def get_assignee_ids(self) -> List[str]:
        rows = self.db.query(TeamMember.clickup_user_id).order_by(TeamMember.clickup_user_id).all()
        return [row[0] for row in rows if row[0]]

    def sync_client(self, client: Client, assignee_ids: List[str]) -> Dict[str, Any]:
        """Reconcile one client. Errors propagate to the caller."""
        window = SyncWindow.ending_at(self.clock(), self.settings.clickup_sync_days)

        logger.info(f"Syncing time entries for client: {client.name} (List ID: {client.clickup_list_id})")
        remote_entries = self.clickup_client.fetch_remote_entries(
            client.clickup_list_id,
            window.start_ms,
            window.end_ms,
            assignee_ids
        )

        local_entries = TimeLogService.get_local_entries(self.db, client.id, window.start, window.end)

        # An entry whose start moved into the window still has its row outside it
        known_ids = {entry.clickup_time_entry_id for entry in local_entries if entry.is_keyed}
        missing_ids = sorted({entry.clickup_time_entry_id for entry in remote_entries} - known_ids)
        local_entries += TimeLogService.get_keyed_entries(self.db, client.id, missing_ids)

        plan = reconcile(client.id, remote_entries, local_entries)
        counts = TimeLogService.apply_plan(self.db, plan)

        logger.info(
            f"Processed {len(remote_entries)} time entries for {client.name}: "
            f"{counts['inserted']} inserted, {counts['updated']} updated, {counts['deleted']} deleted"
        )
        return {
            "client": client.name,
            "synced": counts["inserted"],
            "updated": counts["updated"],
            "deleted": counts["deleted"],
        }

    def _record(self, mode: str, started: float, synced: int = 0, updated: int = 0, deleted: int = 0, error: str = None) -> Optional[SyncLog]:
        try:
            entry = SyncLog(
                synced_at=to_naive_utc(self.clock()),
                mode=mode,
                duration_ms=int((time.monotonic() - started) * 1000),
                entries_synced=synced,
                entries_updated=updated,
                entries_deleted=deleted,
                error_message=error,
            )
            self.db.add(entry)
            self.db.commit()
            logger.info(f"Logged {mode} sync operation to sync_logs")
            return entry
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to log sync operation: {str(e)}", exc_info=True)
            return None

    def run_sync(self, mode: str = "manual") -> Dict[str, Any]:
        """
        Sync every eligible client and write one audit row.

        Returns ``{message, results, timestamp}``. Failures outside a single
        client (settings, loading clients, an overlapping run) are recorded
        with zero counts and re-raised.
        """
        if mode not in SYNC_MODES:
            raise ValueError(f"Unknown sync mode: {mode}")

        started = time.monotonic()
        logger.info(f"=== STARTING {mode.upper()} CLICKUP SYNC ===")

        if not _sync_lock.acquire(blocking=False):
            error = SyncInProgressError("A sync is already running")
            self._record(mode, started, error=str(error))
            raise error

        try:
            try:
                self.settings.validate_sync_settings()
                clients = self.get_sync_clients()
                assignee_ids = self.get_assignee_ids()
            except Exception as e:
                logger.error(f"💥 Sync failed before processing clients: {str(e)}", exc_info=True)
                self._record(mode, started, error=str(e) or type(e).__name__)
                raise

            logger.info(f"Fetching time entries for {len(clients)} clients and users: {','.join(assignee_ids)}")

            total_synced = total_updated = total_deleted = 0
            results = []

            for client in clients:
                try:
                    result = self.sync_client(client, assignee_ids)
                except Exception as e:
                    self.db.rollback()
                    logger.error(f"Error syncing client {client.name}: {str(e)}")
                    results.append({
                        "client": client.name,
                        "synced": 0,
                        "updated": 0,
                        "deleted": 0,
                        "error": str(e) or type(e).__name__,
                    })
                    continue

                total_synced += result["synced"]
                total_updated += result["updated"]
                total_deleted += result["deleted"]
                results.append(result)

            self._record(mode, started, total_synced, total_updated, total_deleted)

            execution_time = time.monotonic() - started
            logger.info(f"=== SYNC COMPLETED in {execution_time:.2f} seconds ===")

            return {
                "message": f"Sync completed. Entries: {total_synced} inserted, {total_updated} updated, {total_deleted} deleted",
                "results": results,
                "timestamp": to_utc_iso(self.clock()),
            }
        finally:
            _sync_lock.release()

    def get_last_successful_sync(self) -> Optional[SyncLog]:
        return self.db.query(SyncLog).filter(
            SyncLog.error_message.is_(None)
        ).order_by(SyncLog.synced_at.desc(), SyncLog.id.desc()).first()

    def get_recent_syncs(self, limit: int = 20) -> List[SyncLog]:
        return self.db.query(SyncLog).order_by(SyncLog.synced_at.desc(), SyncLog.id.desc()).limit(limit).all()
