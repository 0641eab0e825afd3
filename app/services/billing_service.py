from sqlalchemy.orm import Session
from app.models.client import Client
from app.models.team_member import TeamMember
from app.models.time_log import TimeLog
from app.services.time_log_service import TimeLogService
from app.utils.billing_cycle import (
    get_billing_cycle_dates, get_previous_billing_cycle_dates, get_weekly_dates, get_last_week_dates,
    get_billing_cycle_hours, get_weekly_hours, cycle_bounds_utc
)
from app.utils.time_calculations import (
    BUFFER_MULTIPLIER, LeadTimeStrategy, PLTConfig, calculate_billed_hours, calculate_full_plt,
    calculate_progressive_plt, allocated_days_in_cycle, days_elapsed, determine_cycle_type
)
from app.utils.timezone import to_utc_iso
from dataclasses import replace
from datetime import date, datetime
from typing import List, Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

CYCLE_OPTIONS = ("current", "previous", "this-week", "last-week", "custom")
WEEKLY_CYCLES = ("this-week", "last-week")


def resolve_cycle_dates(
    cycle: str,
    start_day: int,
    reference_date: date,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Dict[str, date]:
    if cycle == "current":
        return get_billing_cycle_dates(start_day, reference_date)
    if cycle == "previous":
        return get_previous_billing_cycle_dates(start_day, reference_date)
    if cycle == "this-week":
        return get_weekly_dates(reference_date)
    if cycle == "last-week":
        return get_last_week_dates(reference_date)
    if cycle == "custom":
        start = custom_start or reference_date
        end = custom_end or reference_date
        if end < start:
            raise ValueError("Custom range end is before its start")
        return {"start": start, "end": end}
    raise ValueError(f"Unknown cycle: {cycle}")


def task_breakdown(time_logs: List[TimeLog]) -> List[Dict[str, Any]]:
    """Minutes per ClickUp task, largest first."""
    tasks: Dict[Any, Dict[str, Any]] = {}
    for log in time_logs:
        key = log.clickup_task_id
        if key not in tasks:
            tasks[key] = {
                "clickup_task_id": key,
                "description": log.description,
                "minutes": 0,
                "entries": 0,
            }
        tasks[key]["minutes"] += log.duration_minutes
        tasks[key]["entries"] += 1

    return sorted(tasks.values(), key=lambda t: (-t["minutes"], str(t["clickup_task_id"])))


def _percentage(used: float, allocated: float) -> float:
    return (used / allocated) * 100 if allocated > 0 else 0


class BillingService:
    @staticmethod
    def calculate_client(
        client: Client,
        time_logs: List[TimeLog],
        cycle_start: date,
        cycle_end: date,
        cycle: str,
        reference: datetime,
        include_lead_time: bool = True,
        include_buffer: bool = True,
        use_progressive_plt: bool = True,
        plt_config: PLTConfig = None,
    ) -> Dict[str, Any]:
        """All dashboard figures for one client and one cycle window."""
        plt_config = replace(plt_config or PLTConfig(), enabled=use_progressive_plt)
        weekly_hours = client.weekly_hours
        cycle_type = "weekly" if cycle in WEEKLY_CYCLES else "monthly"
        window_start, window_end = cycle_bounds_utc(cycle_start, cycle_end)

        allocated_hours = get_weekly_hours(weekly_hours) if cycle_type == "weekly" else get_billing_cycle_hours(weekly_hours)
        total_minutes = sum(log.duration_minutes for log in time_logs)

        status = determine_cycle_type(window_start, window_end, reference)
        is_plt_progressive = status.value == "current" and plt_config.enabled and include_lead_time

        progressive_plt_hours = calculate_progressive_plt(
            window_start, window_end, weekly_hours, plt_config, reference, cycle_type
        )
        full_plt_hours = calculate_full_plt(weekly_hours, cycle_type)

        if not include_lead_time:
            strategy = LeadTimeStrategy.NONE
        elif use_progressive_plt:
            strategy = LeadTimeStrategy.PROGRESSIVE
        else:
            strategy = LeadTimeStrategy.FIXED_PER_DAY

        def billed(strategy_, buffer_):
            return calculate_billed_hours(
                total_minutes,
                window_start,
                window_end,
                weekly_hours,
                strategy_,
                cycle_type,
                buffer_,
                use_progressive_plt,
                reference,
                plt_config,
            )

        used_with_lead = billed(strategy, include_buffer)
        used_without_lead = billed(LeadTimeStrategy.NONE, include_buffer)
        used_with_lead_no_buffer = billed(strategy, False)
        used_without_lead_no_buffer = billed(LeadTimeStrategy.NONE, False)

        if is_plt_progressive:
            lead_time_hours = progressive_plt_hours
        elif include_lead_time:
            lead_time_hours = full_plt_hours
        else:
            lead_time_hours = 0.0

        raw_hours = total_minutes / 60

        return {
            "id": client.id,
            "name": client.name,
            "clickup_list_id": client.clickup_list_id,
            "billing_cycle_start_day": client.billing_cycle_start_day,
            "weekly_allocated_hours": weekly_hours,
            "cycle_start": to_utc_iso(window_start),
            "cycle_end": to_utc_iso(window_end),
            "allocated_hours": allocated_hours,
            "used_hours_with_lead_time": used_with_lead,
            "percentage_used_with_lead_time": _percentage(used_with_lead, allocated_hours),
            "used_hours_without_lead_time": used_without_lead,
            "percentage_used_without_lead_time": _percentage(used_without_lead, allocated_hours),
            "used_hours_with_lead_time_no_buffer": used_with_lead_no_buffer,
            "percentage_used_with_lead_time_no_buffer": _percentage(used_with_lead_no_buffer, allocated_hours),
            "used_hours_without_lead_time_no_buffer": used_without_lead_no_buffer,
            "percentage_used_without_lead_time_no_buffer": _percentage(used_without_lead_no_buffer, allocated_hours),
            "raw_hours": raw_hours,
            "buffered_hours": raw_hours * BUFFER_MULTIPLIER,
            "lead_time_hours": lead_time_hours,
            "allocated_days_in_cycle": allocated_days_in_cycle(weekly_hours, cycle_type),
            "progressive_plt_hours": progressive_plt_hours,
            "full_plt_hours": full_plt_hours,
            "plt_days_elapsed": days_elapsed(window_start, reference),
            "plt_total_days": (cycle_end - cycle_start).days + 1,
            "is_plt_progressive": is_plt_progressive,
            "cycle_type": status.value,
            "task_breakdown": task_breakdown(time_logs),
            "time_log_count": len(time_logs),
        }

    @staticmethod
    def get_client_time_data(
        db: Session,
        cycle: str = "current",
        reference: datetime = None,
        include_lead_time: bool = True,
        include_buffer: bool = True,
        use_progressive_plt: bool = True,
        plt_config: PLTConfig = None,
        custom_start: Optional[date] = None,
        custom_end: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        if cycle not in CYCLE_OPTIONS:
            raise ValueError(f"Unknown cycle: {cycle}")

        reference = reference or datetime.now().astimezone()
        clients = db.query(Client).order_by(Client.name, Client.id).all()

        client_time_data = []
        for client in clients:
            if not client.is_billable:
                # Skip clients without proper configuration
                continue

            dates = resolve_cycle_dates(
                cycle, client.billing_cycle_start_day, reference.date(), custom_start, custom_end
            )
            window_start, window_end = cycle_bounds_utc(dates["start"], dates["end"])
            time_logs = TimeLogService.get_logs_in_window(db, client.id, window_start, window_end)

            client_time_data.append(BillingService.calculate_client(
                client,
                time_logs,
                dates["start"],
                dates["end"],
                cycle,
                reference,
                include_lead_time,
                include_buffer,
                use_progressive_plt,
                plt_config,
            ))

        logger.debug(f"Calculated {cycle} figures for {len(client_time_data)} clients")
        return client_time_data

    @staticmethod
    def get_users_map(db: Session) -> Dict[str, str]:
        return {
            member.clickup_user_id: member.username
            for member in db.query(TeamMember).all()
            if member.clickup_user_id and member.username
        }
