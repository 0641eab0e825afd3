from app.config import Settings, get_settings
from app.services.reconciliation import RemoteEntry
from app.utils.timezone import epoch_millis_to_utc, to_utc_iso
from typing import List, Dict, Any, Optional
import requests
import logging
import json
import math

logger = logging.getLogger(__name__)


class ClickUpApiError(Exception):
    """User-friendly ClickUp API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _describe_http_error(response: requests.Response) -> str:
    status = response.status_code

    messages = {
        401: "ClickUp: Authentication failed. Check CLICKUP_PERSONAL_TOKEN!",
        403: "ClickUp: Access denied. Check the token's workspace permissions!",
        404: "ClickUp: Resource not found. Check the team and list IDs!",
        429: "ClickUp: Rate limit reached. Wait a moment and try again.",
        500: "ClickUp: Server error. The service may be temporarily unavailable.",
        502: "ClickUp: Bad gateway. The service may be temporarily unavailable.",
        503: "ClickUp: Service unavailable. Try again later.",
    }

    message = messages.get(status, f"ClickUp: HTTP {status} - {response.reason}")
    body = (response.text or "").strip()
    if body:
        message = f"{message} ({body[:200]})"
    return message


def validate_list_id(list_id: Optional[str]) -> int:
    """ClickUp list ids are numeric; anything else is a per-client error."""
    try:
        return int(str(list_id).strip())
    except (TypeError, ValueError):
        raise ClickUpApiError(f"Invalid list ID: {list_id} - must be a valid integer")


def minutes_from_millis(duration_ms: Any) -> int:
    """Convert a millisecond duration (int or string) to whole minutes, rounding half up."""
    minutes = int(duration_ms) / (1000 * 60)
    return max(0, math.floor(minutes + 0.5))


def parse_time_entry(raw: Dict[str, Any]) -> RemoteEntry:
    """Map a raw ClickUp time entry onto the fields stored in TimeLogs."""
    task = raw.get("task") or {}
    if not isinstance(task, dict):
        task = {}
    user = raw.get("user") or {}

    if raw.get("id") is None or user.get("id") is None or raw.get("start") is None:
        raise ClickUpApiError(f"Malformed time entry: {json.dumps(raw)[:200]}")

    task_id = task.get("id")
    return RemoteEntry(
        clickup_time_entry_id=str(raw["id"]),
        clickup_task_id=str(task_id) if task_id is not None else None,
        clickup_user_id=str(user["id"]),
        start_time=to_utc_iso(epoch_millis_to_utc(raw["start"])),
        duration_minutes=minutes_from_millis(raw.get("duration") or 0),
        description=raw.get("description") or task.get("name") or None,
    )


class ClickUpClient:
    """Client for the ClickUp v2 REST API."""

    def __init__(self, settings: Settings = None, session: Optional[requests.Session] = None):
        settings = settings or get_settings()
        self.base_url = settings.clickup_api_base_url.rstrip("/")
        self.token = settings.clickup_personal_token
        self.team_id = settings.clickup_team_id
        self.timeout = settings.clickup_request_timeout_seconds
        self.session = session or requests.Session()

    def _get(self, path: str, params: Dict[str, Any]) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url} params={params}")
        try:
            response = self.session.get(
                url,
                headers={
                    "Authorization": self.token,
                    "Content-Type": "application/json",
                },
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError:
            raise ClickUpApiError(f"ClickUp: Cannot connect to {self.base_url}. Check your network!")
        except requests.exceptions.Timeout:
            raise ClickUpApiError("ClickUp: Connection timed out. The server may be slow.")

        logger.debug(f"ClickUp API response status: {response.status_code}")
        if not response.ok:
            raise ClickUpApiError(_describe_http_error(response), response.status_code)
        return response

    def list_time_entries(
        self,
        list_id: str,
        start_ms: int,
        end_ms: int,
        assignee_ids: List[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch raw time entries for one list within [start_ms, end_ms]."""
        params = {
            "start_date": str(start_ms),
            "end_date": str(end_ms),
            "list_id": str(validate_list_id(list_id)),
            "include_task_tags": "true",
            "include_location_names": "true",
        }
        if assignee_ids:
            params["assignee"] = ",".join(assignee_ids)

        response = self._get(f"/team/{self.team_id}/time_entries", params)

        body = response.text or ""
        if not body.strip():
            logger.info(f"Empty response for list {list_id}")
            return []

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise ClickUpApiError(f"Failed to parse JSON response: {e.msg}")

        entries = payload.get("data") if isinstance(payload, dict) else None
        return entries or []

    def fetch_remote_entries(
        self,
        list_id: str,
        start_ms: int,
        end_ms: int,
        assignee_ids: List[str] = None,
    ) -> List[RemoteEntry]:
        raw_entries = self.list_time_entries(list_id, start_ms, end_ms, assignee_ids)
        return [parse_time_entry(raw) for raw in raw_entries]
