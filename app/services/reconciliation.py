from dataclasses import dataclass, field
from typing import List, Dict, Optional

# Fields copied from a ClickUp entry onto a TimeLog row
MAPPED_FIELDS = ("clickup_task_id", "clickup_user_id", "start_time", "duration_minutes", "description")

# Fields used to claim a legacy row that has no ClickUp id yet
MATCH_FIELDS = ("start_time", "clickup_task_id", "clickup_user_id", "duration_minutes")


@dataclass
class RemoteEntry:
    """A ClickUp time entry, already normalized (UTC ISO start, whole minutes)."""

    clickup_time_entry_id: str
    clickup_task_id: Optional[str]
    clickup_user_id: str
    start_time: str
    duration_minutes: int
    description: Optional[str]

    def mapped_fields(self) -> Dict[str, object]:
        return {name: getattr(self, name) for name in MAPPED_FIELDS}


@dataclass
class LocalEntry:
    """A stored TimeLog row as seen by the reconciler."""

    id: int
    clickup_time_entry_id: Optional[str]
    clickup_task_id: Optional[str]
    clickup_user_id: Optional[str]
    start_time: str
    duration_minutes: int
    description: Optional[str]

    @property
    def is_keyed(self) -> bool:
        return bool(self.clickup_time_entry_id)


@dataclass
class TimeLogInsert:
    client_id: int
    clickup_time_entry_id: str
    clickup_task_id: Optional[str]
    clickup_user_id: str
    start_time: str
    duration_minutes: int
    description: Optional[str]


@dataclass
class TimeLogUpdate:
    time_log_id: int
    clickup_time_entry_id: str
    patch: Dict[str, object]
    claimed: bool = False  # True when a legacy row gets its ClickUp id attached


@dataclass
class ReconciliationPlan:
    client_id: int
    inserts: List[TimeLogInsert] = field(default_factory=list)
    updates: List[TimeLogUpdate] = field(default_factory=list)
    deletes: List[int] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return len(self.inserts)

    @property
    def updated(self) -> int:
        return len(self.updates)

    @property
    def deleted(self) -> int:
        return len(self.deletes)

    @property
    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.deletes)

    def counts(self) -> Dict[str, int]:
        return {"inserted": self.inserted, "updated": self.updated, "deleted": self.deleted}


def _changed_fields(local: LocalEntry, remote: RemoteEntry) -> Dict[str, object]:
    return {
        name: value
        for name, value in remote.mapped_fields().items()
        if getattr(local, name) != value
    }


def _matches(local: LocalEntry, remote: RemoteEntry) -> bool:
    return all(getattr(local, name) == getattr(remote, name) for name in MATCH_FIELDS)


def reconcile(
    client_id: int,
    remote_entries: List[RemoteEntry],
    local_entries: List[LocalEntry],
) -> ReconciliationPlan:
    """
    Compute the changes that converge ``local_entries`` with ``remote_entries``.

    - keyed local row with the same id: update the fields that differ
    - otherwise an unkeyed row with identical start/task/user/duration is
      claimed (id attached); each unkeyed row can be claimed once
    - otherwise insert
    - keyed local rows whose id was not seen remotely are deleted
    - unclaimed unkeyed rows are left alone
    - extra keyed rows sharing one ClickUp id are deleted, the oldest is kept

    Remote entries are handled in ascending id order so claiming is
    deterministic when several legacy rows look identical.
    """
    plan = ReconciliationPlan(client_id=client_id)

    keyed: Dict[str, LocalEntry] = {}
    unkeyed: List[LocalEntry] = []
    for local in sorted(local_entries, key=lambda e: e.id):
        if not local.is_keyed:
            unkeyed.append(local)
        elif local.clickup_time_entry_id in keyed:
            # Second row with the same ClickUp id; keep the oldest
            plan.deletes.append(local.id)
        else:
            keyed[local.clickup_time_entry_id] = local

    seen_ids = set()

    for remote in sorted(remote_entries, key=lambda e: e.clickup_time_entry_id):
        entry_id = remote.clickup_time_entry_id
        if entry_id in seen_ids:
            continue
        seen_ids.add(entry_id)

        existing = keyed.get(entry_id)
        if existing is not None:
            patch = _changed_fields(existing, remote)
            if patch:
                plan.updates.append(TimeLogUpdate(existing.id, entry_id, patch))
            continue

        candidate = next((local for local in unkeyed if _matches(local, remote)), None)
        if candidate is not None:
            patch = {"clickup_time_entry_id": entry_id}
            patch.update(_changed_fields(candidate, remote))
            plan.updates.append(TimeLogUpdate(candidate.id, entry_id, patch, claimed=True))
            unkeyed.remove(candidate)
            continue

        plan.inserts.append(TimeLogInsert(client_id=client_id, clickup_time_entry_id=entry_id, **remote.mapped_fields()))

    for entry_id, local in keyed.items():
        if entry_id not in seen_ids:
            plan.deletes.append(local.id)

    return plan
