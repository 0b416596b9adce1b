"""Domain models for group/cohort reconciliation."""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Hashable


@dataclass(frozen=True)
class ExternalGroup:
    """Directory group as returned by Microsoft Graph.

    Attributes:
        id: Opaque directory object id
        display_name: Group display name
    """
    id: str
    display_name: str

    @classmethod
    def from_graph(cls, payload: dict) -> "ExternalGroup":
        """Build from a Graph group representation."""
        return cls(id=payload["id"], display_name=payload.get("displayName") or "")


@dataclass(frozen=True)
class LocalGroup:
    """Local group-like record (cohort)."""
    id: Hashable
    name: str


@dataclass(frozen=True)
class Mapping:
    """Link between one external group and one local group.

    Unique on the (external_group_id, local_group_id) pair.
    """
    external_group_id: str
    local_group_id: Hashable

    @property
    def pair(self) -> tuple[str, Hashable]:
        return (self.external_group_id, self.local_group_id)


class RunStatus(str, Enum):
    """Terminal state of one reconciliation run."""
    DONE = "done"
    BOOTSTRAPPED = "bootstrapped"
    ABORTED_NO_CLIENT = "aborted_no_client"
    ABORTED_CACHE_FAILURE = "aborted_cache_failure"
    ABORTED_STORE_FAILURE = "aborted_store_failure"
    ABORTED_LOCKED = "aborted_locked"


_NO_WORK_STATUSES = {
    RunStatus.ABORTED_NO_CLIENT,
    RunStatus.ABORTED_CACHE_FAILURE,
    RunStatus.ABORTED_STORE_FAILURE,
    RunStatus.ABORTED_LOCKED,
}


@dataclass
class RunResult:
    """Outcome of a run. Every status is a success from the scheduler's point of view."""
    status: RunStatus
    candidates: int = 0
    mappings_found: int = 0
    mappings_created: int = 0
    cohorts_created: int = 0
    mappings_deleted: int = 0
    pairs_synced: int = 0
    errors: int = 0
    # Pairs handed to the membership synchronizer, in processing order
    synced_pairs: list[tuple[Any, Any]] = field(default_factory=list)

    @property
    def ran_work(self) -> bool:
        return self.status not in _NO_WORK_STATUSES

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["ran_work"] = self.ran_work
        data["synced_pairs"] = [list(pair) for pair in self.synced_pairs]
        return data


@dataclass
class MembershipSyncResult:
    """Counts from syncing one group pair."""
    added: int = 0
    removed: int = 0
    skipped: int = 0
