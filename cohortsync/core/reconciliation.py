"""
Reconciliation Engine - Directory Groups ⇔ Local Cohorts

Keeps directory groups and local cohorts linked through the mapping table,
then propagates membership for every valid mapping.

Run flow:
    refresh cache ──> filter candidates ──> load mappings + cohorts
        ├── no mappings, candidates present ──> bootstrap (link by exact name) ──> stop
        ├── mapping count != candidate count ──> create cohorts for new groups
        └──> prune stale mappings ──> sync members for surviving mappings

Only groups whose display name contains the namespace marker are ever
created, mapped or pruned. Local cohorts are never deleted.
"""
from __future__ import annotations
import logging
from typing import Hashable, Iterable, Optional, Sequence

from cohortsync.core.interfaces import (
    CohortStore,
    GroupDirectory,
    MappingStore,
    MembershipSynchronizer,
)
from cohortsync.core.models import ExternalGroup, LocalGroup, Mapping, RunResult, RunStatus
from scripts import audit

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Matching helpers
# ─────────────────────────────────────────────────────────────────────────────

def filter_candidates(groups: Iterable[ExternalGroup], marker: str) -> list[ExternalGroup]:
    """Keep directory groups whose display name contains the marker (case-sensitive)."""
    return [group for group in groups if marker in group.display_name]


def _name_key(name: str) -> str:
    # Cohort names are stored stripped, so compare stripped and case-folded
    return name.strip().casefold()


def find_new_groups(
    local_groups: Iterable[LocalGroup],
    candidates: Sequence[ExternalGroup],
    marker: str,
) -> list[ExternalGroup]:
    """Return candidates with no case-insensitive name match among namespaced cohorts.

    Cohorts outside the namespace (marker tested case-insensitively) are ignored.
    Leading and trailing whitespace is not significant.
    """
    marker_folded = marker.casefold()
    existing = {
        _name_key(cohort.name)
        for cohort in local_groups
        if marker_folded in cohort.name.casefold()
    }
    return [group for group in candidates if _name_key(group.display_name) not in existing]


def _unique_pairs(mappings: Iterable[Mapping]) -> list[Mapping]:
    seen: set[tuple] = set()
    unique = []
    for mapping in mappings:
        if mapping.pair in seen:
            continue
        seen.add(mapping.pair)
        unique.append(mapping)
    return unique


# ─────────────────────────────────────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────────────────────────────────────

class ReconciliationEngine:
    """Orchestrates one end-to-end reconciliation run."""

    def __init__(
        self,
        directory: Optional[GroupDirectory],
        cohorts: CohortStore,
        mappings: MappingStore,
        synchronizer: MembershipSynchronizer,
        namespace_marker: str,
        operator: str = "scheduler",
    ):
        """Initialize engine.

        Args:
            directory: Directory group source, or None when no client could be acquired
            cohorts: Local cohort store
            mappings: Mapping table
            synchronizer: Membership synchronizer
            namespace_marker: Substring marking groups this engine owns
            operator: Operator name recorded in audit events
        """
        if not namespace_marker:
            raise ValueError("namespace_marker must be a non-empty string")
        self.directory = directory
        self.cohorts = cohorts
        self.mappings = mappings
        self.synchronizer = synchronizer
        self.namespace_marker = namespace_marker
        self.operator = operator

    def run(self) -> RunResult:
        """Execute one reconciliation run. Never raises."""
        if self.directory is None:
            logger.warning("No directory client available. Exiting.")
            return RunResult(status=RunStatus.ABORTED_NO_CLIENT)

        try:
            refreshed = self.directory.refresh_cache()
            groups = self.directory.list_groups() if refreshed else []
        except Exception:
            logger.exception("Directory raised while updating groups cache.")
            refreshed = False
        if not refreshed:
            logger.warning("Failed to update groups cache. Exiting.")
            return RunResult(status=RunStatus.ABORTED_CACHE_FAILURE)

        logger.info("Start processing cohort mappings.")
        candidates = filter_candidates(groups, self.namespace_marker)
        candidates_by_id = {group.id: group for group in candidates}
        logger.info("Found %d groups matching %r.", len(candidates), self.namespace_marker)

        try:
            mappings = self.mappings.list_mappings()
            local_groups = self.cohorts.list_groups()
        except Exception:
            logger.exception("Failed to load mappings or cohorts. Exiting.")
            return RunResult(status=RunStatus.ABORTED_STORE_FAILURE, candidates=len(candidates))

        result = RunResult(
            status=RunStatus.DONE,
            candidates=len(candidates),
            mappings_found=len(mappings),
        )

        if not mappings and candidates:
            logger.info("No mappings found. Matching existing cohorts by name.")
            self._bootstrap(local_groups, candidates, result)
            result.status = RunStatus.BOOTSTRAPPED
            return result

        if mappings and len(mappings) != len(candidates):
            self._add_new_groups(local_groups, candidates, result)

        logger.info("Found %d mappings.", len(mappings))
        surviving = self._prune(mappings, candidates_by_id, local_groups, result)
        self._sync_members(surviving, result)
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Steps
    # ─────────────────────────────────────────────────────────────────────────

    def _bootstrap(
        self,
        local_groups: dict[Hashable, LocalGroup],
        candidates: Sequence[ExternalGroup],
        result: RunResult,
    ) -> None:
        """Link existing cohorts to candidates with exactly equal names."""
        for cohort in local_groups.values():
            for group in candidates:
                if group.display_name != cohort.name:
                    continue
                logger.info("Found matching group %s.", cohort.name)
                if self._add_mapping(group.id, cohort.id, result, reason="bootstrap"):
                    logger.info("Group %s mapped to cohort %s.", group.id, cohort.id)
                else:
                    logger.error("Error mapping group %s to cohort %s.", group.id, cohort.id)

    def _add_new_groups(
        self,
        local_groups: dict[Hashable, LocalGroup],
        candidates: Sequence[ExternalGroup],
        result: RunResult,
    ) -> None:
        """Create a cohort and a mapping for every candidate without a counterpart."""
        new_groups = find_new_groups(local_groups.values(), candidates, self.namespace_marker)
        logger.info("Found %d new groups.", len(new_groups))

        for group in new_groups:
            logger.info("Found new group %s.", group.display_name)
            try:
                cohort_id = self.cohorts.create(group.display_name)
            except Exception:
                logger.exception("Failed to create cohort %s.", group.display_name)
                result.errors += 1
                audit.safe_log_sync_event(
                    "cohort_created",
                    group_id=group.id,
                    operator=self.operator,
                    details={"name": group.display_name},
                    success=False,
                )
                continue

            result.cohorts_created += 1
            logger.info("Added new cohort %s with id %s.", group.display_name, cohort_id)
            audit.safe_log_sync_event(
                "cohort_created",
                group_id=group.id,
                cohort_id=cohort_id,
                operator=self.operator,
                details={"name": group.display_name},
            )

            if self._add_mapping(group.id, cohort_id, result, reason="new_group"):
                logger.info("Group %s mapped to cohort %s.", group.id, cohort_id)
            else:
                logger.error("Error mapping group %s to cohort %s.", group.id, cohort_id)

    def _prune(
        self,
        mappings: Sequence[Mapping],
        candidates_by_id: dict[str, ExternalGroup],
        local_groups: dict[Hashable, LocalGroup],
        result: RunResult,
    ) -> list[Mapping]:
        """Delete mappings whose group or cohort no longer exists; return the survivors."""
        survivors = []
        for mapping in _unique_pairs(mappings):
            reasons = []
            if mapping.external_group_id not in candidates_by_id:
                logger.info("Deleting mapping for non-existing group ID %s.", mapping.external_group_id)
                reasons.append("group_missing")
            if mapping.local_group_id not in local_groups:
                logger.info("Deleting mapping for non-existing cohort ID %s.", mapping.local_group_id)
                reasons.append("cohort_missing")

            if not reasons:
                survivors.append(mapping)
                continue

            self._delete_mapping(mapping, reasons, result)
        return survivors

    def _sync_members(self, mappings: Sequence[Mapping], result: RunResult) -> None:
        for mapping in mappings:
            logger.info(
                "Processing mapping for group ID %s and cohort ID %s.",
                mapping.external_group_id,
                mapping.local_group_id,
            )
            result.synced_pairs.append(mapping.pair)
            try:
                self.synchronizer.sync(mapping.external_group_id, mapping.local_group_id)
            except Exception:
                logger.exception(
                    "Membership sync failed for group ID %s and cohort ID %s.",
                    mapping.external_group_id,
                    mapping.local_group_id,
                )
                result.errors += 1
                continue
            result.pairs_synced += 1

    # ─────────────────────────────────────────────────────────────────────────
    # Store mutations
    # ─────────────────────────────────────────────────────────────────────────

    def _add_mapping(self, group_id: str, cohort_id: Hashable, result: RunResult, reason: str) -> bool:
        try:
            added = self.mappings.add(group_id, cohort_id)
        except Exception:
            logger.exception("Mapping store insert failed for group %s.", group_id)
            added = False

        audit.safe_log_sync_event(
            "mapping_created",
            group_id=group_id,
            cohort_id=cohort_id,
            operator=self.operator,
            details={"reason": reason},
            success=added,
        )
        if added:
            result.mappings_created += 1
        else:
            result.errors += 1
        return added

    def _delete_mapping(self, mapping: Mapping, reasons: list[str], result: RunResult) -> None:
        try:
            deleted = self.mappings.delete_by_pair(mapping.external_group_id, mapping.local_group_id)
        except Exception:
            logger.exception("Mapping store delete failed for group %s.", mapping.external_group_id)
            deleted = False

        audit.safe_log_sync_event(
            "mapping_deleted",
            group_id=mapping.external_group_id,
            cohort_id=mapping.local_group_id,
            operator=self.operator,
            details={"reasons": reasons},
            success=deleted,
        )
        if deleted:
            result.mappings_deleted += 1
        else:
            logger.error(
                "Error deleting mapping for group ID %s and cohort ID %s.",
                mapping.external_group_id,
                mapping.local_group_id,
            )
            result.errors += 1
