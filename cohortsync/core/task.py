"""Scheduled task entry point: wires collaborators and runs the engine once."""
from __future__ import annotations
import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import requests

from cohortsync.config.settings import SyncConfig
from cohortsync.core.graph.groups import GraphGroupDirectory, get_graph_client
from cohortsync.core.interfaces import MappingStore
from cohortsync.core.keycloak import GroupService, KeycloakClient, KeycloakCohortStore, KeycloakError, UserService
from cohortsync.core.mapping_store import JsonMappingStore
from cohortsync.core.membership import KeycloakMembershipSynchronizer
from cohortsync.core.models import RunResult, RunStatus
from cohortsync.core.reconciliation import ReconciliationEngine
from scripts import audit

logger = logging.getLogger(__name__)


@contextmanager
def run_lock(path: str | os.PathLike) -> Iterator[bool]:
    """Hold an exclusive run lock; yields False if another run holds it.

    The lock is an flock on the open lock file, so the kernel releases it
    when the holder exits or crashes. The file itself is left in place.
    """
    lock_path = Path(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o600)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            yield False
            return

        # Owner PID, for operators inspecting the lock file
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode("ascii"))
        try:
            yield True
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


class CohortSyncTask:
    """One scheduled cohort sync run.

    Usage:
        result = CohortSyncTask(load_settings()).execute()
    """

    def __init__(self, cfg: SyncConfig, mapping_store: Optional[MappingStore] = None, operator: str = "scheduler"):
        self.cfg = cfg
        self.mapping_store = mapping_store or JsonMappingStore(cfg.mapping_file)
        self.operator = operator

    def execute(self) -> RunResult:
        """Run reconciliation once. Always returns a result, never raises."""
        with run_lock(self.cfg.lock_file) as acquired:
            if not acquired:
                logger.warning("Another cohort sync run is in progress. Exiting.")
                return RunResult(status=RunStatus.ABORTED_LOCKED)
            result = self._execute_sync()

        audit.safe_log_sync_event(
            "run_completed",
            operator=self.operator,
            details=result.to_dict(),
            success=result.errors == 0,
        )
        logger.info("Cohort sync finished: status=%s errors=%d", result.status.value, result.errors)
        return result

    def _execute_sync(self) -> RunResult:
        graph_client = get_graph_client(self.cfg)
        if graph_client is None:
            logger.warning("Failed to get Graph API client. Exiting.")
            return RunResult(status=RunStatus.ABORTED_NO_CLIENT)
        directory = GraphGroupDirectory(graph_client)

        try:
            keycloak = KeycloakClient(self.cfg.keycloak_url)
            keycloak.authenticate_service_account(
                self.cfg.keycloak_service_realm,
                self.cfg.keycloak_service_client_id,
                self.cfg.service_client_secret_resolved,
            )
        except (KeycloakError, ValueError, requests.RequestException) as e:
            logger.error("Failed to authenticate to Keycloak: %s. Exiting.", e)
            return RunResult(status=RunStatus.ABORTED_STORE_FAILURE)

        groups = GroupService(keycloak)
        engine = ReconciliationEngine(
            directory=directory,
            cohorts=KeycloakCohortStore(groups, self.cfg.keycloak_realm),
            mappings=self.mapping_store,
            synchronizer=KeycloakMembershipSynchronizer(
                directory,
                groups,
                UserService(keycloak),
                self.cfg.keycloak_realm,
                operator=self.operator,
            ),
            namespace_marker=self.cfg.namespace_marker,
            operator=self.operator,
        )
        return engine.run()
