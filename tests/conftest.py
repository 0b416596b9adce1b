"""Pytest shared fixtures: collaborator fakes, audit isolation, network guard."""
import os
import pathlib
import sys

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DEMO_MODE", "true")

import pytest
import requests

from cohortsync.core.interfaces import CohortStore, GroupDirectory, MappingStore, MembershipSynchronizer
from cohortsync.core.models import ExternalGroup, LocalGroup, Mapping
from scripts import audit


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live Graph or Keycloak endpoints.

    Integration tests are marked with @pytest.mark.integration and skip this guard.
    Tests that exercise HTTP clients install their own stubs on top.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(*args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP call in unit test: {args[:2]}")

    monkeypatch.setattr(requests, "get", _refuse)
    monkeypatch.setattr(requests, "post", _refuse)
    monkeypatch.setattr(requests, "request", _refuse)


@pytest.fixture(autouse=True)
def audit_file(monkeypatch, tmp_path):
    """Redirect the audit trail to a per-test directory."""
    audit_dir = tmp_path / "audit"
    path = audit_dir / "cohortsync-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", path)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator fakes
# ─────────────────────────────────────────────────────────────────────────────
class FakeDirectory(GroupDirectory):
    def __init__(self, groups=None, refresh_ok=True):
        self.groups = [ExternalGroup(gid, name) for gid, name in (groups or [])]
        self.refresh_ok = refresh_ok
        self.refresh_calls = 0

    def refresh_cache(self):
        self.refresh_calls += 1
        return self.refresh_ok

    def list_groups(self):
        return list(self.groups)


class FakeCohortStore(CohortStore):
    def __init__(self, cohorts=None, next_id=100):
        self.cohorts = {cid: LocalGroup(cid, name) for cid, name in (cohorts or [])}
        self.created = []
        self.next_id = next_id
        self.fail_names = set()

    def list_groups(self):
        return dict(self.cohorts)

    def create(self, name):
        if name in self.fail_names:
            raise RuntimeError(f"cannot create {name}")
        cid = self.next_id
        self.next_id += 1
        self.cohorts[cid] = LocalGroup(cid, name)
        self.created.append((cid, name))
        return cid


class FakeMappingStore(MappingStore):
    def __init__(self, pairs=None):
        self.rows = [Mapping(g, c) for g, c in (pairs or [])]
        self.added = []
        self.deleted = []
        self.reject_add = set()
        self.fail_delete = set()

    @property
    def pairs(self):
        return {m.pair for m in self.rows}

    def list_mappings(self):
        return list(self.rows)

    def add(self, external_group_id, local_group_id):
        if external_group_id in self.reject_add:
            return False
        self.added.append((external_group_id, local_group_id))
        if (external_group_id, local_group_id) not in self.pairs:
            self.rows.append(Mapping(external_group_id, local_group_id))
        return True

    def delete_by_pair(self, external_group_id, local_group_id):
        if external_group_id in self.fail_delete:
            raise OSError("disk full")
        self.deleted.append((external_group_id, local_group_id))
        self.rows = [m for m in self.rows if m.pair != (external_group_id, local_group_id)]
        return True


class RecordingSynchronizer(MembershipSynchronizer):
    def __init__(self, failing=None):
        self.calls = []
        self.failing = set(failing or [])

    def sync(self, external_group_id, local_group_id):
        self.calls.append((external_group_id, local_group_id))
        if external_group_id in self.failing:
            raise RuntimeError("graph timeout")


@pytest.fixture
def make_engine():
    """Build a ReconciliationEngine over in-memory collaborators.

    Returns a factory: make_engine(groups=[(id, name)], cohorts=[(id, name)],
    pairs=[(group_id, cohort_id)]) -> SimpleNamespace(engine, directory,
    cohorts, mappings, synchronizer).
    """
    from types import SimpleNamespace
    from cohortsync.core.reconciliation import ReconciliationEngine

    def factory(groups=None, cohorts=None, pairs=None, marker="ochin-crowd-",
                refresh_ok=True, no_client=False, failing_syncs=None):
        ns = SimpleNamespace(
            directory=None if no_client else FakeDirectory(groups, refresh_ok=refresh_ok),
            cohorts=FakeCohortStore(cohorts),
            mappings=FakeMappingStore(pairs),
            synchronizer=RecordingSynchronizer(failing_syncs),
        )
        ns.engine = ReconciliationEngine(
            directory=ns.directory,
            cohorts=ns.cohorts,
            mappings=ns.mappings,
            synchronizer=ns.synchronizer,
            namespace_marker=marker,
        )
        return ns

    return factory
