"""Membership propagation from directory groups to Keycloak cohorts."""
from __future__ import annotations
import logging
from typing import Hashable

from cohortsync.core.graph.groups import GraphGroupDirectory
from cohortsync.core.interfaces import MembershipSynchronizer
from cohortsync.core.keycloak.groups import GroupService
from cohortsync.core.keycloak.users import UserService
from cohortsync.core.models import MembershipSyncResult
from scripts import audit

logger = logging.getLogger(__name__)


class KeycloakMembershipSynchronizer(MembershipSynchronizer):
    """Makes a Keycloak group's members match a Graph group's user members.

    Directory users are resolved to Keycloak accounts by userPrincipalName
    (as username) and then mail. Users without a Keycloak account are
    skipped; accounts are never created here.
    """

    def __init__(
        self,
        directory: GraphGroupDirectory,
        groups: GroupService,
        users: UserService,
        realm: str,
        operator: str = "scheduler",
    ):
        self.directory = directory
        self.groups = groups
        self.users = users
        self.realm = realm
        self.operator = operator

    def sync(self, external_group_id: str, local_group_id: Hashable) -> MembershipSyncResult:
        result = MembershipSyncResult()

        desired: dict[str, dict] = {}
        for member in self.directory.list_members(external_group_id):
            upn = member.get("userPrincipalName")
            user = self.users.find_user(self.realm, username=upn, email=member.get("mail"))
            if not user:
                logger.debug("No Keycloak account for directory user %s", upn or member.get("id"))
                result.skipped += 1
                continue
            desired[user["id"]] = user

        current = {user["id"]: user for user in self.groups.get_group_members(self.realm, local_group_id)}

        for user_id in desired.keys() - current.keys():
            if self.groups.add_user_to_group(self.realm, user_id, local_group_id):
                result.added += 1
        for user_id in current.keys() - desired.keys():
            if self.groups.remove_user_from_group(self.realm, user_id, local_group_id):
                result.removed += 1

        logger.info(
            "Cohort %s: %d added, %d removed, %d directory users without account",
            local_group_id, result.added, result.removed, result.skipped,
        )
        if result.added or result.removed:
            audit.safe_log_sync_event(
                "membership_synced",
                group_id=external_group_id,
                cohort_id=local_group_id,
                operator=self.operator,
                details={"added": result.added, "removed": result.removed, "skipped": result.skipped},
            )
        return result
