"""Keycloak group management operations and the cohort store built on them."""
from __future__ import annotations
import logging
from typing import Optional, Dict, Hashable
from datetime import datetime, timezone

from cohortsync.core.interfaces import CohortStore
from cohortsync.core.models import LocalGroup

from .client import KeycloakClient
from .exceptions import KeycloakAPIError, GroupNotFoundError, InvalidGroupNameError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
GROUP_NAME_MAX_LENGTH = 255


def validate_group_name(group_name: str) -> str:
    """Return the stripped group name or raise InvalidGroupNameError."""
    name = (group_name or "").strip()
    if not name:
        raise InvalidGroupNameError("Group name must not be empty")
    if len(name) > GROUP_NAME_MAX_LENGTH:
        raise InvalidGroupNameError(f"Group name exceeds {GROUP_NAME_MAX_LENGTH} characters: '{name[:40]}...'")
    if "/" in name:
        raise InvalidGroupNameError(f"Group name must not contain '/': '{name}'")
    return name


class GroupService:
    """Service for managing Keycloak groups."""

    def __init__(self, client: KeycloakClient):
        """Initialize group service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def list_groups(self, realm: str) -> list[dict]:
        """List all top-level groups of a realm, following pagination.

        Args:
            realm: Realm name

        Returns:
            List of group representations
        """
        groups: list[dict] = []
        first = 0
        while True:
            resp = self.client.get(
                f"/admin/realms/{realm}/groups",
                params={"first": first, "max": PAGE_SIZE, "briefRepresentation": "true"},
            )
            page = resp.json() or []
            groups.extend(page)
            if len(page) < PAGE_SIZE:
                return groups
            first += PAGE_SIZE

    def get_group_by_path(self, realm: str, group_path: str) -> Optional[dict]:
        """Retrieve a group by its path (e.g., '/ochin-crowd-A').

        Args:
            realm: Realm name
            group_path: Group path starting with /

        Returns:
            Group representation or None if not found
        """
        resp = self.client.get(f"/admin/realms/{realm}/groups", params={"search": group_path.strip("/")})
        for group in resp.json() or []:
            if group.get("path") == group_path:
                return group
        return None

    def create_group(self, realm: str, group_name: str, attributes: Optional[Dict] = None) -> str:
        """Idempotently create a top-level group and return its ID.

        Args:
            realm: Realm name
            group_name: Group name
            attributes: Optional attributes dictionary

        Returns:
            Group ID

        Raises:
            InvalidGroupNameError: If group name is invalid
            GroupNotFoundError: If the group cannot be read back after creation
        """
        name = validate_group_name(group_name)
        group_path = f"/{name}"

        existing = self.get_group_by_path(realm, group_path)
        if existing:
            logger.info("Group '%s' already exists (id=%s)", name, existing["id"])
            return existing["id"]

        payload_attributes = dict(attributes or {})
        payload_attributes.setdefault("created_at", [datetime.now(timezone.utc).isoformat()])
        payload_attributes.setdefault("created_by", ["cohortsync"])

        resp = self.client.post(f"/admin/realms/{realm}/groups", json={
            "name": name,
            "attributes": payload_attributes,
        })

        # Keycloak answers 201 with the new group URL in Location
        location = resp.headers.get("Location", "")
        if location:
            return location.rstrip("/").rsplit("/", 1)[-1]

        created = self.get_group_by_path(realm, group_path)
        if not created:
            raise GroupNotFoundError(f"Failed to retrieve group '{name}' after creation")
        return created["id"]

    def get_group_members(self, realm: str, group_id: str) -> list[dict]:
        """Retrieve all members of a group, following pagination."""
        members: list[dict] = []
        first = 0
        while True:
            resp = self.client.get(
                f"/admin/realms/{realm}/groups/{group_id}/members",
                params={"first": first, "max": PAGE_SIZE, "briefRepresentation": "true"},
            )
            page = resp.json() or []
            members.extend(page)
            if len(page) < PAGE_SIZE:
                return members
            first += PAGE_SIZE

    def add_user_to_group(self, realm: str, user_id: str, group_id: str) -> bool:
        """Add a user to a group (idempotent).

        Returns:
            True if the request was accepted
        """
        resp = self.client.put(f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}")
        return resp.status_code == 204

    def remove_user_from_group(self, realm: str, user_id: str, group_id: str) -> bool:
        """Remove a user from a group (idempotent).

        Returns:
            True if removed, False if the user or membership was already gone
        """
        try:
            resp = self.client.delete(f"/admin/realms/{realm}/users/{user_id}/groups/{group_id}")
        except KeycloakAPIError as e:
            if e.status_code == 404:
                return False
            raise
        return resp.status_code == 204


class KeycloakCohortStore(CohortStore):
    """Cohort store backed by top-level Keycloak groups."""

    def __init__(self, groups: GroupService, realm: str):
        self.groups = groups
        self.realm = realm

    def list_groups(self) -> dict[Hashable, LocalGroup]:
        return {
            group["id"]: LocalGroup(id=group["id"], name=group.get("name", ""))
            for group in self.groups.list_groups(self.realm)
        }

    def create(self, name: str) -> Hashable:
        return self.groups.create_group(self.realm, name, attributes={"managed_by": ["cohortsync"]})
