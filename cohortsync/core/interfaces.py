"""Collaborator interfaces consumed by the reconciliation engine."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Hashable, Sequence

from cohortsync.core.models import ExternalGroup, LocalGroup, Mapping


class GroupDirectory(ABC):
    """Source of external directory groups, cached once per run."""

    @abstractmethod
    def refresh_cache(self) -> bool:
        """
        Refresh the group cache from the directory.

        Returns:
            True on success, False on failure (never raises)
        """
        pass

    @abstractmethod
    def list_groups(self) -> Sequence[ExternalGroup]:
        """Return the groups from the last successful refresh."""
        pass


class CohortStore(ABC):
    """Local group-like records (cohorts)."""

    @abstractmethod
    def list_groups(self) -> dict[Hashable, LocalGroup]:
        """
        List local groups.

        Returns:
            Mapping from local group id to LocalGroup
        """
        pass

    @abstractmethod
    def create(self, name: str) -> Hashable:
        """
        Create a local group.

        Args:
            name: Group name

        Returns:
            Id of the created group
        """
        pass


class MappingStore(ABC):
    """Durable externalGroupId -> localGroupId table."""

    @abstractmethod
    def list_mappings(self) -> list[Mapping]:
        """Return every stored mapping."""
        pass

    @abstractmethod
    def add(self, external_group_id: str, local_group_id: Hashable) -> bool:
        """
        Insert a mapping (no-op if the pair already exists).

        Returns:
            True if the mapping is stored, False otherwise
        """
        pass

    @abstractmethod
    def delete_by_pair(self, external_group_id: str, local_group_id: Hashable) -> bool:
        """
        Delete a mapping by its pair.

        Returns:
            True if the pair is absent afterwards, including when it never existed
        """
        pass


class MembershipSynchronizer(ABC):
    """Makes local group membership match external group membership."""

    @abstractmethod
    def sync(self, external_group_id: str, local_group_id: Hashable) -> object:
        """Synchronize members for one validated pair."""
        pass
