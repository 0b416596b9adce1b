"""Microsoft Graph group directory."""
from __future__ import annotations
import logging
from typing import Optional, Sequence

import requests

from cohortsync.core.interfaces import GroupDirectory
from cohortsync.core.models import ExternalGroup

from .client import GraphClient
from .exceptions import GraphError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 999


class GraphGroupDirectory(GroupDirectory):
    """Directory groups from Microsoft Graph, cached once per run.

    The cache is only replaced by a fully successful refresh, so callers
    never see a partially-fetched listing.
    """

    def __init__(self, client: GraphClient, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.page_size = page_size
        self._groups: list[ExternalGroup] = []

    def refresh_cache(self) -> bool:
        try:
            groups = [
                ExternalGroup.from_graph(item)
                for item in self.client.get_paged(
                    "/groups",
                    params={"$select": "id,displayName", "$top": self.page_size},
                )
            ]
        except (GraphError, requests.RequestException) as e:
            logger.error("Failed to refresh Graph group cache: %s", e)
            return False

        self._groups = groups
        logger.debug("Cached %d Graph groups", len(groups))
        return True

    def list_groups(self) -> Sequence[ExternalGroup]:
        return list(self._groups)

    def list_members(self, group_id: str) -> list[dict]:
        """Return user members of a group (id, userPrincipalName, mail).

        Raises:
            GraphAPIError: On HTTP error
        """
        return list(self.client.get_paged(
            f"/groups/{group_id}/members/microsoft.graph.user",
            params={"$select": "id,userPrincipalName,mail", "$top": self.page_size},
        ))


def get_graph_client(cfg) -> Optional[GraphClient]:
    """Acquire an authenticated Graph client for one run.

    Args:
        cfg: SyncConfig

    Returns:
        Authenticated GraphClient, or None when credentials are missing or rejected
    """
    if not cfg.graph_configured:
        logger.warning("Graph credentials are not configured")
        return None

    client = GraphClient(
        cfg.graph_tenant_id,
        cfg.graph_client_id,
        cfg.graph_client_secret,
        base_url=cfg.graph_base_url,
        authority_url=cfg.graph_authority_url,
    )
    try:
        client.authenticate()
    except (GraphError, requests.RequestException) as e:
        logger.error("Failed to get Graph API client: %s", e)
        return None
    return client
