"""Low-level HTTP client for Microsoft Graph.

Handles client-credentials authentication, token refresh, throttling and paging.
"""
from __future__ import annotations
import time
from typing import Optional, Dict, Any, Iterator
from datetime import datetime, timedelta

import requests

from .exceptions import GraphAPIError, GraphAuthenticationError

REQUEST_TIMEOUT = 10
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
MAX_THROTTLE_RETRIES = 3


class GraphClient:
    """HTTP client for Microsoft Graph with automatic token management.

    Usage:
        client = GraphClient(tenant_id, client_id, client_secret)
        client.authenticate()
        for group in client.get_paged("/groups", params={"$select": "id,displayName"}):
            ...
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = "https://graph.microsoft.com/v1.0",
        authority_url: str = "https://login.microsoftonline.com",
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.token_url = f"{authority_url.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    def authenticate(self) -> str:
        """Fetch an application token using the client credentials flow.

        Returns:
            Access token

        Raises:
            GraphAuthenticationError: If the token endpoint rejects the credentials
        """
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": GRAPH_SCOPE,
        }
        resp = requests.post(self.token_url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise GraphAuthenticationError(resp.status_code, resp.text, self.token_url)
        payload = resp.json()
        self._token = payload["access_token"]
        self._token_expires_at = datetime.now() + timedelta(seconds=int(payload.get("expires_in", 3599)))
        return self._token

    def _ensure_authenticated(self) -> None:
        # Refresh when missing or expiring within 60 seconds
        if not self._token or not self._token_expires_at or \
                datetime.now() >= self._token_expires_at - timedelta(seconds=60):
            self.authenticate()

    def get(self, path_or_url: str, params: Optional[Dict[str, Any]] = None) -> dict:
        """Execute GET request and return the decoded JSON body.

        Args:
            path_or_url: API path (e.g. "/groups") or an absolute nextLink URL
            params: Query parameters

        Returns:
            Decoded JSON document

        Raises:
            GraphAPIError: On HTTP error (after throttling retries)
        """
        url = path_or_url if path_or_url.startswith("http") else f"{self.base_url}{path_or_url}"

        for attempt in range(MAX_THROTTLE_RETRIES + 1):
            self._ensure_authenticated()
            headers = {
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",
            }
            resp = requests.get(url, params=params, headers=headers, timeout=REQUEST_TIMEOUT)

            if resp.status_code in (429, 503) and attempt < MAX_THROTTLE_RETRIES:
                time.sleep(_retry_after_seconds(resp, attempt))
                continue
            if resp.status_code == 401 and attempt < MAX_THROTTLE_RETRIES:
                self._token = None
                continue
            break

        if resp.status_code >= 400:
            raise GraphAPIError(resp.status_code, resp.text, url)
        return resp.json()

    def get_paged(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[dict]:
        """Iterate the 'value' items of a collection, following @odata.nextLink."""
        document = self.get(path, params=params)
        while True:
            yield from document.get("value", [])
            next_link = document.get("@odata.nextLink")
            if not next_link:
                return
            # nextLink already carries the query string
            document = self.get(next_link)


def _retry_after_seconds(resp: requests.Response, attempt: int) -> float:
    header = resp.headers.get("Retry-After", "")
    try:
        return max(float(header), 0.0)
    except ValueError:
        return float(2 ** attempt)
