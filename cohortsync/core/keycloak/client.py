"""Low-level HTTP client for Keycloak Admin API.

Handles service account authentication, token refresh, and HTTP operations.
"""
from __future__ import annotations
import os
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError

REQUEST_TIMEOUT = 5


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.authenticate_service_account("demo", "automation-cli", "secret")
        response = client.get("/admin/realms/demo/groups")
    """

    def __init__(self, base_url: Optional[str] = None):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (defaults to KEYCLOAK_URL env var)
        """
        self.base_url = (base_url or os.environ.get("KEYCLOAK_URL", "http://keycloak:8080")).rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token
        """
        self._auth_params = {
            "auth_realm": auth_realm,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._refresh_token()
        return self._token

    def _refresh_token(self) -> None:
        url = f"{self.base_url}/realms/{self._auth_params['auth_realm']}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self._auth_params["client_id"],
            "client_secret": self._auth_params["client_secret"],
        }
        resp = requests.post(url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        payload = resp.json()
        self._token = payload["access_token"]
        # Conservative expiry: never trust more than 60 seconds
        expires_in = min(int(payload.get("expires_in", 60)), 60)
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            raise KeycloakAPIError(401, "Not authenticated - call authenticate_service_account first", "")

        # Refresh if token expired or expiring soon (within 10 seconds)
        if datetime.now() >= self._token_expires_at - timedelta(seconds=10):
            self._refresh_token()

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Execute an authenticated request against the Admin API.

        Args:
            method: HTTP method
            path: API endpoint path (e.g., "/admin/realms/demo/groups")
            **kwargs: Additional arguments for requests.request

        Returns:
            Response object

        Raises:
            KeycloakAPIError: On HTTP error
        """
        self._ensure_authenticated()
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._token}"
        resp = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            timeout=REQUEST_TIMEOUT,
            **kwargs,
        )
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None) -> requests.Response:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict] = None) -> requests.Response:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Optional[Dict] = None) -> requests.Response:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> requests.Response:
        return self.request("DELETE", path)

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise KeycloakAPIError if response status indicates error."""
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)
