"""Keycloak user lookups."""
from __future__ import annotations
from typing import Optional

from .client import KeycloakClient


class UserService:
    """Read-only user lookups used to resolve directory members."""

    def __init__(self, client: KeycloakClient):
        """Initialize user service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def get_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        """Return the user representation that exactly matches the username.

        Keycloak stores usernames lower-cased, so the comparison is case-insensitive.
        """
        resp = self.client.get(
            f"/admin/realms/{realm}/users",
            params={"username": username, "exact": "true"},
        )
        for user in resp.json() or []:
            if (user.get("username") or "").lower() == username.lower():
                return user
        return None

    def get_user_by_email(self, realm: str, email: str) -> Optional[dict]:
        """Return the user whose email matches (case-insensitive)."""
        resp = self.client.get(
            f"/admin/realms/{realm}/users",
            params={"email": email, "exact": "true"},
        )
        for user in resp.json() or []:
            if (user.get("email") or "").lower() == email.lower():
                return user
        return None

    def find_user(self, realm: str, username: Optional[str] = None, email: Optional[str] = None) -> Optional[dict]:
        """Look a user up by username first, then by email.

        Args:
            realm: Realm name
            username: Candidate username (e.g. a userPrincipalName)
            email: Candidate email address

        Returns:
            User representation or None if neither matches
        """
        if username:
            user = self.get_user_by_username(realm, username)
            if user:
                return user
        if email:
            return self.get_user_by_email(realm, email)
        return None
