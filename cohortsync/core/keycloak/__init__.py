"""Keycloak Admin API client library.

Local cohorts are Keycloak realm groups; this package provides the HTTP
client and the services the cohort store and membership synchronizer use.

Architecture:
- client.py: HTTP client with service account authentication and auto-refresh
- groups.py: Group listing, creation, membership, and KeycloakCohortStore
- users.py: User lookups by username/email
- exceptions.py: Typed exceptions for error handling

Usage:
    from cohortsync.core.keycloak import KeycloakClient, GroupService, KeycloakCohortStore

    client = KeycloakClient("http://keycloak:8080")
    client.authenticate_service_account("demo", "automation-cli", "secret")

    cohorts = KeycloakCohortStore(GroupService(client), "demo")
    cohorts.list_groups()
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
    GroupNotFoundError,
    InvalidGroupNameError,
)
from .groups import GroupService, KeycloakCohortStore, validate_group_name
from .users import UserService

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "KeycloakError",
    "KeycloakAPIError",
    "GroupNotFoundError",
    "InvalidGroupNameError",
    "GroupService",
    "KeycloakCohortStore",
    "validate_group_name",
    "UserService",
]
