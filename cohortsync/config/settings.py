"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_NAMESPACE_MARKER = "ochin-crowd-"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_GRAPH_AUTHORITY_URL = "https://login.microsoftonline.com"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class SyncConfig:
    """Cohort sync configuration container."""
    # Mode
    demo_mode: bool

    # Namespace marker: only groups whose name contains it are managed
    namespace_marker: str = DEFAULT_NAMESPACE_MARKER

    # Microsoft Graph
    graph_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    graph_authority_url: str = DEFAULT_GRAPH_AUTHORITY_URL

    # Keycloak
    keycloak_url: str = ""
    keycloak_realm: str = "demo"
    keycloak_service_realm: str = "demo"
    keycloak_service_client_id: str = "automation-cli"
    keycloak_service_client_secret: str = ""

    # Storage
    mapping_file: str = ".runtime/cohortsync/mappings.json"
    lock_file: str = ".runtime/cohortsync/run.lock"

    # Admin API
    api_token: str = ""

    @property
    def graph_configured(self) -> bool:
        """True when all Graph client-credential settings are present."""
        return bool(self.graph_tenant_id and self.graph_client_id and self.graph_client_secret)

    @property
    def service_client_secret_resolved(self) -> str:
        """Get Keycloak service account client secret with smart fallback.

        Priority:
        1. Demo mode: hardcoded "demo-service-secret"
        2. Configured value in keycloak_service_client_secret
        3. Docker secrets: /run/secrets/keycloak_service_client_secret
        4. Environment variable: KEYCLOAK_SERVICE_CLIENT_SECRET

        Returns:
            Client secret string

        Raises:
            ValueError: If secret not found in production mode
        """
        if self.demo_mode:
            return "demo-service-secret"

        if self.keycloak_service_client_secret:
            return self.keycloak_service_client_secret

        for secret_name in ["keycloak_service_client_secret", "keycloak-service-client-secret"]:
            secret_path = Path("/run/secrets") / secret_name
            if secret_path.exists():
                secret = secret_path.read_text().strip()
                if secret:
                    return secret

        secret = os.environ.get("KEYCLOAK_SERVICE_CLIENT_SECRET")
        if secret:
            return secret

        raise ValueError(
            "KEYCLOAK_SERVICE_CLIENT_SECRET not found. "
            "Set DEMO_MODE=true or provide secret via Docker secrets or environment variable."
        )


def _get_or_default(var_name: str, default: str, demo_mode: bool = False, demo_default: str | None = None) -> str:
    """Get environment variable, falling back to the demo default in demo mode."""
    value = os.environ.get(var_name, "").strip()
    if value:
        return value
    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        return demo_default
    return default


def load_settings() -> SyncConfig:
    """Load cohort sync settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # Namespace marker (empty value would match every group, so fall back)
    namespace_marker = os.environ.get("COHORTSYNC_NAMESPACE_MARKER", "") or DEFAULT_NAMESPACE_MARKER

    # Microsoft Graph (client credentials)
    graph_tenant_id = os.environ.get("GRAPH_TENANT_ID", "").strip()
    graph_client_id = os.environ.get("GRAPH_CLIENT_ID", "").strip()
    graph_client_secret = _load_secret_from_file("graph_client_secret", "GRAPH_CLIENT_SECRET") or ""
    graph_base_url = os.environ.get("GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/")
    graph_authority_url = os.environ.get("GRAPH_AUTHORITY_URL", DEFAULT_GRAPH_AUTHORITY_URL).rstrip("/")

    # Keycloak
    keycloak_url = _get_or_default(
        "KEYCLOAK_URL", "", demo_mode=demo_mode, demo_default="http://127.0.0.1:8080"
    )
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "demo")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "automation-cli")
    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET",
    ) or ""

    # Storage
    mapping_file = os.environ.get("COHORTSYNC_MAPPING_FILE", ".runtime/cohortsync/mappings.json")
    lock_file = os.environ.get("COHORTSYNC_LOCK_FILE", ".runtime/cohortsync/run.lock")

    # Admin API token
    api_token = _load_secret_from_file("cohortsync_api_token", "COHORTSYNC_API_TOKEN") or ""

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; realm={keycloak_realm}; marker={namespace_marker!r}")
    if not (graph_tenant_id and graph_client_id and graph_client_secret):
        print("[settings] ⚠️ Graph credentials incomplete; sync runs will exit without work")

    return SyncConfig(
        demo_mode=demo_mode,
        namespace_marker=namespace_marker,
        graph_tenant_id=graph_tenant_id,
        graph_client_id=graph_client_id,
        graph_client_secret=graph_client_secret,
        graph_base_url=graph_base_url,
        graph_authority_url=graph_authority_url,
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        mapping_file=mapping_file,
        lock_file=lock_file,
        api_token=api_token,
    )
