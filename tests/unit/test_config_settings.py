import pytest

from cohortsync.config import settings
from cohortsync.config.settings import DEFAULT_NAMESPACE_MARKER, SyncConfig, load_settings


@pytest.fixture
def clean_env(monkeypatch):
    for var in [
        "DEMO_MODE", "COHORTSYNC_NAMESPACE_MARKER", "GRAPH_TENANT_ID", "GRAPH_CLIENT_ID",
        "GRAPH_CLIENT_SECRET", "KEYCLOAK_URL", "KEYCLOAK_REALM", "KEYCLOAK_SERVICE_REALM",
        "KEYCLOAK_SERVICE_CLIENT_SECRET", "COHORTSYNC_API_TOKEN", "COHORTSYNC_MAPPING_FILE",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_run_secrets(monkeypatch, tmp_path):
    """Point /run/secrets at an empty directory."""
    real_path = settings.Path

    def fake_path(target):
        if str(target) == "/run/secrets":
            return tmp_path
        return real_path(target)

    monkeypatch.setattr(settings, "Path", fake_path)
    return tmp_path


def test_defaults(clean_env, no_run_secrets):
    cfg = load_settings()

    assert cfg.demo_mode is False
    assert cfg.namespace_marker == DEFAULT_NAMESPACE_MARKER
    assert cfg.graph_configured is False
    assert cfg.keycloak_realm == "demo"
    assert cfg.mapping_file == ".runtime/cohortsync/mappings.json"


def test_demo_mode_supplies_keycloak_url(clean_env, no_run_secrets, monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    assert load_settings().keycloak_url == "http://127.0.0.1:8080"


def test_marker_and_graph_from_env(clean_env, no_run_secrets, monkeypatch):
    monkeypatch.setenv("COHORTSYNC_NAMESPACE_MARKER", "lms-")
    monkeypatch.setenv("GRAPH_TENANT_ID", "tenant")
    monkeypatch.setenv("GRAPH_CLIENT_ID", "client")
    monkeypatch.setenv("GRAPH_CLIENT_SECRET", "secret")
    monkeypatch.setenv("KEYCLOAK_REALM", "school")

    cfg = load_settings()

    assert cfg.namespace_marker == "lms-"
    assert cfg.graph_configured is True
    assert cfg.keycloak_service_realm == "school"


def test_empty_marker_falls_back_to_default(clean_env, no_run_secrets, monkeypatch):
    monkeypatch.setenv("COHORTSYNC_NAMESPACE_MARKER", "")
    assert load_settings().namespace_marker == DEFAULT_NAMESPACE_MARKER


def test_graph_secret_prefers_run_secrets(clean_env, no_run_secrets, monkeypatch):
    (no_run_secrets / "graph_client_secret").write_text("from-file\n")
    monkeypatch.setenv("GRAPH_CLIENT_SECRET", "from-env")

    assert load_settings().graph_client_secret == "from-file"


def test_service_client_secret_demo_mode():
    assert SyncConfig(demo_mode=True).service_client_secret_resolved == "demo-service-secret"


def test_service_client_secret_prefers_config_value():
    cfg = SyncConfig(demo_mode=False, keycloak_service_client_secret="from-config")
    assert cfg.service_client_secret_resolved == "from-config"


def test_service_client_secret_reads_from_run_secrets(no_run_secrets):
    (no_run_secrets / "keycloak_service_client_secret").write_text("file-secret")
    assert SyncConfig(demo_mode=False).service_client_secret_resolved == "file-secret"


def test_service_client_secret_missing_raises(clean_env, no_run_secrets):
    with pytest.raises(ValueError):
        SyncConfig(demo_mode=False).service_client_secret_resolved
