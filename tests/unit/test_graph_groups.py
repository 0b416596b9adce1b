"""Tests for the Microsoft Graph client and group directory."""
from types import SimpleNamespace

import pytest
import requests

from cohortsync.config.settings import SyncConfig
from cohortsync.core.graph import client as graph_client_module
from cohortsync.core.graph import (
    GraphAPIError,
    GraphAuthenticationError,
    GraphClient,
    GraphGroupDirectory,
    get_graph_client,
)
from cohortsync.core.models import ExternalGroup


class _StubResponse:
    def __init__(self, payload=None, status_code=200, headers=None):
        self._payload = payload or {}
        self.status_code = status_code
        self.text = str(payload)
        self.headers = headers or {}

    def json(self):
        return self._payload


@pytest.fixture
def http(monkeypatch):
    """Record Graph calls and serve queued GET responses."""
    state = SimpleNamespace(gets=[], posts=[], get_queue=[], token_status=200)

    def fake_post(url, data=None, timeout=None, **kwargs):
        state.posts.append((url, data))
        if state.token_status != 200:
            return _StubResponse({"error": "invalid_client"}, status_code=state.token_status)
        return _StubResponse({"access_token": f"token-{len(state.posts)}", "expires_in": 3599})

    def fake_get(url, params=None, headers=None, timeout=None, **kwargs):
        state.gets.append((url, params, headers))
        return state.get_queue.pop(0)

    monkeypatch.setattr(requests, "post", fake_post)
    monkeypatch.setattr(requests, "get", fake_get)
    monkeypatch.setattr(graph_client_module.time, "sleep", lambda seconds: None)
    return state


@pytest.fixture
def client():
    return GraphClient("tenant-1", "client-1", "secret-1")


def test_authenticate_uses_client_credentials(http, client):
    assert client.authenticate() == "token-1"

    url, data = http.posts[0]
    assert url == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
    assert data["grant_type"] == "client_credentials"
    assert data["scope"] == "https://graph.microsoft.com/.default"


def test_authenticate_failure_raises(http, client):
    http.token_status = 401
    with pytest.raises(GraphAuthenticationError):
        client.authenticate()


def test_get_paged_follows_next_link(http, client):
    http.get_queue = [
        _StubResponse({"value": [{"id": "g1"}], "@odata.nextLink": "https://graph.microsoft.com/v1.0/groups?$skiptoken=x"}),
        _StubResponse({"value": [{"id": "g2"}]}),
    ]

    items = list(client.get_paged("/groups", params={"$top": 1}))

    assert [item["id"] for item in items] == ["g1", "g2"]
    assert http.gets[0][0] == "https://graph.microsoft.com/v1.0/groups"
    assert http.gets[1][0].endswith("$skiptoken=x")
    assert http.gets[1][1] is None
    assert http.gets[0][2]["Authorization"] == "Bearer token-1"


def test_get_retries_when_throttled(http, client):
    http.get_queue = [
        _StubResponse({}, status_code=429, headers={"Retry-After": "2"}),
        _StubResponse({"value": []}),
    ]
    assert client.get("/groups") == {"value": []}
    assert len(http.gets) == 2


def test_get_raises_on_error(http, client):
    http.get_queue = [_StubResponse({"error": "forbidden"}, status_code=403)]
    with pytest.raises(GraphAPIError) as exc:
        client.get("/groups")
    assert exc.value.status_code == 403


def test_refresh_cache_populates_groups(http, client):
    http.get_queue = [_StubResponse({"value": [
        {"id": "g1", "displayName": "ochin-crowd-A"},
        {"id": "g2", "displayName": None},
    ]})]
    directory = GraphGroupDirectory(client)

    assert directory.list_groups() == []
    assert directory.refresh_cache() is True
    assert directory.list_groups() == [ExternalGroup("g1", "ochin-crowd-A"), ExternalGroup("g2", "")]
    assert http.gets[0][1]["$select"] == "id,displayName"


def test_refresh_cache_failure_returns_false_and_keeps_previous(http, client):
    directory = GraphGroupDirectory(client)
    http.get_queue = [_StubResponse({"value": [{"id": "g1", "displayName": "ochin-crowd-A"}]})]
    directory.refresh_cache()

    http.get_queue = [_StubResponse({"error": "boom"}, status_code=500)]
    assert directory.refresh_cache() is False
    assert directory.list_groups() == [ExternalGroup("g1", "ochin-crowd-A")]


def test_refresh_cache_network_error_returns_false(monkeypatch, http, client):
    def broken_get(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "get", broken_get)
    assert GraphGroupDirectory(client).refresh_cache() is False


def test_list_members_selects_user_fields(http, client):
    http.get_queue = [_StubResponse({"value": [{"id": "u1", "userPrincipalName": "alice@example.com"}]})]
    members = GraphGroupDirectory(client).list_members("g1")

    assert members == [{"id": "u1", "userPrincipalName": "alice@example.com"}]
    assert http.gets[0][0].endswith("/groups/g1/members/microsoft.graph.user")


def test_get_graph_client_without_credentials_returns_none():
    assert get_graph_client(SyncConfig(demo_mode=True)) is None


def test_get_graph_client_rejected_credentials_returns_none(http):
    http.token_status = 400
    cfg = SyncConfig(demo_mode=False, graph_tenant_id="t", graph_client_id="c", graph_client_secret="s")
    assert get_graph_client(cfg) is None


def test_get_graph_client_authenticates(http):
    cfg = SyncConfig(demo_mode=False, graph_tenant_id="t", graph_client_id="c", graph_client_secret="s")
    client = get_graph_client(cfg)
    assert isinstance(client, GraphClient)
    assert len(http.posts) == 1
