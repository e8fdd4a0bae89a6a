# backend/tests/test_counter_backends.py
from __future__ import annotations

import json
import tempfile
from pathlib import Path

import httpx
import pytest

from viewcounter.clients.kv_rest import KvRestClient, KvRestError
from viewcounter.services.counter_store import (
    CounterStore,
    FileCounterBackend,
    RemoteCounterBackend,
    resolve_counter_path,
    select_backend,
)

KV_URL = "https://kv.example.test"
KV_TOKEN = "tok-123"


class _FakeKv:
    """In-memory Upstash-style REST endpoint for httpx.MockTransport."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "boom"})
        if request.headers.get("Authorization") != f"Bearer {KV_TOKEN}":
            return httpx.Response(401, json={"error": "unauthorized"})

        parts = request.url.path.strip("/").split("/")
        if request.method == "GET" and parts[0] == "get":
            return httpx.Response(200, json={"result": self.data.get(parts[1])})
        if request.method == "POST" and parts[0] == "set":
            self.data[parts[1]] = request.content.decode("utf-8")
            return httpx.Response(200, json={"result": "OK"})
        return httpx.Response(404, json={"error": "no route"})


def _client(fake: _FakeKv) -> KvRestClient:
    return KvRestClient(base_url=KV_URL, token=KV_TOKEN, transport=httpx.MockTransport(fake))


# -------------------- selection --------------------

def test_no_kv_credentials_selects_file(make_settings, tmp_path):
    backend = select_backend(make_settings())
    assert isinstance(backend, FileCounterBackend)
    assert backend.path == tmp_path / "counters.json"


def test_kv_credentials_select_remote(make_settings):
    cfg = make_settings(kv_rest_api_url=KV_URL, kv_rest_api_token=KV_TOKEN, kv_store_key="views")
    backend = select_backend(cfg)
    assert isinstance(backend, RemoteCounterBackend)
    assert backend.key == "views"
    assert backend.client.base == KV_URL


def test_partial_kv_credentials_stay_on_file(make_settings):
    assert isinstance(select_backend(make_settings(kv_rest_api_url=KV_URL)), FileCounterBackend)
    assert isinstance(select_backend(make_settings(kv_rest_api_token=KV_TOKEN)), FileCounterBackend)
    assert isinstance(select_backend(make_settings(kv_rest_api_url="  ", kv_rest_api_token=KV_TOKEN)), FileCounterBackend)


def test_writable_path_is_kept(tmp_path):
    p = tmp_path / "a" / "b" / "counters.json"
    assert resolve_counter_path(p) == p


def test_read_only_platform_relocates_to_tempdir(tmp_path, monkeypatch):
    monkeypatch.setenv("VERCEL", "1")
    p = tmp_path / "counters.json"
    assert resolve_counter_path(p) == Path(tempfile.gettempdir()) / "counters.json"


# -------------------- remote backend --------------------

def test_remote_store_round_trips_through_one_key():
    fake = _FakeKv()
    with CounterStore(RemoteCounterBackend(_client(fake), key="counters")) as store:
        assert store.peek("alice") == 0
        assert store.increment_and_get("alice") == 1
        assert store.increment_and_get("alice") == 2
        assert store.increment_and_get("bob") == 1

    assert list(fake.data) == ["counters"]
    assert json.loads(fake.data["counters"]) == {"alice": 2, "bob": 1}

    paths = {(r.method, r.url.path) for r in fake.requests}
    assert ("GET", "/get/counters") in paths
    assert ("POST", "/set/counters") in paths


def test_remote_unreachable_degrades_to_zero():
    fake = _FakeKv()
    fake.fail_with = 503
    store = CounterStore(RemoteCounterBackend(_client(fake)))

    assert store.peek("alice") == 0
    # read fails -> empty, write fails -> swallowed, value still returned
    assert store.increment_and_get("alice") == 1


def test_remote_malformed_blob_reads_as_empty():
    fake = _FakeKv()
    fake.data["counters"] = "{{{"
    store = CounterStore(RemoteCounterBackend(_client(fake)))
    assert store.peek("alice") == 0


def test_kv_client_raises_on_error_payload():
    fake = _FakeKv()
    fake.fail_with = 500
    client = _client(fake)
    with pytest.raises(KvRestError):
        client.get("counters")
    with pytest.raises(KvRestError):
        client.set("counters", "{}")
    client.close()


def test_kv_client_connect_error_is_wrapped():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = KvRestClient(base_url=KV_URL, token=KV_TOKEN, transport=httpx.MockTransport(refuse))
    with pytest.raises(KvRestError):
        client.get("counters")
