"""
API tests: the HTTP ingestion surface end to end, including startup replay.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from recordstore.api.main import create_app
from recordstore.core import codec
from recordstore.core.append_log import AppendLog
from recordstore.core.config import Settings
from recordstore.core.schema import Record

API_KEY = "test-key"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=str(tmp_path / "records.db"),
        log_path=str(tmp_path / "store.log"),
        import_log=False,
        replay_workers=2,
        replay_queue_size=4,
        log_queue_size=16,
        store_provider="sqlite",
        index_provider="memory",
        api_key=API_KEY,
        debug=False,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def read_log(path):
    return [codec.decode(line) for _, line in AppendLog(path).stream()]


class TestAuthentication:

    def test_missing_api_key(self, client):
        response = client.post("/add", json={"key": "a", "content": "x"})
        assert response.status_code == 401

    def test_wrong_api_key(self, client):
        response = client.get("/get-by-key", params={"key": "a"}, headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_health_is_open(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAdd:

    def test_add_to_default_topic(self, client):
        response = client.post("/add", json={"key": "a", "content": "hello"}, headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "ok"
        assert body["action"] == "created"
        assert body["indexed"] is True
        assert body["record"]["topic"] == "default"
        assert body["record"]["created_at"] == body["record"]["updated_at"]

    def test_update_keeps_created_at(self, client):
        first = client.post("/add/notes", json={"key": "a", "content": "hello"}, headers=HEADERS).json()
        second = client.post("/add/notes", json={"key": "a", "content": "world"}, headers=HEADERS).json()

        assert second["action"] == "updated"
        assert second["record"]["created_at"] == first["record"]["created_at"]
        assert second["record"]["updated_at"] > first["record"]["updated_at"]

        fetched = client.get("/get-by-key", params={"key": "a", "topic": "notes"}, headers=HEADERS).json()
        assert fetched["content"] == "world"

    def test_client_timestamps_are_ignored(self, client):
        body = client.post("/add", json={"key": "a", "content": "x", "created_at": 1, "updated_at": 2},
                           headers=HEADERS).json()
        assert body["record"]["created_at"] > 2

    @pytest.mark.parametrize("payload", [
        {"key": "", "content": "x"},
        {"key": "   ", "content": "x"},
        {"content": "x"},
        {"key": "a"},
    ])
    def test_invalid_body(self, client, payload):
        response = client.post("/add", json=payload, headers=HEADERS)
        assert response.status_code == 422

    def test_store_failure_returns_500_and_skips_log(self, client, settings):
        failing = MagicMock()
        failing.get.return_value = None
        failing.compare_and_put.side_effect = RuntimeError("disk full")
        client.app.state.service.reconciler.store = failing

        response = client.post("/add", json={"key": "a", "content": "x"}, headers=HEADERS)

        assert response.status_code == 500
        client.app.state.log.flush()
        assert read_log(settings.log_path) == []

    def test_index_failure_still_stores_and_logs(self, client, settings):
        broken_index = MagicMock()
        broken_index.index.side_effect = RuntimeError("index offline")
        client.app.state.service.reconciler.index = broken_index

        response = client.post("/add", json={"key": "a", "content": "x"}, headers=HEADERS)

        assert response.status_code == 201
        assert response.json()["indexed"] is False
        assert client.get("/get-by-key", params={"key": "a"}, headers=HEADERS).status_code == 200
        client.app.state.log.flush()
        assert [r.key for r in read_log(settings.log_path)] == ["a"]


class TestGetAndSearch:

    def test_get_missing_key(self, client):
        assert client.get("/get-by-key", params={"key": "nope"}, headers=HEADERS).status_code == 404
        assert client.get("/get-by-key", headers=HEADERS).status_code == 400

    def test_search_scenario(self, client):
        client.post("/add/t", json={"key": "a", "content": "hello"}, headers=HEADERS)

        hits = client.get("/search", params={"q": "hell", "topic": "t"}, headers=HEADERS).json()
        assert [r["key"] for r in hits["results"]] == ["a"]

        other = client.get("/search", params={"q": "hell", "topic": "other"}, headers=HEADERS).json()
        assert other["results"] == []

    def test_search_requires_query(self, client):
        assert client.get("/search", headers=HEADERS).status_code == 400

    def test_search_pagination_falls_back_to_defaults(self, client, settings):
        for i in range(3):
            client.post("/add", json={"key": f"k{i}", "content": f"match {i}"}, headers=HEADERS)

        body = client.get("/search", params={"q": "match", "limit": 1000, "offset": -5}, headers=HEADERS).json()
        assert body["limit"] == settings.search_default_limit
        assert body["offset"] == 0
        assert len(body["results"]) == 3

        page = client.get("/search", params={"q": "match", "limit": 2, "offset": 2}, headers=HEADERS).json()
        assert len(page["results"]) == 1


def test_writes_are_appended_to_log(settings):
    with TestClient(create_app(settings)) as client:
        client.post("/add/t", json={"key": "a", "content": "v1"}, headers=HEADERS)
        client.post("/add/t", json={"key": "a", "content": "v2"}, headers=HEADERS)
        client.post("/add/t", json={"key": "b", "content": "v1"}, headers=HEADERS)

    entries = read_log(settings.log_path)
    assert [(r.key, r.content) for r in entries] == [("a", "v1"), ("a", "v2"), ("b", "v1")]
    assert entries[0].created_at == entries[1].created_at
    assert entries[1].updated_at > entries[0].updated_at


def test_startup_replay_restores_store_and_index(settings, tmp_path):
    log = AppendLog(settings.log_path)
    log.append(codec.encode(Record(key="a", topic="t", content="old", created_at=100, updated_at=100)))
    log.append(codec.encode(Record(key="a", topic="t", content="hello", created_at=100, updated_at=200)))
    log.append(b"garbage-line")
    log.close()

    settings.import_log = True
    settings.db_path = str(tmp_path / "fresh.db")

    with TestClient(create_app(settings)) as client:
        health = client.get("/health").json()
        assert health["replay"]["applied"] == 2
        assert health["replay"]["failed"] == 1
        assert health["record_count"] == 1

        record = client.get("/get-by-key", params={"key": "a", "topic": "t"}, headers=HEADERS).json()
        assert (record["content"], record["created_at"], record["updated_at"]) == ("hello", 100, 200)

        hits = client.get("/search", params={"q": "hell", "topic": "t"}, headers=HEADERS).json()
        assert [r["key"] for r in hits["results"]] == ["a"]

        updated = client.post("/add/t", json={"key": "a", "content": "again"}, headers=HEADERS).json()
        assert updated["record"]["created_at"] == 100

    # the live write lands after the replayed history
    assert len(list(AppendLog(settings.log_path).stream())) == 4


def test_replay_skipped_when_disabled(settings):
    log = AppendLog(settings.log_path)
    log.append(codec.encode(Record(key="a", topic="t", content="x", created_at=1, updated_at=1)))
    log.close()

    with TestClient(create_app(settings)) as client:
        assert client.get("/health").json()["replay"] is None
        assert client.get("/get-by-key", params={"key": "a", "topic": "t"}, headers=HEADERS).status_code == 404


def test_invalid_configuration_refuses_to_start(settings):
    settings.index_provider = "elasticsearch"
    with pytest.raises(ValueError, match="INDEX_PROVIDER"):
        create_app(settings)


def test_in_memory_index_is_rebuilt_on_restart(settings):
    with TestClient(create_app(settings)) as client:
        client.post("/add/t", json={"key": "a", "content": "hello"}, headers=HEADERS)

    # Same SQLite store, fresh in-memory index, no log replay
    with TestClient(create_app(settings)) as client:
        assert client.get("/get-by-key", params={"key": "a", "topic": "t"}, headers=HEADERS).status_code == 200

        hits = client.get("/search", params={"q": "hell", "topic": "t"}, headers=HEADERS).json()
        assert [r["key"] for r in hits["results"]] == ["a"]
        assert client.get("/health").json()["index_rebuild"] == {"indexed": 1, "failed": 0}


def test_persistent_index_is_not_rebuilt_on_start(settings):
    settings.index_provider = "sqlite"
    with TestClient(create_app(settings)) as client:
        assert client.get("/health").json()["index_rebuild"] is None


def test_content_that_cannot_be_encoded_is_rejected_before_storing(client, settings):
    response = client.post("/add/t", json={"key": "a", "content": "x\ud800"}, headers=HEADERS)

    assert response.status_code == 400
    assert client.get("/get-by-key", params={"key": "a", "topic": "t"}, headers=HEADERS).status_code == 404
    client.app.state.log.flush()
    assert read_log(settings.log_path) == []


def test_add_during_shutdown_returns_503(client):
    client.app.state.log.close()

    response = client.post("/add", json={"key": "a", "content": "x"}, headers=HEADERS)

    assert response.status_code == 503
