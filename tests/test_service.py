"""
Ingestion layer tests: topic normalisation, log submission and search resolution.
"""

from unittest.mock import MagicMock

import pytest

from recordstore.core import codec
from recordstore.core.append_log import AppendLog
from recordstore.core.errors import NotFound, StoreWriteFailure
from recordstore.core.reconciler import Reconciler
from recordstore.core.service import RecordService, normalize_topic
from recordstore.core.store import InMemoryRecordStore
from recordstore.search.index import SimpleInMemorySearchIndex


@pytest.fixture
def service(tmp_path):
    store = InMemoryRecordStore()
    index = SimpleInMemorySearchIndex()
    log = AppendLog(str(tmp_path / "store.log"))
    log.start()
    yield RecordService(Reconciler(store, index), log, store, index)
    log.close()


@pytest.mark.parametrize("topic,expected", [
    (None, "default"),
    ("", "default"),
    ("   ", "default"),
    ("notes", "notes"),
    (" notes ", "notes"),
])
def test_normalize_topic(topic, expected):
    assert normalize_topic(topic) == expected


def test_add_submits_encoded_record(service):
    result = service.add("a", "hello")
    service.log.flush()

    lines = [line for _, line in service.log.stream()]
    assert len(lines) == 1
    assert codec.decode(lines[0]) == result.record
    assert result.record.topic == "default"


def test_add_rejects_blank_key(service):
    with pytest.raises(ValueError):
        service.add("  ", "x")


def test_store_failure_is_not_logged(tmp_path):
    reconciler = MagicMock()
    reconciler.apply.side_effect = StoreWriteFailure("down")
    log = MagicMock()
    service = RecordService(reconciler, log, MagicMock(), MagicMock())

    with pytest.raises(StoreWriteFailure):
        service.add("a", "x")
    log.submit.assert_not_called()


def test_search_resolves_hits_through_store(service):
    service.add("a", "hello world", topic="t")
    service.add("b", "hello there", topic="t")
    service.add("c", "hello elsewhere", topic="u")

    assert sorted(r.key for r in service.search("hello", topic="t")) == ["a", "b"]
    assert [r.key for r in service.search("hello", topic="u")] == ["c"]


def test_search_drops_hits_missing_from_store(service):
    service.add("a", "hello", topic="t")
    service.store.delete("a", "t")  # index not told

    assert service.search("hello", topic="t") == []


def test_get_or_raise(service):
    service.add("a", "x", topic="t")

    assert service.get_or_raise("a", "t").content == "x"
    with pytest.raises(NotFound):
        service.get_or_raise("a", "other")


@pytest.mark.parametrize("field", ["key", "topic", "content"])
def test_add_rejects_text_that_is_not_utf8_before_storing(service, field):
    args = {"key": "a", "topic": "t", "content": "hello"}
    args[field] = "x\ud800"

    with pytest.raises(ValueError, match="UTF-8"):
        service.add(**args)

    assert service.store.count() == 0
    assert service.index.count() == 0
    service.log.flush()
    assert list(service.log.stream()) == []
