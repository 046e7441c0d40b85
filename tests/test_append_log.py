"""
Append log tests: framing, ordering, background writer and streaming.
"""

import threading

import pytest

from recordstore.core.append_log import AppendLog
from recordstore.core.errors import WriteFailure


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / "logs" / "store.log")


def test_append_and_stream_preserve_order(log_path):
    log = AppendLog(log_path)
    for i in range(5):
        log.append(f"line-{i}".encode())
    log.close()

    lines = list(AppendLog(log_path).stream())
    assert [line for _, line in lines] == [f"line-{i}".encode() for i in range(5)]
    assert [n for n, _ in lines] == [1, 2, 3, 4, 5]


def test_append_creates_parent_directory(log_path):
    with AppendLog(log_path) as log:
        log.append(b"abc")

    with open(log_path, "rb") as f:
        assert f.read() == b"abc\n"


def test_stream_is_restartable(log_path):
    with AppendLog(log_path) as log:
        log.append(b"one")
        log.append(b"two")

        first = list(log.stream())
        second = list(log.stream())

    assert first == second
    assert len(first) == 2


def test_stream_missing_file_yields_nothing(tmp_path):
    assert list(AppendLog(str(tmp_path / "missing.log")).stream()) == []


def test_stream_skips_blank_lines(log_path, tmp_path):
    (tmp_path / "logs").mkdir()
    with open(log_path, "wb") as f:
        f.write(b"a\n\n   \nb\r\n")

    assert list(AppendLog(log_path).stream()) == [(1, b"a"), (4, b"b")]


def test_append_rejects_embedded_newline(log_path):
    log = AppendLog(log_path)
    with pytest.raises(ValueError):
        log.append(b"two\nlines")
    log.close()


def test_append_to_directory_raises_write_failure(tmp_path):
    log = AppendLog(str(tmp_path))
    with pytest.raises(WriteFailure):
        log.append(b"x")


def test_submit_is_written_by_background_writer(log_path):
    log = AppendLog(log_path, queue_size=4)
    for i in range(20):
        log.submit(f"entry-{i}".encode())
    log.flush()

    assert log.pending() == 0
    assert log.lines_written == 20
    assert [line for _, line in log.stream()] == [f"entry-{i}".encode() for i in range(20)]
    log.close()


def test_close_drains_queued_lines(log_path):
    log = AppendLog(log_path)
    log.start()
    for i in range(50):
        log.submit(b"x" * 10)
    log.close()

    assert len(list(AppendLog(log_path).stream())) == 50


def test_concurrent_submitters_never_interleave_lines(log_path):
    log = AppendLog(log_path, queue_size=8)
    log.start()

    def writer(n):
        for i in range(100):
            log.submit(f"w{n}-{i:03d}-".encode() + b"p" * 200)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    log.close()

    lines = [line for _, line in AppendLog(log_path).stream()]
    assert len(lines) == 400
    assert all(line.endswith(b"p" * 200) and line.count(b"-") == 2 for line in lines)
    # per-writer order is preserved
    for n in range(4):
        mine = [line for line in lines if line.startswith(f"w{n}-".encode())]
        assert mine == sorted(mine)


def test_background_write_failure_is_counted_not_raised(tmp_path):
    log = AppendLog(str(tmp_path))  # a directory cannot be opened for append
    log.submit(b"lost")
    log.flush()

    assert log.write_failures == 1
    assert log.lines_written == 0
    log.close()


def test_submit_after_close_raises(log_path):
    log = AppendLog(log_path)
    log.close()
    log.close()  # idempotent

    with pytest.raises(WriteFailure):
        log.submit(b"late")
    with pytest.raises(WriteFailure):
        log.append(b"late")


def test_submit_racing_close_never_loses_accepted_lines(log_path):
    log = AppendLog(log_path, queue_size=4)
    log.start()
    accepted = []
    accepted_lock = threading.Lock()

    def writer(n):
        for i in range(200):
            line = f"w{n}-{i}".encode()
            try:
                log.submit(line)
            except WriteFailure:
                return
            with accepted_lock:
                accepted.append(line)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    log.close()
    for t in threads:
        t.join()

    written = [line for _, line in AppendLog(log_path).stream()]
    assert sorted(written) == sorted(accepted)


def test_invalid_queue_size():
    with pytest.raises(ValueError):
        AppendLog("unused.log", queue_size=0)
