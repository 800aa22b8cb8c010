"""Tests for the progress-reporting reader."""

import io

from hawser.progress import CallbackReader


def test_reports_cumulative_bytes():
    seen = []
    reader = CallbackReader(io.BytesIO(b"abcdefghij"), 10, lambda total, done: seen.append((total, done)))

    assert reader.read(4) == b"abcd"
    assert reader.read(4) == b"efgh"
    assert reader.read() == b"ij"
    assert reader.read() == b""

    assert seen == [(10, 4), (10, 8), (10, 10)]


def test_iteration_and_length():
    data = b"x" * (64 * 1024 + 10)
    reader = CallbackReader(io.BytesIO(data), len(data))

    assert len(reader) == len(data)
    assert [len(chunk) for chunk in reader] == [64 * 1024, 10]


def test_context_manager_closes():
    inner = io.BytesIO(b"abc")
    with CallbackReader(inner, 3) as reader:
        reader.read()
    assert inner.closed
