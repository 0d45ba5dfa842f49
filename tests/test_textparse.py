from __future__ import annotations

import io

from rpcd_lite.textparse import DEF_LOGSIZE, MAX_LOGSIZE, atoi, read_log, split_fields


class RecordingStream(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.reads = []

    def read(self, size=-1):
        self.reads.append(size)
        return super().read(size)


def test_split_fields_collapses_delimiter_runs() -> None:
    assert split_fields("  a \t b\n") == ["a", "b"]
    assert split_fields("START=20", "= \t\n") == ["START", "20"]
    assert split_fields("   \n") == []


def test_split_fields_keeps_remainder_with_maxsplit() -> None:
    fields = split_fields(" 1  0 root S  1528 1% 0% /sbin/procd -S", " \t", maxsplit=7)

    assert len(fields) == 8
    assert fields[-1] == "/sbin/procd -S"


def test_split_fields_reports_short_lines() -> None:
    assert len(split_fields("1 0 root", " ", maxsplit=7)) == 3


def test_atoi_parses_leading_digits() -> None:
    assert atoi("42") == 42
    assert atoi("9%") == 9
    assert atoi(" -7x") == -7
    assert atoi("abc") == 0
    assert atoi("") == 0
    assert atoi(None) == 0
    assert atoi("0400", 16) == 1024
    assert atoi("zz", 16) == 0


def test_read_log_returns_small_sources_whole() -> None:
    data = b"line one\nline two\n"

    assert read_log(io.BytesIO(data), len(data)) == data.decode()


def test_read_log_uses_default_size_when_unknown() -> None:
    data = b"x" * (DEF_LOGSIZE + 100)

    assert len(read_log(io.BytesIO(data), 0)) == DEF_LOGSIZE


def test_read_log_keeps_tail_of_oversized_source_in_max_chunks() -> None:
    size = 3 * MAX_LOGSIZE + 5
    data = bytes(ord("a") + (i % 26) for i in range(size))
    stream = RecordingStream(data)

    text = read_log(stream, size)

    assert len(text) == MAX_LOGSIZE
    assert text == data[-MAX_LOGSIZE:].decode()
    assert stream.reads == [5, MAX_LOGSIZE, MAX_LOGSIZE, MAX_LOGSIZE]
    assert all(n <= MAX_LOGSIZE for n in stream.reads)


def test_read_log_exact_multiple_of_max() -> None:
    size = 2 * MAX_LOGSIZE
    stream = RecordingStream(b"a" * MAX_LOGSIZE + b"b" * MAX_LOGSIZE)

    text = read_log(stream, size)

    assert text == "b" * MAX_LOGSIZE
    assert stream.reads == [MAX_LOGSIZE, MAX_LOGSIZE]


def test_read_log_replaces_invalid_utf8() -> None:
    assert read_log(io.BytesIO(b"ok \xff\n"), 5) == "ok �\n"
