"""
Tokenizing helpers shared by the collectors.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import BinaryIO, List, Optional, Pattern

DEF_LOGSIZE = 16 * 1024
MAX_LOGSIZE = 64 * 1024

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@lru_cache(maxsize=16)
def _delimiter_pattern(delims: str) -> Pattern[str]:
    return re.compile("[" + re.escape(delims) + "]+")


def split_fields(line: str, delims: str = " \t\r\n", maxsplit: int = 0) -> List[str]:
    """Split ``line`` on runs of any character in ``delims``.

    Empty tokens are never produced. With ``maxsplit`` the last element holds
    the untouched remainder of the line, so callers can check ``len()`` to
    decide whether enough columns were present.
    """
    text = line.lstrip(delims)
    if not maxsplit:
        text = text.rstrip(delims)
    if not text:
        return []
    fields = _delimiter_pattern(delims).split(text, maxsplit=maxsplit)
    if fields[-1] == "":
        fields.pop()
    return fields


def atoi(text: Optional[str], base: int = 10) -> int:
    """Parse the leading integer of ``text``, 0 if there is none."""
    if not text:
        return 0
    if base != 10:
        try:
            return int(text.strip(), base)
        except ValueError:
            return 0
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def read_log(stream: BinaryIO, size: int = 0) -> str:
    """Read at most ``MAX_LOGSIZE`` bytes of a log stream.

    ``size`` is the amount of data the source holds (0 means unknown, use the
    default). When it is larger than the maximum the leading surplus is
    consumed in max-sized chunks so the most recent part of the log is kept.
    """
    if size <= 0:
        size = DEF_LOGSIZE

    while size > MAX_LOGSIZE:
        chunk = size % MAX_LOGSIZE or MAX_LOGSIZE
        stream.read(chunk)
        size -= chunk

    data = stream.read(size)
    return data.decode("utf-8", errors="replace")
