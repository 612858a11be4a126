"""File etags: a JSON-quoted ``inode-size-mtimeMillis`` string."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass

_ETAG_PARTS = 3


@dataclass(frozen=True)
class EtagParts:
    inode: str
    size: str
    mtime_ms: int


def mtime_millis(stat: os.stat_result) -> int:
    return stat.st_mtime_ns // 1_000_000


def format_etag(inode: int, size: int, mtime_ms: int) -> str:
    return json.dumps(f"{inode}-{size}-{mtime_ms}")


def compute_etag(stat: os.stat_result) -> str:
    return format_etag(stat.st_ino, stat.st_size, mtime_millis(stat))


def parse_etag(value: str) -> EtagParts | None:
    """Parse an If-Match value produced by format_etag. Return None if malformed."""
    try:
        decoded = json.loads(value)
    except ValueError:
        return None
    if not isinstance(decoded, str):
        return None
    parts = decoded.split("-")
    if len(parts) != _ETAG_PARTS:
        return None
    inode, size, mtime = parts
    try:
        return EtagParts(inode=inode, size=size, mtime_ms=int(mtime))
    except ValueError:
        return None
