"""Conditional file saves (HTTP PUT) with gzip backups of the replaced version.

If-Match handling depends on the ``putsaver.etag`` mode:

- ``disabled``: never checked.
- ``required``: the header must be present and match.
- anything else: checked only when the client sends it.

A stale etag is still accepted when the file on disk was modified no more
than ``etagWindow`` seconds after the version the client saw.
"""

from __future__ import annotations

import functools
import gzip
import os
import re
import shutil
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import anyio
import structlog
from anyio import to_thread

from files.etag import compute_etag, parse_etag

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = structlog.get_logger()

_BACKUP_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_\-+()%]")
_ETAG_FIELDS = ("inode", "size", "modified")


class EtagMode(StrEnum):
    DISABLED = "disabled"
    REQUIRED = "required"


class PreconditionFailed(Exception):
    """If-Match does not match the file on disk."""


class SaveError(Exception):
    """The backup or the new file contents could not be written."""


def check_if_match(
    if_match: str,
    current_etag: str,
    disk_mtime_ms: int,
    *,
    mode: str,
    window_seconds: float,
) -> None:
    """Raise PreconditionFailed unless the write may proceed."""
    if mode == EtagMode.DISABLED:
        return
    if not if_match and mode != EtagMode.REQUIRED:
        return
    if if_match == current_etag:
        return

    client = parse_etag(if_match)
    if client is None:
        raise PreconditionFailed("missing or malformed If-Match")

    disk = parse_etag(current_etag)
    if disk is not None:
        differences = [
            name
            for name, theirs, ours in zip(
                _ETAG_FIELDS,
                (client.inode, client.size, client.mtime_ms),
                (disk.inode, disk.size, disk.mtime_ms),
                strict=True,
            )
            if theirs != ours
        ]
        logger.info("etag mismatch", if_match=if_match, etag=current_etag, differences=differences)

    if not window_seconds or disk_mtime_ms - window_seconds * 1000 > client.mtime_ms:
        raise PreconditionFailed("etag mismatch")
    logger.info("etag mismatch accepted within window", window_seconds=window_seconds)


def backup_file_name(url_path: str, mtime_ms: int, suffix: str, *, compress: bool) -> str:
    name = f"{_BACKUP_NAME_UNSAFE.sub('_', url_path)}-{mtime_ms}{suffix}"
    return f"{name}.gz" if compress else name


def _write_backup(source: Path, destination: Path, *, compress: bool) -> None:
    with source.open("rb") as src:
        if compress:
            with gzip.open(destination, "wb") as dst:
                shutil.copyfileobj(src, dst)
        else:
            with destination.open("wb") as dst:
                shutil.copyfileobj(src, dst)


async def save_file(
    target: Path,
    body: AsyncIterator[bytes],
    *,
    url_path: str,
    mtime_ms: int,
    backup_dir: str = "",
    compress_backup: bool = True,
) -> str:
    """Back up target (when backup_dir is set), write body over it, return the new etag."""
    if backup_dir:
        destination = Path(backup_dir) / backup_file_name(url_path, mtime_ms, target.suffix, compress=compress_backup)
        try:
            await to_thread.run_sync(functools.partial(_write_backup, target, destination, compress=compress_backup))
        except OSError as e:
            logger.error(
                "backup could not be saved; make sure the backup directory exists or unset it",
                path=url_path,
                backup=str(destination),
                error=str(e),
            )
            raise SaveError("Backup could not be saved") from e

    try:
        async with await anyio.open_file(target, "wb") as f:
            async for chunk in body:
                await f.write(chunk)
    except OSError as e:
        logger.error("error writing the updated file to disk", path=url_path, error=str(e))
        raise SaveError("Error writing the updated file to disk") from e

    stat = await to_thread.run_sync(os.stat, target)
    return compute_etag(stat)
