"""Directory listings for tree groups and folders, and index-file discovery."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from anyio import to_thread
from starlette.templating import Jinja2Templates

from files.etag import mtime_millis
from tree.models import TreeGroup

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from tree.resolver import TreePathResult

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    kind: str  # "group" or "folder" for tree items, "directory" or "file" on disk
    size: int | None = None
    modified_ms: int | None = None

    @property
    def is_container(self) -> bool:
        return self.kind != "file"

    def to_json(self) -> dict[str, Any]:
        return asdict(self)


def create_templates() -> Jinja2Templates:
    """Create the Jinja2 template engine for directory index pages."""
    return Jinja2Templates(directory=str(TEMPLATES_DIR))


def index_candidates(index_file: Sequence[str], index_exts: Sequence[str]) -> list[str]:
    """Expand index base names and extensions into candidate file names, in priority order."""
    return [name if not ext else f"{name}.{ext}" for name in index_file for ext in index_exts]


def find_index_file(names: Iterable[str], index_file: Sequence[str], index_exts: Sequence[str]) -> str | None:
    present = set(names)
    return next((candidate for candidate in index_candidates(index_file, index_exts) if candidate in present), None)


def _scan_directory(path: Path) -> list[DirectoryEntry]:
    entries: list[DirectoryEntry] = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                stat = entry.stat()
                is_dir = entry.is_dir()
            except OSError:
                # broken symlink or vanished entry
                continue
            entries.append(
                DirectoryEntry(
                    name=entry.name,
                    kind="directory" if is_dir else "file",
                    size=None if is_dir else stat.st_size,
                    modified_ms=mtime_millis(stat),
                ),
            )
    return entries


def sort_entries(entries: Iterable[DirectoryEntry], *, mix_folders: bool) -> list[DirectoryEntry]:
    if mix_folders:
        return sorted(entries, key=lambda e: e.name.lower())
    return sorted(entries, key=lambda e: (not e.is_container, e.name.lower()))


async def list_directory(result: TreePathResult, *, mix_folders: bool) -> list[DirectoryEntry]:
    """List a group's tree items or a folder's directory on disk. OSError propagates."""
    if isinstance(result.item, TreeGroup):
        entries = [
            DirectoryEntry(name=item.key, kind="group" if isinstance(item, TreeGroup) else "folder")
            for item in result.item.items
        ]
    else:
        entries = await to_thread.run_sync(_scan_directory, result.full_filepath)
    return sort_entries(entries, mix_folders=mix_folders)


async def read_directory_names(path: Path) -> list[str]:
    return await to_thread.run_sync(os.listdir, path)
