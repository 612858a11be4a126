"""Map a URL path onto the virtual tree.

Resolution walks groups by key, one path segment at a time. Reaching a folder
ends the walk: the remaining segments address a file or directory inside the
folder's root on disk. A group that consumes every segment is a directory index.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from tree.models import TreeFolder, TreeGroup

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tree.models import TreeNode

_UNSAFE_SEGMENTS = {".", ".."}
_UNSAFE_CHARACTERS = ("/", "\\", "\x00")


@dataclass(frozen=True)
class TreePathResult:
    ancestry: tuple[TreeGroup, ...]  # root first, parent of item last
    item: TreeNode
    tree_portion: tuple[str, ...]
    filepath_portion: tuple[str, ...]

    @property
    def chain(self) -> tuple[TreeNode, ...]:
        return (*self.ancestry, self.item)

    @property
    def is_group(self) -> bool:
        return isinstance(self.item, TreeGroup)

    @property
    def full_filepath(self) -> Path | None:
        if not isinstance(self.item, TreeFolder):
            return None
        return Path(self.item.path).joinpath(*self.filepath_portion)


def split_url_path(path: str) -> list[str] | None:
    """Split an already-decoded URL path into segments.

    Returns None when a segment could escape its folder (``..``, separators, NUL).
    """
    segments = [segment for segment in path.split("/") if segment]
    for segment in segments:
        if segment in _UNSAFE_SEGMENTS or any(char in segment for char in _UNSAFE_CHARACTERS):
            return None
    return segments


def _is_contained(root: str, portion: Sequence[str]) -> bool:
    base = os.path.normpath(root)
    target = os.path.normpath(os.path.join(base, *portion))
    return target == base or target.startswith(base.rstrip(os.sep) + os.sep)


def resolve_tree_path(segments: Sequence[str], root: TreeGroup) -> TreePathResult | None:
    """Find the tree item addressed by segments, or None when nothing matches."""
    ancestry: list[TreeGroup] = []
    item: TreeNode = root
    consumed = 0

    while isinstance(item, TreeGroup) and consumed < len(segments):
        child = item.find_item(segments[consumed])
        if child is None:
            return None
        ancestry.append(item)
        item = child
        consumed += 1

    filepath_portion = tuple(segments[consumed:])
    if isinstance(item, TreeFolder) and not _is_contained(item.path, filepath_portion):
        return None

    return TreePathResult(
        ancestry=tuple(ancestry),
        item=item,
        tree_portion=tuple(segments[:consumed]),
        filepath_portion=filepath_portion,
    )
