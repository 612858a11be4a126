"""Inherited ``auth``/``backups``/``index`` options along a resolved tree path."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tree.models import AuthOptions, BackupOptions, IndexOptions

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tree.models import TreeNode


@dataclass(frozen=True)
class TreeOptions:
    auth: AuthOptions
    backups: BackupOptions
    index: IndexOptions


def merge_tree_options(chain: Iterable[TreeNode]) -> TreeOptions:
    """Merge option objects from root to leaf.

    Each option object only overrides the keys it sets explicitly, so the
    closest node that set a key wins and unset keys are inherited.
    """
    merged: dict[str, dict[str, Any]] = {"auth": {}, "backups": {}, "index": {}}
    for node in chain:
        for option in node.options:
            merged[option.element].update(option.model_dump(exclude_unset=True, exclude={"element"}))

    return TreeOptions(
        auth=AuthOptions(**merged["auth"]),
        backups=BackupOptions(**merged["backups"]),
        index=IndexOptions(**merged["index"]),
    )
