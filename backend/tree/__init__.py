"""Virtual tree: configuration nodes, path resolution, option inheritance, authorization."""

from tree.authorizer import ANONYMOUS_ACCOUNT, AccessDenied, authorize, is_authorized
from tree.models import AuthOptions, BackupOptions, IndexOptions, TreeFolder, TreeGroup, TreeNode
from tree.options import TreeOptions, merge_tree_options
from tree.resolver import TreePathResult, resolve_tree_path, split_url_path

__all__ = [
    "ANONYMOUS_ACCOUNT",
    "AccessDenied",
    "AuthOptions",
    "BackupOptions",
    "IndexOptions",
    "TreeFolder",
    "TreeGroup",
    "TreeNode",
    "TreeOptions",
    "TreePathResult",
    "authorize",
    "is_authorized",
    "merge_tree_options",
    "resolve_tree_path",
    "split_url_path",
]
