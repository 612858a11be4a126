"""Tests for URL path resolution against the virtual tree."""

from pathlib import Path

import pytest

from tree.models import TreeFolder, TreeGroup
from tree.resolver import resolve_tree_path, split_url_path


@pytest.fixture
def tree(tmp_path):
    return TreeGroup.model_validate(
        {
            "$children": [
                {"$element": "folder", "key": "notes", "path": str(tmp_path / "notes")},
                {
                    "$element": "group",
                    "key": "team",
                    "$children": [{"$element": "folder", "key": "wiki", "path": str(tmp_path / "wiki")}],
                },
            ],
        },
    )


class TestSplitUrlPath:
    def test_splits_and_drops_empty_segments(self):
        assert split_url_path("/a//b/c/") == ["a", "b", "c"]

    def test_root(self):
        assert split_url_path("/") == []

    @pytest.mark.parametrize("path", ["/a/../b", "/./a", "/a/..", "/a\\b", "/a\x00b"])
    def test_unsafe_segments(self, path):
        assert split_url_path(path) is None

    def test_dots_inside_names_allowed(self):
        assert split_url_path("/notes/my..file.html") == ["notes", "my..file.html"]


class TestResolveTreePath:
    def test_root_is_group_index(self, tree):
        result = resolve_tree_path([], tree)

        assert result.item is tree
        assert result.ancestry == ()
        assert result.is_group
        assert result.full_filepath is None

    def test_folder_with_file_portion(self, tree, tmp_path):
        result = resolve_tree_path(["notes", "sub", "wiki.html"], tree)

        assert isinstance(result.item, TreeFolder)
        assert result.ancestry == (tree,)
        assert result.tree_portion == ("notes",)
        assert result.filepath_portion == ("sub", "wiki.html")
        assert result.full_filepath == Path(tmp_path / "notes" / "sub" / "wiki.html")

    def test_nested_group(self, tree):
        result = resolve_tree_path(["team"], tree)

        assert result.is_group
        assert result.item.key == "team"
        assert result.chain == (tree, result.item)

    def test_folder_inside_nested_group(self, tree, tmp_path):
        result = resolve_tree_path(["team", "wiki", "index.html"], tree)

        assert [node.key for node in result.ancestry] == ["", "team"]
        assert result.full_filepath == tmp_path / "wiki" / "index.html"

    def test_unknown_key(self, tree):
        assert resolve_tree_path(["missing"], tree) is None
        assert resolve_tree_path(["team", "missing"], tree) is None

    def test_folder_itself(self, tree, tmp_path):
        result = resolve_tree_path(["notes"], tree)
        assert result.filepath_portion == ()
        assert result.full_filepath == tmp_path / "notes"
