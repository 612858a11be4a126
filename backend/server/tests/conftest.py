"""Shared fixtures for server tests: a small tree on disk and an app serving it."""

from __future__ import annotations

import pytest
from starlette.testclient import TestClient

from common.config import parse_config
from server.app import create_app
from server.settings import ServerSettings


@pytest.fixture
def site(tmp_path):
    """Directory layout served by the test tree."""
    public = tmp_path / "public"
    (public / "sub").mkdir(parents=True)
    (public / "notes.html").write_text("<html>notes</html>")
    (public / "sub" / "page.txt").write_text("page")

    private = tmp_path / "private"
    private.mkdir()
    (private / "diary.html").write_text("<html>diary</html>")

    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "index.html").write_text("<html>docs index</html>")
    (docs / "other.html").write_text("other")

    (tmp_path / "home.html").write_text("<html>home</html>")
    return tmp_path


@pytest.fixture
def config_data(alice_key):
    return {
        "authAccounts": {"admins": {"clientKeys": {"alice": alice_key.public_key}}},
        "putsaver": {"etagWindow": 3},
        "tree": {
            "$element": "group",
            "$children": [
                {"$element": "folder", "key": "public", "path": "public"},
                {
                    "$element": "group",
                    "key": "private",
                    "$children": [
                        {"$element": "auth", "authList": ["admins"]},
                        {"$element": "folder", "key": "notes", "path": "private"},
                    ],
                },
                {
                    "$element": "folder",
                    "key": "hidden",
                    "path": "private",
                    "$children": [{"$element": "auth", "authList": ["admins"], "authError": 404}],
                },
                {
                    "$element": "folder",
                    "key": "docs",
                    "path": "docs",
                    "$children": [{"$element": "index", "indexFile": ["index"], "indexExts": ["html"]}],
                },
                {
                    "$element": "folder",
                    "key": "api",
                    "path": "public",
                    "$children": [{"$element": "index", "defaultType": "json"}],
                },
                {
                    "$element": "folder",
                    "key": "closed",
                    "path": "public",
                    "$children": [{"$element": "index", "defaultType": 404}],
                },
                {"$element": "group", "key": "home", "indexPath": "home.html"},
            ],
        },
    }


@pytest.fixture
def app(site, config_data):
    settings = ServerSettings(config_path=site / "settings.yaml")
    return create_app(settings=settings, config=parse_config(config_data, base_dir=site))


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def alice_cookie(alice_key):
    return {"Cookie": f"TiddlyServerAuth={alice_key.cookie_value('alice')}"}
