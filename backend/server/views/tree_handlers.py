"""Requests into the virtual tree: files, directory indexes, and conditional saves.

Every request is resolved and authorized against the tree before any file
I/O happens.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog
from anyio import to_thread
from starlette.exceptions import HTTPException
from starlette.responses import FileResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response

from files.etag import compute_etag, mtime_millis
from files.listing import find_index_file, list_directory, read_directory_names
from files.putsaver import PreconditionFailed, SaveError, check_if_match, save_file
from server.auth.models import AuthenticatedAccount
from server.middleware import HOST_PERMISSIONS_STATE_KEY
from tree.authorizer import authorize
from tree.models import TreeFolder
from tree.options import merge_tree_options
from tree.resolver import resolve_tree_path, split_url_path

if TYPE_CHECKING:
    from starlette.requests import Request

    from common.config import ServerConfig
    from tree.options import TreeOptions
    from tree.resolver import TreePathResult

logger = structlog.get_logger()

FILE_METHODS = "GET,HEAD,PUT,OPTIONS"
_FILE_HEADERS = {"x-api-access-type": "file", "dav": "tw5/put"}


def _logged_in(request: Request) -> str | bool:
    user = request.user
    if isinstance(user, AuthenticatedAccount):
        return f"{user.username} (group {user.account_key})"
    return False


def _file_error(request: Request, message: str) -> Response:
    """500 for file I/O failures; the reason is only written when the host bucket allows it."""
    config: ServerConfig = request.app.state.config
    permissions = config.host_permissions(getattr(request.state, HOST_PERMISSIONS_STATE_KEY))
    if permissions.write_errors:
        return PlainTextResponse(message, status_code=500)
    return Response(status_code=500)


async def _stat(path: Path) -> os.stat_result | None:
    try:
        return await to_thread.run_sync(os.stat, path)
    except (FileNotFoundError, NotADirectoryError):
        return None


async def _send_file(request: Request, path: Path) -> Response:
    try:
        file_stat = await _stat(path)
    except OSError as e:
        logger.error("error reading file", path=str(path), error=str(e))
        return _file_error(request, "Error reading file")
    if file_stat is None or not stat.S_ISREG(file_stat.st_mode):
        raise HTTPException(status_code=404)
    return FileResponse(path, stat_result=file_stat, headers={"Etag": compute_etag(file_stat)})


async def handle_tree_request(request: Request) -> Response:
    """Any method on any path outside /admin."""
    config: ServerConfig = request.app.state.config
    url_path: str = request.scope["path"]

    segments = split_url_path(url_path)
    result = resolve_tree_path(segments, config.tree) if segments is not None else None
    if result is None:
        raise HTTPException(status_code=404)

    options = merge_tree_options(result.chain)
    user = request.user
    authorize(options.auth, user.account if isinstance(user, AuthenticatedAccount) else None)

    if result.is_group:
        return await serve_directory_index(request, result, options)

    target = result.full_filepath
    try:
        file_stat = await _stat(target)
    except OSError as e:
        logger.error("error reading file", path=str(target), error=str(e))
        return _file_error(request, "Error reading file")
    if file_stat is None:
        raise HTTPException(status_code=404)
    if stat.S_ISDIR(file_stat.st_mode):
        return await serve_directory_index(request, result, options)
    if not stat.S_ISREG(file_stat.st_mode):
        raise HTTPException(status_code=404)

    if request.method in {"GET", "HEAD"}:
        return FileResponse(target, stat_result=file_stat, headers={"Etag": compute_etag(file_stat)})
    if request.method == "PUT":
        return await handle_put(request, target, file_stat, options)
    if request.method == "OPTIONS":
        return PlainTextResponse(FILE_METHODS, headers=_FILE_HEADERS)
    raise HTTPException(status_code=405)


async def handle_put(request: Request, target: Path, file_stat: os.stat_result, options: TreeOptions) -> Response:
    """Save the request body over an existing file, honouring If-Match and writing a backup."""
    putsaver = request.app.state.config.putsaver
    mtime_ms = mtime_millis(file_stat)
    try:
        check_if_match(
            request.headers.get("if-match", ""),
            compute_etag(file_stat),
            mtime_ms,
            mode=putsaver.etag,
            window_seconds=putsaver.etag_window,
        )
    except PreconditionFailed:
        raise HTTPException(status_code=412) from None

    try:
        etag = await save_file(
            target,
            request.stream(),
            url_path=quote(request.scope["path"]),
            mtime_ms=mtime_ms,
            backup_dir=options.backups.backup_folder or putsaver.backup_directory,
            compress_backup=options.backups.gzip,
        )
    except SaveError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    logger.info("file saved", path=request.scope["path"])
    return Response(status_code=200, headers={"x-api-access-type": "file", "etag": etag})


async def serve_directory_index(request: Request, result: TreePathResult, options: TreeOptions) -> Response:
    url_path: str = request.scope["path"]
    if not url_path.endswith("/"):
        return RedirectResponse(quote(url_path) + "/", status_code=302)
    if request.method != "GET":
        raise HTTPException(status_code=405)

    index = options.index
    item = result.item
    if isinstance(item, TreeFolder):
        if index.index_file and index.index_exts:
            try:
                names = await read_directory_names(result.full_filepath)
            except OSError as e:
                logger.error("error calling readdir on folder", path=str(result.full_filepath), error=str(e))
                return _file_error(request, "Error reading directory")
            found = find_index_file(names, index.index_file, index.index_exts)
            if found is not None:
                return await _send_file(request, result.full_filepath / found)
    elif item.index_path:
        return await _send_file(request, Path(item.index_path))

    if index.default_type in {403, 404}:
        raise HTTPException(status_code=index.default_type)

    config: ServerConfig = request.app.state.config
    try:
        entries = await list_directory(result, mix_folders=config.directory_index.mix_folders)
    except OSError as e:
        logger.error("error listing directory", path=url_path, error=str(e))
        return _file_error(request, "Error reading directory")

    logged_in = _logged_in(request)
    if index.default_type == "json":
        return JSONResponse(
            {"path": url_path, "isLoggedIn": logged_in, "entries": [entry.to_json() for entry in entries]},
        )
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "directory.html",
        {"path": url_path, "logged_in": logged_in, "entries": entries},
    )
