"""Server configuration file: bind info, auth accounts, put-saver, and the virtual tree.

The file is YAML (JSON is accepted as a YAML subset). Keys use the camelCase
spelling of the settings file format; snake_case names are accepted too.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import Field, ValidationError, ValidationInfo, field_validator

from tree.models import TreeGroup, TreeModel, resolve_against_config_dir

logger = structlog.get_logger()

LOCALHOST_PERMISSIONS_KEY = "localhost"
WILDCARD_PERMISSIONS_KEY = "*"
DEFAULT_AUTH_COOKIE_AGE = 2592000  # 30 days
WILDCARD_IPV4 = "0.0.0.0"  # noqa: S104
WILDCARD_IPV6 = "::"
LOOPBACK_IPV4 = "127.0.0.1"


class ConfigError(Exception):
    """Invalid server configuration. The server must not start with it."""


class HostLevelPermission(TreeModel):
    model_config = {"extra": "ignore"}

    write_errors: bool = True
    mkdir: bool = False
    upload: bool = False
    websockets: bool = True
    register_notice: bool = False


_DEFAULT_HOST_PERMISSIONS = {
    LOCALHOST_PERMISSIONS_KEY: HostLevelPermission(
        write_errors=True,
        mkdir=True,
        upload=True,
        websockets=True,
        register_notice=True,
    ),
    WILDCARD_PERMISSIONS_KEY: HostLevelPermission(),
}


class BindInfo(TreeModel):
    model_config = {"extra": "ignore"}

    bind_address: list[str] = Field(default_factory=lambda: ["127.0.0.1"])
    port: int = 8080
    bind_wildcard: bool = False
    filter_bind_address: bool = False
    enable_ipv6: bool = Field(default=False, alias="enableIPv6")
    bind_localhost: bool = Field(default=False, alias="_bindLocalhost")
    host_level_permissions: dict[str, HostLevelPermission] = Field(default_factory=dict, validate_default=True)

    @field_validator("host_level_permissions")
    @classmethod
    def _fill_default_buckets(cls, value: dict[str, HostLevelPermission]) -> dict[str, HostLevelPermission]:
        """The localhost and wildcard buckets always exist; declared order is preserved."""
        merged = dict(value)
        for key, default in _DEFAULT_HOST_PERMISSIONS.items():
            merged.setdefault(key, default)
        return merged

    def listen_addresses(self) -> list[str]:
        """Addresses to listen on.

        ``bindWildcard`` listens on every interface (IPv6 too with ``enableIPv6``).
        ``filterBindAddress`` does the same and leaves it to the server to refuse
        connections on addresses outside ``bindAddress``. Otherwise each
        ``bindAddress`` entry is bound as given.
        """
        if self.bind_wildcard or self.filter_bind_address:
            hosts = [WILDCARD_IPV4, WILDCARD_IPV6] if self.enable_ipv6 else [WILDCARD_IPV4]
        else:
            hosts = list(self.bind_address)
        if self.bind_localhost and WILDCARD_IPV4 not in hosts and LOOPBACK_IPV4 not in hosts:
            hosts.append(LOOPBACK_IPV4)
        return hosts


class AuthAccount(TreeModel):
    client_keys: dict[str, str] = Field(default_factory=dict)
    # Accepted for compatibility with existing settings files; password login is not implemented.
    passwords: dict[str, str] = Field(default_factory=dict)


class PutSaverConfig(TreeModel):
    # "disabled", "required", or anything else for optional If-Match checking
    etag: str = ""
    etag_window: float = 0
    backup_directory: str = ""

    @field_validator("backup_directory")
    @classmethod
    def _resolve_backup_directory(cls, value: str, info: ValidationInfo) -> str:
        return resolve_against_config_dir(value, info) if value else value


class DirectoryIndexConfig(TreeModel):
    mix_folders: bool = True


class LoggingConfig(TreeModel):
    model_config = {"extra": "ignore"}

    log_access: bool = True


class ServerConfig(TreeModel):
    model_config = {"extra": "ignore"}

    bind_info: BindInfo = Field(default_factory=BindInfo)
    auth_accounts: dict[str, AuthAccount] = Field(default_factory=dict)
    auth_cookie_age: int = DEFAULT_AUTH_COOKIE_AGE
    putsaver: PutSaverConfig = Field(default_factory=PutSaverConfig)
    directory_index: DirectoryIndexConfig = Field(default_factory=DirectoryIndexConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tree: TreeGroup = Field(default_factory=TreeGroup)

    def host_permissions(self, key: str) -> HostLevelPermission:
        permissions = self.bind_info.host_level_permissions
        return permissions.get(key, permissions[WILDCARD_PERMISSIONS_KEY])


def parse_config(data: Any, base_dir: Path | None = None) -> ServerConfig:  # noqa: ANN401
    """Validate already-decoded configuration data.

    Relative folder paths in the tree are resolved against base_dir.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"Configuration must be a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    try:
        return ServerConfig.model_validate(data, context={"base_dir": base_dir})
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_config(path: Path) -> ServerConfig:
    """Read and validate the configuration file at path."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        msg = f"Cannot read configuration file {path}: {e}"
        raise ConfigError(msg) from e
    except yaml.YAMLError as e:
        msg = f"Malformed configuration file {path}: {e}"
        raise ConfigError(msg) from e

    config = parse_config(data, base_dir=path.resolve().parent)
    logger.info(
        "configuration loaded",
        path=str(path),
        accounts=len(config.auth_accounts),
        host_permissions=list(config.bind_info.host_level_permissions),
    )
    return config
