"""Virtual tree configuration: groups, folders, and the option objects they carry.

Nodes are declared in the server configuration file using the ``$element``
discriminator, e.g.::

    tree:
      $element: group
      $children:
        - {$element: auth, authList: [admins]}
        - {$element: folder, key: notes, path: ./notes}
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TreeModel(BaseModel):
    """Base for configuration models: camelCase keys, snake_case accepted, immutable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid", frozen=True)


def resolve_against_config_dir(value: str, info: ValidationInfo) -> str:
    """Resolve a relative path against the configuration file directory passed as ``base_dir`` context."""
    base_dir = (info.context or {}).get("base_dir")
    path = Path(value).expanduser()
    if base_dir is not None and not path.is_absolute():
        path = Path(base_dir) / path
    return str(path)


class AuthOptions(TreeModel):
    element: Literal["auth"] = Field(default="auth", alias="$element")
    # None means unrestricted
    auth_list: list[str] | None = None
    auth_error: int = 403


class BackupOptions(TreeModel):
    element: Literal["backups"] = Field(default="backups", alias="$element")
    backup_folder: str = ""
    gzip: bool = True

    @field_validator("backup_folder")
    @classmethod
    def _resolve_backup_folder(cls, value: str, info: ValidationInfo) -> str:
        return resolve_against_config_dir(value, info) if value else value


class IndexOptions(TreeModel):
    element: Literal["index"] = Field(default="index", alias="$element")
    default_type: Literal["html", "json", 403, 404] = "html"
    index_file: list[str] = Field(default_factory=list)
    index_exts: list[str] = Field(default_factory=list)


NodeOption = Annotated[AuthOptions | BackupOptions | IndexOptions, Field(discriminator="element")]


class TreeFolder(TreeModel):
    """Leaf node mapping a URL prefix onto a directory on disk."""

    element: Literal["folder"] = Field(alias="$element")
    key: str = Field(min_length=1)
    path: str
    children: list[NodeOption] = Field(default_factory=list, alias="$children")

    @field_validator("path")
    @classmethod
    def _resolve_path(cls, value: str, info: ValidationInfo) -> str:
        return resolve_against_config_dir(value, info)

    @property
    def options(self) -> list[AuthOptions | BackupOptions | IndexOptions]:
        return list(self.children)


class TreeGroup(TreeModel):
    """Interior node. The root group has no key."""

    element: Literal["group"] = Field(default="group", alias="$element")
    key: str = ""
    index_path: str | None = None
    children: list[TreeChild] = Field(default_factory=list, alias="$children")

    @field_validator("index_path")
    @classmethod
    def _resolve_index_path(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        return resolve_against_config_dir(value, info)

    @model_validator(mode="after")
    def _validate_unique_keys(self) -> Self:
        seen: set[str] = set()
        for item in self.items:
            if not item.key:
                raise ValueError("Tree items below the root must have a non-empty key")
            if item.key in seen:
                raise ValueError(f"Duplicate tree key {item.key!r}")
            seen.add(item.key)
        return self

    @property
    def items(self) -> list[TreeGroup | TreeFolder]:
        return [child for child in self.children if isinstance(child, TreeGroup | TreeFolder)]

    @property
    def options(self) -> list[AuthOptions | BackupOptions | IndexOptions]:
        return [child for child in self.children if isinstance(child, AuthOptions | BackupOptions | IndexOptions)]

    def find_item(self, key: str) -> TreeGroup | TreeFolder | None:
        return next((item for item in self.items if item.key == key), None)


TreeNode = TreeGroup | TreeFolder

TreeChild = Annotated[
    TreeGroup | TreeFolder | AuthOptions | BackupOptions | IndexOptions,
    Field(discriminator="element"),
]

TreeGroup.model_rebuild()
