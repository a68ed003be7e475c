"""Cubby configuration — Pydantic BaseSettings loaded from the environment / .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from cubby.fs.operations import DEFAULT_MAX_UPLOAD_SIZE
from cubby.fs.provisioner import DEFAULT_FOLDERS
from cubby.fs.utils import validate_name


class CubbySettings(BaseSettings):
    """Storage engine settings. Every field can be set as ``CUBBY_<FIELD>``."""

    # Parent of every owner's storage root
    storage_dir: Path = Path("./data/files")

    # Seeded into a storage root when it is first created
    default_folders: Annotated[list[str], NoDecode] = list(DEFAULT_FOLDERS)

    max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE

    # Allow symlinks whose target stays inside the owner's root
    follow_symlinks: bool = False

    # Serialise mutating operations per owner (single writer per root)
    serialize_owner_writes: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CUBBY_",
        extra="ignore",
    )

    @field_validator("default_folders", mode="before")
    @classmethod
    def _split_folders(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str):
            return [f.strip() for f in value.split(",") if f.strip()]
        return value

    @field_validator("default_folders")
    @classmethod
    def _check_folders(cls, value: list[str]) -> list[str]:
        for name in value:
            valid, error = validate_name(name)
            if not valid:
                raise ValueError(f"Invalid default folder {name!r}: {error}")
        return value

    @field_validator("max_upload_size")
    @classmethod
    def _check_upload_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_upload_size must be positive")
        return value

    @model_validator(mode="after")
    def _resolve_paths(self) -> CubbySettings:
        """Make storage_dir absolute."""
        self.storage_dir = self.storage_dir.expanduser().resolve()
        return self


@lru_cache(maxsize=1)
def get_settings() -> CubbySettings:
    return CubbySettings()
