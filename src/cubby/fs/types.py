"""Item model and per-operation result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from .exceptions import CubbyError


class ItemKind(str, Enum):
    """Physical entry type of an item."""

    FILE = "file"
    FOLDER = "folder"


@dataclass
class Item:
    """A file or folder as observed on disk, scoped to one owner."""

    id: str
    name: str
    kind: ItemKind
    logical_path: str
    owner_id: str
    size: int | None = None
    mime_type: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind is ItemKind.FOLDER

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly rendering for the presentation layer."""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "logical_path": self.logical_path,
            "owner_id": self.owner_id,
            "size": self.size,
            "mime_type": self.mime_type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# =============================================================================
# Result envelope
# =============================================================================


@dataclass
class OperationResult:
    """Common shape of every operation result.

    ``error`` holds the typed failure (a ``CubbyError``) when
    ``success`` is False; ``message`` is always human-readable.
    """

    success: bool
    message: str
    error: CubbyError | None = None

    def payload(self) -> Any:
        return None

    def to_envelope(self) -> dict[str, Any]:
        """Render as ``{success, data}`` or ``{success, error}``."""
        if not self.success:
            return {"success": False, "error": self.message}
        return {"success": True, "data": self.payload()}


@dataclass
class ListResult(OperationResult):
    """Result of a list directory operation."""

    items: list[Item] = field(default_factory=list)
    path: str = "/"

    def payload(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.items]


@dataclass
class SearchResult(OperationResult):
    """Result of a search (or full-tree listing) operation."""

    items: list[Item] = field(default_factory=list)
    query: str = ""

    def payload(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self.items]


@dataclass
class FolderResult(OperationResult):
    """Result of a create-folder operation."""

    item: Item | None = None

    def payload(self) -> dict[str, Any] | None:
        return self.item.to_dict() if self.item else None


@dataclass
class InfoResult(OperationResult):
    """Result of a single-item metadata lookup."""

    item: Item | None = None

    def payload(self) -> dict[str, Any] | None:
        return self.item.to_dict() if self.item else None


@dataclass
class DeleteResult(OperationResult):
    """Result of a delete operation."""

    path: str | None = None
    kind: ItemKind | None = None


@dataclass
class MoveResult(OperationResult):
    """Result of a rename or move operation."""

    old_path: str | None = None
    new_path: str | None = None
    item: Item | None = None

    def payload(self) -> dict[str, Any] | None:
        return self.item.to_dict() if self.item else None


@dataclass
class CopyResult(OperationResult):
    """Result of a copy operation."""

    src_path: str | None = None
    dst_path: str | None = None
    item: Item | None = None

    def payload(self) -> dict[str, Any] | None:
        return self.item.to_dict() if self.item else None


@dataclass
class UploadResult(OperationResult):
    """Result of an upload. ``renamed`` is True when the name was deconflicted."""

    item: Item | None = None
    renamed: bool = False

    def payload(self) -> dict[str, Any] | None:
        return self.item.to_dict() if self.item else None


@dataclass
class DownloadResult(OperationResult):
    """Result of a download: raw bytes plus the file's metadata."""

    content: bytes | None = None
    item: Item | None = None

    def payload(self) -> bytes | None:
        return self.content


@dataclass
class ShareResult(OperationResult):
    """Result of a share request."""

    path: str | None = None
    target: str | None = None


@dataclass
class ProvisionResult(OperationResult):
    """Result of provisioning or deprovisioning a storage root."""

    owner_id: str | None = None
    root: Path | None = None
    created: bool = False
