"""Cubby: per-user virtual filesystem.

Logical, owner-scoped paths over isolated on-disk storage roots.
"""

__version__ = "0.1.0"

from cubby._cubby import Cubby
from cubby._cubby_async import CubbyAsync
from cubby.config import CubbySettings, get_settings
from cubby.events import EventBus, EventType, StorageEvent
from cubby.fs.exceptions import (
    CubbyError,
    InvalidNameError,
    InvalidOwnerError,
    InvalidPathError,
    NameConflictError,
    NotAFileError,
    NotAFolderError,
    NotFoundError,
    PathEscapeError,
    StorageIOError,
    UploadTooLargeError,
)
from cubby.fs.types import Item, ItemKind

__all__ = [
    "Cubby",
    "CubbyAsync",
    "CubbyError",
    "CubbySettings",
    "EventBus",
    "EventType",
    "InvalidNameError",
    "InvalidOwnerError",
    "InvalidPathError",
    "Item",
    "ItemKind",
    "NameConflictError",
    "NotAFileError",
    "NotAFolderError",
    "NotFoundError",
    "PathEscapeError",
    "StorageEvent",
    "StorageIOError",
    "UploadTooLargeError",
    "__version__",
    "get_settings",
]
