"""Item metadata — physical directory entries to ``Item`` records."""

from __future__ import annotations

import stat as stat_module
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .types import Item, ItemKind
from .utils import guess_mime_type, normalize_path, split_path

if TYPE_CHECKING:
    import os
    from pathlib import Path


def item_id(owner_id: str, logical_path: str) -> str:
    """Deterministic item id. Recomputed on every read, never stored."""
    return f"{owner_id}:{normalize_path(logical_path)}"


def _created_at(st: os.stat_result) -> datetime:
    # st_birthtime exists on macOS/BSD and Windows (3.12+); st_ctime otherwise
    birth = getattr(st, "st_birthtime", None)
    return datetime.fromtimestamp(birth if birth is not None else st.st_ctime, tz=UTC)


def build_item(owner_id: str, logical_path: str, st: os.stat_result) -> Item:
    """Build an ``Item`` from an already-taken stat of the entry."""
    logical_path = normalize_path(logical_path)
    _, name = split_path(logical_path)
    is_dir = stat_module.S_ISDIR(st.st_mode)
    is_file = stat_module.S_ISREG(st.st_mode)
    return Item(
        id=item_id(owner_id, logical_path),
        name=name,
        kind=ItemKind.FOLDER if is_dir else ItemKind.FILE,
        logical_path=logical_path,
        owner_id=owner_id,
        size=st.st_size if is_file else None,
        mime_type=guess_mime_type(name) if not is_dir else None,
        created_at=_created_at(st),
        updated_at=datetime.fromtimestamp(st.st_mtime, tz=UTC),
    )


def stat_item(owner_id: str, logical_path: str, physical: Path) -> Item:
    """Stat *physical* and build its ``Item``. Raises ``OSError`` if it vanished."""
    return build_item(owner_id, logical_path, physical.stat())
