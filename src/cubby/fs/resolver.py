"""PathResolver — logical, owner-scoped paths to contained physical paths."""

from __future__ import annotations

import logging
from pathlib import Path

from .exceptions import InvalidOwnerError, InvalidPathError, PathEscapeError
from .utils import normalize_path, validate_path

logger = logging.getLogger(__name__)


class PathResolver:
    """Maps ``(owner_id, logical_path)`` onto ``{storage_dir}/{owner_id}/...``.

    Every owner gets a disjoint storage root directly under
    ``storage_dir``.  ``resolve()`` guarantees the returned path lies
    strictly inside that root: ``..`` climbing above the root, symlink
    components (unless ``follow_symlinks``), and symlinks whose target
    leaves the root all raise ``PathEscapeError``.

    The resolver never creates anything; callers that need a directory
    to exist create it themselves.
    """

    def __init__(self, storage_dir: Path | str, *, follow_symlinks: bool = False) -> None:
        self.storage_dir = Path(storage_dir).resolve()
        self.follow_symlinks = follow_symlinks

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------

    @staticmethod
    def validate_owner(owner_id: str | None) -> str:
        """Raise if *owner_id* is missing, empty, or cannot name a directory."""
        if not owner_id:
            raise InvalidOwnerError("owner_id is required")
        if "/" in owner_id or "\\" in owner_id or "\0" in owner_id:
            raise InvalidOwnerError("owner_id contains invalid characters")
        if ".." in owner_id or owner_id == ".":
            raise InvalidOwnerError("owner_id contains invalid characters")
        return owner_id

    def root_for(self, owner_id: str) -> Path:
        """Physical storage root of *owner_id* (may not exist yet)."""
        return self.storage_dir / self.validate_owner(owner_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    @staticmethod
    def normalize(logical_path: str) -> str:
        """Validate and canonicalize a logical path."""
        valid, error = validate_path(logical_path)
        if not valid:
            raise InvalidPathError(error)
        return normalize_path(logical_path)

    def resolve(self, owner_id: str, logical_path: str) -> Path:
        """Resolve a logical path to a physical path inside the owner's root.

        The returned path is not dereferenced: a symlink (when allowed)
        is returned as the link itself so that delete/rename act on the
        link, not its target.
        """
        root = self.root_for(owner_id)
        logical = self.normalize(logical_path)

        if root.is_symlink():
            raise PathEscapeError(f"Storage root of {owner_id!r} is a symlink")

        rel = logical.lstrip("/")
        if not rel:
            return root

        parts = rel.split("/")
        candidate = root.joinpath(*parts)

        if not self.follow_symlinks:
            current = root
            for part in parts:
                current = current / part
                if current.is_symlink():
                    raise PathEscapeError(
                        f"Symlinks not allowed: {logical} contains symlink at "
                        f"{current.relative_to(root).as_posix()}"
                    )

        if not self.is_contained(owner_id, candidate):
            raise PathEscapeError(
                f"Path traversal detected: {logical} resolves outside storage root"
            )

        return candidate

    def is_contained(self, owner_id: str, physical: Path) -> bool:
        """True if *physical*, fully dereferenced, stays inside the owner's root."""
        root = self.root_for(owner_id).resolve()
        try:
            Path(physical).resolve().relative_to(root)
        except ValueError:
            return False
        return True

    def to_logical(self, owner_id: str, physical: Path) -> str:
        """Convert a physical path under the owner's root back to a logical path."""
        rel = Path(physical).relative_to(self.root_for(owner_id))
        logical = "/" + rel.as_posix()
        return logical if logical != "/." else "/"
