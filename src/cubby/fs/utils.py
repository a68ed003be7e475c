"""Logical path helpers, name validation, upload-name deconfliction."""

from __future__ import annotations

import mimetypes
import posixpath

from .exceptions import PathEscapeError

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255

# In-flight copies and uploads are staged under these names and hidden from scans
TEMP_PREFIX = ".cubby-"
TEMP_SUFFIX = ".tmp"


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a logical path to its canonical ``/a/b`` form.

    - Treats backslashes as separators
    - Ensures a single leading /
    - Drops empty and ``.`` segments
    - Resolves ``..`` against the preceding segment
    - Removes trailing slash (except for root)

    A ``..`` with nothing left to pop would climb above the owner's root,
    so it raises ``PathEscapeError`` rather than being clamped.

    Examples:
        normalize_path("foo.txt") -> "/foo.txt"
        normalize_path("/foo//bar.txt") -> "/foo/bar.txt"
        normalize_path("/foo/../bar.txt") -> "/bar.txt"
        normalize_path("/foo/") -> "/foo"
        normalize_path("") -> "/"
        normalize_path("../etc") -> PathEscapeError
    """
    if not path:
        return "/"

    cleaned = path.replace("\\", "/")

    parts: list[str] = []
    for segment in cleaned.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise PathEscapeError(f"Path escapes storage root: {path}")
            parts.pop()
            continue
        parts.append(segment)

    return "/" + "/".join(parts)


def split_path(path: str) -> tuple[str, str]:
    """Split path into (parent_dir, name).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/foo.txt") -> ("/", "foo.txt")
        split_path("/") -> ("/", "")
    """
    path = normalize_path(path)
    if path == "/":
        return "/", ""
    return posixpath.split(path)


def join_path(directory: str, name: str) -> str:
    """Join a logical directory and a child name into a normalized path."""
    return normalize_path(f"{normalize_path(directory)}/{name}")


def is_descendant(path: str, ancestor: str) -> bool:
    """True if *path* equals *ancestor* or lies beneath it (logical paths)."""
    path = normalize_path(path)
    ancestor = normalize_path(ancestor)
    if ancestor == "/":
        return True
    return path == ancestor or path.startswith(ancestor + "/")


def validate_path(path: str) -> tuple[bool, str]:
    """Validate a path for security and compatibility issues.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in path:
        return False, "Path contains null bytes"

    # Reject ASCII control characters (0x01-0x1f) except \t, \n, \r
    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F and ch not in ("\t", "\n", "\r"):
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > MAX_PATH_LENGTH:
        return False, f"Path too long (max {MAX_PATH_LENGTH} characters)"

    for segment in path.replace("\\", "/").split("/"):
        if len(segment) > MAX_NAME_LENGTH:
            return False, f"Filename too long (max {MAX_NAME_LENGTH} characters)"

    return True, ""


def validate_name(name: str) -> tuple[bool, str]:
    """Validate a single item name (folder, rename target, upload name).

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if not name or not name.strip():
        return False, "Name must not be empty"

    if "/" in name or "\\" in name:
        return False, f"Name must be a single path segment: {name}"

    if name in (".", ".."):
        return False, f"Invalid name: {name}"

    valid, error = validate_path(name)
    if not valid:
        return False, error

    name_upper = name.upper()
    base_name = name_upper.split(".")[0] if "." in name_upper else name_upper
    if base_name in RESERVED_NAMES:
        return False, f"Reserved filename: {name}"

    if is_temp_name(name):
        return False, f"Name is reserved for staging files: {name}"

    return True, ""


def is_temp_name(name: str) -> bool:
    """True for names used by in-flight copies and uploads."""
    return name.startswith(TEMP_PREFIX) and name.endswith(TEMP_SUFFIX)


def _fit_name(name: str) -> str:
    while len(name.encode("utf-8")) > MAX_NAME_LENGTH:
        name = name[:-1]
    return name


def deconflict_name(name: str, stamp: int) -> str:
    """Insert ``_{stamp}`` between the base name and the extension.

    The base name (then the extension, if that alone is too long) is
    shortened so the result stays within ``MAX_NAME_LENGTH`` UTF-8 bytes.

    Examples:
        deconflict_name("a.txt", 1700000000000) -> "a_1700000000000.txt"
        deconflict_name("archive.tar.gz", 5) -> "archive.tar_5.gz"
        deconflict_name(".env", 5) -> ".env_5"
    """
    stem, ext = posixpath.splitext(name)
    suffix = f"_{stamp}"
    ext = _fit_name(f"{suffix}{ext}")[len(suffix):]
    budget = MAX_NAME_LENGTH - len(f"{suffix}{ext}".encode("utf-8"))
    while len(stem.encode("utf-8")) > budget:
        stem = stem[:-1]
    return f"{stem}{suffix}{ext}"


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"
