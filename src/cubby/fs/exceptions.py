"""Custom exception hierarchy for the Cubby storage layer."""


class CubbyError(Exception):
    """Base exception for all Cubby storage errors."""


class PathEscapeError(CubbyError):
    """Raised when a path would resolve outside the owner's storage root."""


class InvalidPathError(CubbyError):
    """Raised when a logical path is malformed or targets a protected location."""


class InvalidNameError(CubbyError):
    """Raised when an item name is empty or not a single path segment."""


class InvalidOwnerError(CubbyError):
    """Raised when an owner id cannot safely name a storage root."""


class NotFoundError(CubbyError):
    """Raised when a file or folder path does not exist."""


class NotAFileError(CubbyError):
    """Raised when an operation requires a file but found a folder."""


class NotAFolderError(CubbyError):
    """Raised when an operation requires a folder but found a file."""


class NameConflictError(CubbyError):
    """Raised when the destination name is already occupied."""


class UploadTooLargeError(CubbyError):
    """Raised when an upload exceeds the configured size limit."""


class StorageIOError(CubbyError):
    """Raised on underlying filesystem failures (permissions, disk full, etc.)."""
