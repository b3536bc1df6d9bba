"""Error taxonomy for photo storage operations."""


class PhotoStoreError(Exception):
    """Base class for failures scoped to a single store operation."""


class InvalidInput(PhotoStoreError):
    """Raised for empty or malformed payloads and identifiers."""


class PermissionDenied(PhotoStoreError):
    """Raised when the caller may not access the requested partition."""


class NotFound(PhotoStoreError):
    """Raised when the target record does not exist."""


class StorageUnavailable(PhotoStoreError):
    """Raised when the backend is unreachable or misconfigured."""


class DecodeError(PhotoStoreError):
    """Raised when a stored payload cannot be decoded as an image."""


class SubscriptionUnsupported(PhotoStoreError):
    """Raised by backends that cannot push live updates."""


class OperationInProgress(PhotoStoreError):
    """Raised when a session already has a mutating operation outstanding."""
