"""Media error taxonomy.

Only ValidationError, UploadError and ItemNotFoundError reach item-level callers.
SigningError and DeletionError are raised by adapters and absorbed (logged) by
the signed-URL resolver and the cleanup coordinator.
"""


class MediaError(Exception):
    """Base class for media lifecycle errors."""


class ValidationError(MediaError):
    """Submitted media for a variant is missing or not acceptable. Nothing was uploaded."""

    def __init__(self, message: str, color: str | None = None) -> None:
        self.color = color
        self.message = message
        super().__init__(message)


class UploadError(MediaError):
    """An adapter upload failed (after retries when raised by the ingestion pipeline)."""

    def __init__(self, reason: str, color: str | None = None) -> None:
        self.reason = reason
        self.color = color
        if color:
            super().__init__(f'Upload failed for color "{color}": {reason}')
        else:
            super().__init__(reason)


class SigningError(MediaError):
    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Signing failed for {key}: {reason}")


class DeletionError(MediaError):
    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Deletion failed for {key}: {reason}")


class ItemNotFoundError(MediaError):
    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")
