class BlobKeeperError(Exception):
    """Base error for all user-facing blobkeeper exceptions."""


class ConfigurationError(BlobKeeperError):
    """Raised when configuration is invalid or incomplete."""


class ProjectNotInitializedError(BlobKeeperError):
    """Raised when .blobkeeper metadata is missing."""


class ValidationError(BlobKeeperError):
    """Raised when model invariants or request payloads fail."""


class BlobStorageError(BlobKeeperError):
    """Raised on genuine I/O failures reading, writing or deleting image bytes or records."""


class RecordNotFoundError(BlobKeeperError):
    """Raised when a referencing record (article, rule) does not exist."""


class RootCollectionError(BlobKeeperError):
    """Raised when a referencing-record kind cannot enumerate the image ids it holds."""
