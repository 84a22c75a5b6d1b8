"""Exceptions for files app."""


class FileHubError(Exception):
    """Base class for errors raised by the file services."""


class ValidationFailure(FileHubError):
    """Bad input shape; surfaced as a client error."""


class UploadRejected(ValidationFailure):
    """Raised when an upload is missing required fields."""


class FileTooLargeError(UploadRejected):
    """Raised when an upload exceeds the configured maximum size."""

    def __init__(self, file_size: int, max_size: int) -> None:
        """Initialize FileTooLargeError.

        Args:
            file_size: Size of the rejected payload in bytes.
            max_size: Configured upload limit in bytes.
        """
        self.file_size = file_size
        self.max_size = max_size
        super().__init__(
            f'File size {file_size} bytes exceeds maximum of {max_size} bytes',
        )


class InvalidFilterError(ValidationFailure):
    """Raised when listing filters cannot be parsed."""

    def __init__(self, errors) -> None:
        self.errors = errors
        super().__init__(f'Invalid filter parameters: {dict(errors)}')


class AuthenticationRequired(FileHubError):
    """Raised when a file operation is attempted without an identity."""


class FileRecordNotFound(FileHubError):
    """Raised when a file record does not exist."""

    def __init__(self, record_id) -> None:
        self.record_id = record_id
        super().__init__(f'File record not found: {record_id}')


class StorageIOError(FileHubError):
    """Storage or database unavailable; surfaced as a generic server error."""


class MetadataStoreError(StorageIOError):
    """Raised when a metadata query or write fails."""


class LockTimeoutError(StorageIOError):
    """Raised when a digest lock cannot be acquired in time."""

    def __init__(self, digest: str, timeout: float) -> None:
        self.digest = digest
        self.timeout = timeout
        super().__init__(
            f'Timed out after {timeout}s waiting for lock on {digest[:12]}',
        )
