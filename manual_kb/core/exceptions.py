"""Custom exception hierarchy."""

from typing import Optional

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ExtractionError(AppError):
    """Raised when text or an image cannot be read from a source document."""
    pass


class CapabilityError(AppError):
    """Raised when a completion or embedding call fails or returns unusable content."""
    pass


class CapabilityTimeoutError(CapabilityError):
    """Raised when a completion or embedding call times out."""
    pass


class EmbeddingError(CapabilityError):
    """Raised when a vector embedding cannot be produced."""
    pass


class ParseError(AppError):
    """Raised when a structured response does not match the expected shape."""
    pass


class StoreError(AppError):
    """Raised when persisting a single record fails."""
    pass


class StoreUnavailableError(StoreError):
    """Raised on connectivity-class store failures; fatal to the document."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class DocumentNotFoundError(AppError):
    """Raised when a document is not found."""
    pass


def classify_store_error(error: Exception) -> StoreError:
    """Wrap a SQLAlchemy error into the matching StoreError kind.

    Connection loss, refused connections and invalidated connections are
    connectivity-class and come back as StoreUnavailableError.
    """
    if isinstance(error, StoreError):
        return error
    if isinstance(error, (OperationalError, InterfaceError)):
        return StoreUnavailableError(f"Store unavailable: {error}", original_error=error)
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return StoreUnavailableError(f"Store connection invalidated: {error}", original_error=error)
    if isinstance(error, (ConnectionError, OSError)):
        return StoreUnavailableError(f"Store unreachable: {error}", original_error=error)
    return StoreError(f"Store operation failed: {error}", original_error=error)
