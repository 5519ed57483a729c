"""Exceptions raised by the services and rendered as JSON by the web layer."""


class RecipeApiError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RecipeApiError):
    status_code = 400


class ConflictError(RecipeApiError):
    status_code = 400


class UnauthorizedError(RecipeApiError):
    status_code = 401


class NotFoundError(RecipeApiError):
    status_code = 404


class InternalError(RecipeApiError):
    status_code = 500


class StorageError(InternalError):
    """The document store rejected or failed a request."""


class CacheError(InternalError):
    """The key-value store rejected or failed a request."""


class InvalidIdentifierError(InternalError):
    """A path identifier cannot be turned into a document id."""


class RefreshTooEarlyError(InternalError):
    """A token refresh was attempted before the refresh window opened."""


__all__ = [
    "CacheError",
    "ConflictError",
    "InternalError",
    "InvalidIdentifierError",
    "NotFoundError",
    "RecipeApiError",
    "RefreshTooEarlyError",
    "StorageError",
    "UnauthorizedError",
    "ValidationError",
]
