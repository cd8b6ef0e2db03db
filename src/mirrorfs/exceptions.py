"""Exception hierarchy for mirrorfs."""

from typing import Optional


class StorageError(Exception):
    """Base class for all storage errors."""
    pass


class ConfigurationError(StorageError):
    """Raised when required configuration (e.g. OAuth credentials) is missing."""
    pass


class AuthenticationError(StorageError):
    """Raised when Google Drive rejects our credentials and refresh did not help.
    
    Carries an authorization URL the user can visit to re-authenticate.
    """
    
    def __init__(self, message: str, auth_url: Optional[str] = None):
        if auth_url:
            message = f"{message}. Re-authorize at: {auth_url}"
        super().__init__(message)
        self.auth_url = auth_url


class NotFoundError(StorageError, FileNotFoundError):
    """Raised when an operation requires a path that has no backing file."""
    pass


class TransientRemoteError(StorageError):
    """Raised for any non-authentication Google Drive failure."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LocalIOError(StorageError, OSError):
    """Raised when the local mirror cannot be read or written."""
    pass
