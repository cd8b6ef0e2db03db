"""mirrorfs - Google Drive backed file storage with a local mirror."""

__version__ = '0.1.0'
__license__ = 'MIT'

from .backends import DriveStorage, FileSystem, LocalFileSystem
from .config import StorageConfig
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    LocalIOError,
    NotFoundError,
    StorageError,
    TransientRemoteError,
)
from .factory import create_default, create_file_system, initialize_app_folders

__all__ = [
    'StorageConfig',
    'FileSystem',
    'LocalFileSystem',
    'DriveStorage',
    'create_file_system',
    'create_default',
    'initialize_app_folders',
    'StorageError',
    'ConfigurationError',
    'AuthenticationError',
    'NotFoundError',
    'TransientRemoteError',
    'LocalIOError',
]
