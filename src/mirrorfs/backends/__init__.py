"""File system backends for mirrorfs."""

from .base import FileSystem
from .drive_backend import DriveStorage
from .local_backend import LocalFileSystem

__all__ = ['FileSystem', 'LocalFileSystem', 'DriveStorage']
