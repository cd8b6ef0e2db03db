#!/usr/bin/env python3
"""Backend selection and application start-up helpers."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .backends.base import FileSystem
from .backends.drive_backend import DriveStorage
from .backends.local_backend import LocalFileSystem
from .config import StorageConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOCAL_TYPES = ('node', 'fs', 'filesystem')
DRIVE_TYPES = ('google', 'googledrive', 'gdrive')

REQUIRED_APP_FOLDERS = ('voice', 'files')
UPLOAD_DIR = 'files'


def get_available_types() -> List[str]:
    return ['node', 'google', 'googledrive', 'gdrive']


def is_supported(fs_type: str) -> bool:
    return (fs_type or '').lower() in LOCAL_TYPES + DRIVE_TYPES


def create_file_system(fs_type: Optional[str] = None,
                       config: Optional[StorageConfig] = None,
                       **kwargs) -> FileSystem:
    """Create a file system backend by type name.

    Args:
        fs_type: Backend type (default: ``config.fs_type``)
        config: Storage configuration (default: read from the environment)
        **kwargs: Passed to the backend constructor

    Returns:
        LocalFileSystem or DriveStorage

    Raises:
        ConfigurationError: If the type is not supported
    """
    config = config or StorageConfig.from_env()
    fs_type = (fs_type or config.fs_type).lower()
    kwargs.setdefault('max_workers', config.max_workers)

    if fs_type in LOCAL_TYPES:
        logger.debug(f"Creating local file system (root dir: {config.fs_root_dir or '.'})")
        return LocalFileSystem(root_dir=config.fs_root_dir, **kwargs)

    if fs_type in DRIVE_TYPES:
        logger.debug(f"Creating Google Drive storage (base path: {config.base_path})")
        return DriveStorage(config, **kwargs)

    raise ConfigurationError(f"Unsupported file system type: {fs_type}")


def create_default(config: Optional[StorageConfig] = None) -> FileSystem:
    """Create the backend named by ``FS_TYPE``."""
    return create_file_system(config=config)


def initialize_app_folders(fs: Optional[FileSystem] = None,
                           folders: Iterable[str] = REQUIRED_APP_FOLDERS) -> bool:
    """Create the folders the application needs at start-up.

    Never raises; the application keeps running if this fails.

    Returns:
        True if initialization completed
    """
    logger.info("Initializing application folders...")
    try:
        fs = fs or create_default()
        fs.create_folders_if_not_exist(list(folders))
    except Exception as e:
        logger.error(f"Failed to initialize application folders: {e}")
        return False

    logger.info("Application folders initialized successfully")
    return True


def resolve_upload_directory(fs: FileSystem, logical_dir: str = UPLOAD_DIR,
                             default: Optional[Union[str, Path]] = None) -> Path:
    """Local directory where uploaded files are stored before processing.

    Uses the backend's ``resolve_path`` (the local mirror for Drive) and
    falls back to ``default`` (or ``./<logical_dir>``) if it is unavailable.
    The directory is created if missing.

    Args:
        fs: File system backend
        logical_dir: Logical upload folder
        default: Directory to use when the backend cannot resolve the path

    Returns:
        Local directory path
    """
    try:
        directory = fs.resolve_path(logical_dir)
    except Exception as e:
        logger.warning(f"Could not resolve {logical_dir} through the file system: {e}")
        directory = Path(default) if default else Path.cwd() / logical_dir

    logger.debug(f"Resolved upload directory: {directory}")
    if not directory.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created local directory: {directory}")
        except OSError as e:
            logger.error(f"Failed to create upload directory {directory}: {e}")

    return directory
