"""Durable on-disk mirror backing the synchronous storage operations."""

import logging
from pathlib import Path
from typing import Union

from ..exceptions import LocalIOError
from ..path_utils import validate_local_path

logger = logging.getLogger(__name__)


class LocalMirror:
    """Real directory tree rooted at the configured fallback directory.

    Logical paths are joined onto the root as given (they are not
    normalized for Drive), so the local layout matches what callers wrote.
    No network I/O happens here.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def resolve(self, logical_path: str) -> Path:
        """Absolute local path for a logical path.

        Raises:
            SecurityError: If the path escapes the mirror root
        """
        return validate_local_path(logical_path, self.root)

    def exists(self, logical_path: str) -> bool:
        return self.resolve(logical_path).exists()

    def is_file(self, logical_path: str) -> bool:
        return self.resolve(logical_path).is_file()

    def mkdir(self, logical_path: str) -> Path:
        """Create a directory and all missing parents.

        Returns:
            Absolute path of the directory

        Raises:
            LocalIOError: If the directory cannot be created
        """
        local_path = self.resolve(logical_path)
        try:
            local_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot create directory {local_path}: {e.strerror}")
        logger.debug(f"Created local directory: {local_path}")
        return local_path

    def write_file(self, logical_path: str, data: Union[bytes, str],
                   encoding: str = 'utf-8') -> Path:
        """Write a file, creating its parent directories first.

        Args:
            logical_path: File path
            data: Bytes, or text encoded with ``encoding``
            encoding: Text encoding

        Returns:
            Absolute path of the file

        Raises:
            LocalIOError: If the file cannot be written
        """
        local_path = self.resolve(logical_path)
        if isinstance(data, str):
            data = data.encode(encoding)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(data)
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot write {local_path}: {e.strerror}")
        logger.debug(f"Wrote {len(data)} bytes to local mirror: {local_path}")
        return local_path

    def read_bytes(self, logical_path: str) -> bytes:
        local_path = self.resolve(logical_path)
        try:
            return local_path.read_bytes()
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot read {local_path}: {e.strerror}")

    def remove(self, logical_path: str) -> bool:
        """Remove a mirrored file if present.

        Returns:
            True if a file was removed
        """
        local_path = self.resolve(logical_path)
        if not local_path.is_file():
            return False
        try:
            local_path.unlink()
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot remove {local_path}: {e.strerror}")
        logger.debug(f"Removed local mirror copy: {local_path}")
        return True
