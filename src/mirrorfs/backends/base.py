"""Abstract base class for file system backends."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from ..streams import ReadStream

logger = logging.getLogger(__name__)


def to_bytes(data: Union[bytes, str], encoding: str = 'utf-8') -> bytes:
    """Payload as bytes, encoding text with the caller's encoding."""
    if isinstance(data, str):
        return data.encode(encoding)
    return bytes(data)


class FileSystem(ABC):
    """Abstract base class for file system backends.

    Callers (upload handling, file routes, app start-up) use this operation
    set and do not care which backend is behind it:

    - synchronous: exists_sync, mkdir_sync, write_file_sync
    - asynchronous, returning ``concurrent.futures.Future``: exists, mkdir,
      write_file, readdir, unlink
    - create_read_stream, which returns a stream immediately and reports
      failures through it
    """

    def __init__(self, max_workers: int = 4, executor: Optional[ThreadPoolExecutor] = None):
        self._executor = executor
        self._max_workers = max_workers
        self._executor_lock = threading.Lock()

    @property
    def executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=type(self).__name__,
                )
            return self._executor

    def _submit(self, func: Callable, *args, **kwargs) -> Future:
        return self.executor.submit(func, *args, **kwargs)

    def _start_stream(self, producer: Callable[[str, ReadStream], None], path: str) -> ReadStream:
        """Return a stream fed by its own daemon thread.

        Producers block while the reader is slow, so they never run on the
        worker pool shared by the other operations.
        """
        stream = ReadStream(path)
        thread = threading.Thread(target=producer, args=(path, stream), daemon=True,
                                  name=f"{type(self).__name__}-stream")
        thread.start()
        return stream

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pool."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @abstractmethod
    def resolve_path(self, path: str) -> Path:
        """Absolute local path backing a logical path."""
        pass

    @abstractmethod
    def exists_sync(self, path: str) -> bool:
        """Check whether a path exists, without network I/O. Never raises."""
        pass

    @abstractmethod
    def mkdir_sync(self, path: str) -> Optional[Path]:
        """Create a directory (recursively).

        Returns:
            Local directory path
        """
        pass

    @abstractmethod
    def write_file_sync(self, path: str, data: Union[bytes, str],
                        encoding: str = 'utf-8') -> Optional[Path]:
        """Write a file.

        Returns:
            Local file path
        """
        pass

    @abstractmethod
    def exists(self, path: str) -> 'Future[bool]':
        pass

    @abstractmethod
    def mkdir(self, path: str) -> 'Future[Any]':
        pass

    @abstractmethod
    def write_file(self, path: str, data: Union[bytes, str], encoding: str = 'utf-8',
                   mime_type: Optional[str] = None) -> 'Future[Any]':
        pass

    @abstractmethod
    def readdir(self, path: str) -> 'Future[List[str]]':
        """List entry names of a directory, sorted by name."""
        pass

    @abstractmethod
    def unlink(self, path: str) -> 'Future[None]':
        """Delete a file; the future fails with NotFoundError if it is absent."""
        pass

    @abstractmethod
    def create_read_stream(self, path: str) -> ReadStream:
        pass

    def create_folders_if_not_exist(self, folder_names: Iterable[str]) -> None:
        """Create required application folders, skipping invalid names.

        Failures for individual folders are logged, not raised.

        Args:
            folder_names: Folder names relative to the storage root

        Raises:
            TypeError: If folder_names is a plain string
        """
        if isinstance(folder_names, (str, bytes)):
            raise TypeError("folder_names must be a list of names")

        for folder_name in folder_names:
            if not isinstance(folder_name, str) or not folder_name.strip():
                logger.warning(f"Skipping invalid folder name: {folder_name!r}")
                continue

            name = folder_name.strip()
            try:
                self.mkdir(name).result()
                logger.info(f"Folder created/verified: {name}")
            except Exception as e:
                logger.error(f"Failed to create folder {name}: {e}")
