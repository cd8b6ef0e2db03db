"""Plain local-disk file system backend."""

import logging
import os
from concurrent.futures import Future
from pathlib import Path
from typing import List, Optional, Union

from ..exceptions import LocalIOError, NotFoundError
from ..streams import ReadStream
from .base import FileSystem, to_bytes

logger = logging.getLogger(__name__)


class LocalFileSystem(FileSystem):
    """File system rooted at the application directory plus an optional subdirectory.

    Relative logical paths resolve under ``app_root/root_dir``; absolute
    paths are used as they are.
    """

    CHUNK_SIZE = 65536

    def __init__(self, root_dir: str = '', app_root: Optional[Path] = None, **kwargs):
        super().__init__(**kwargs)
        self.root_dir = (root_dir or '').strip('/\\')
        self.app_root = Path(app_root) if app_root else Path.cwd()

    @property
    def base_dir(self) -> Path:
        return self.app_root / self.root_dir if self.root_dir else self.app_root

    def resolve_path(self, path: str) -> Path:
        candidate = Path(path or '')
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    def exists_sync(self, path: str) -> bool:
        try:
            return self.resolve_path(path).exists()
        except (OSError, ValueError) as e:
            logger.warning(f"Could not check {path}: {e}")
            return False

    def mkdir_sync(self, path: str) -> Path:
        local_path = self.resolve_path(path)
        try:
            local_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot create directory {local_path}: {e.strerror}")
        return local_path

    def write_file_sync(self, path: str, data: Union[bytes, str],
                        encoding: str = 'utf-8') -> Path:
        local_path = self.resolve_path(path)
        data = to_bytes(data, encoding)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(data)
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot write {local_path}: {e.strerror}")
        return local_path

    def exists(self, path: str) -> 'Future[bool]':
        return self._submit(self.exists_sync, path)

    def mkdir(self, path: str) -> 'Future[Path]':
        return self._submit(self.mkdir_sync, path)

    def write_file(self, path: str, data: Union[bytes, str], encoding: str = 'utf-8',
                   mime_type: Optional[str] = None) -> 'Future[Path]':
        return self._submit(self.write_file_sync, path, data, encoding)

    def _readdir(self, path: str) -> List[str]:
        local_path = self.resolve_path(path)
        try:
            return sorted(os.listdir(local_path))
        except FileNotFoundError:
            raise NotFoundError(f"Directory not found: {path}")
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot read directory {local_path}: {e.strerror}")

    def readdir(self, path: str) -> 'Future[List[str]]':
        return self._submit(self._readdir, path)

    def _unlink(self, path: str) -> None:
        local_path = self.resolve_path(path)
        try:
            local_path.unlink()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {path}")
        except OSError as e:
            raise LocalIOError(e.errno, f"Cannot delete {local_path}: {e.strerror}")
        logger.info(f"File deleted: {path}")

    def unlink(self, path: str) -> 'Future[None]':
        return self._submit(self._unlink, path)

    def _pump(self, path: str, stream: ReadStream) -> None:
        try:
            with open(self.resolve_path(path), 'rb') as f:
                for chunk in iter(lambda: f.read(self.CHUNK_SIZE), b''):
                    if not stream.feed(chunk):
                        stream.stop()
                        return
        except FileNotFoundError:
            stream.fail(NotFoundError(f"File not found: {path}"))
            return
        except OSError as e:
            stream.fail(LocalIOError(e.errno, f"Cannot read {path}: {e.strerror}"))
            return
        stream.finish()

    def create_read_stream(self, path: str) -> ReadStream:
        return self._start_stream(self._pump, path)
