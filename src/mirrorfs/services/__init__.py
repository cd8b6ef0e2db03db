"""Building blocks of the Drive-backed storage facade."""

from .folder_resolver import FolderResolver
from .local_mirror import LocalMirror
from .reconciler import Reconciler

__all__ = ['FolderResolver', 'LocalMirror', 'Reconciler']
