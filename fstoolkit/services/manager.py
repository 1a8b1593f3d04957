from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from ..errors import PatternError, ToolkitError
from ..schemas import FileSystemEntry, QueryOptions
from .file_ops import FileOps, Sources
from .tree import INVALID_PATTERN

logger = logging.getLogger(__name__)


def _sentinel(fallback: Any):
    """Turn any failure inside the wrapped operation into ``fallback``."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except (ToolkitError, ValidationError) as exc:
                logger.warning('%s%r failed: %s', func.__name__, args, exc)
            except Exception:
                logger.exception('%s%r failed unexpectedly', func.__name__, args)
            return fallback

        return wrapper

    return decorator


class FileManager:
    """Sandboxed file toolkit whose operations never raise.

    Every method resolves its path arguments against the sandbox root (when
    one is configured) and reports failure through ``False`` / ``None``
    after logging the cause.
    """

    def __init__(self, sandbox_root: Optional[str] = None, trusted_roots: Optional[Iterable[str]] = None):
        if sandbox_root:
            Path(sandbox_root).mkdir(parents=True, exist_ok=True)
        self.ops = FileOps(sandbox_root, trusted_roots)

    @property
    def is_sandboxed(self) -> bool:
        return self.ops.resolver.config.is_sandboxed

    @_sentinel(False)
    def create_directory(self, path: str) -> bool:
        self.ops.create_directory(path)
        return True

    @_sentinel(False)
    def delete_directory(self, path: str) -> bool:
        return self.ops.delete_directory(path)

    @_sentinel(None)
    def get_directory_tree(
        self,
        path: str,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
    ) -> Optional[str]:
        if options is not None and not isinstance(options, QueryOptions):
            options = QueryOptions.model_validate(options)
        try:
            return self.ops.tree(path, options)
        except PatternError as exc:
            logger.warning('get_directory_tree(%r): %s', path, exc)
            return INVALID_PATTERN

    @_sentinel(None)
    def get_metadata(self, path: str) -> Optional[FileSystemEntry]:
        return self.ops.get_metadata(path)

    @_sentinel(None)
    def read(self, path: str) -> Optional[str]:
        return self.ops.read(path)

    @_sentinel(None)
    def write(self, path: str, data: str = '') -> Optional[str]:
        return self.ops.write(path, data)

    @_sentinel(None)
    def append(self, path: str, data: str = '') -> Optional[str]:
        return self.ops.append(path, data)

    @_sentinel(False)
    def delete(self, path: str) -> bool:
        self.ops.delete(path)
        return True

    @_sentinel(False)
    def move(self, source: Sources, destination: str) -> bool:
        self.ops.move(source, destination)
        return True

    @_sentinel(False)
    def copy(self, source: Sources, destination: str) -> bool:
        self.ops.copy(source, destination)
        return True

    @_sentinel(None)
    def zip(self, source: str, archive_path: Optional[str] = None, include_root: bool = False) -> Optional[str]:
        return str(self.ops.zip(source, archive_path, include_root=include_root))

    @_sentinel(None)
    def unzip(self, archive_path: str, destination: Optional[str] = None) -> Optional[str]:
        return str(self.ops.unzip(archive_path, destination))

    @_sentinel(None)
    def get_storage_size(self, path: str, unit: Optional[str] = None) -> Optional[float]:
        return self.ops.storage_size(path, unit)

    @_sentinel(False)
    def remove(self, path: str) -> bool:
        return self.ops.remove(path)
