from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from ..config import settings
from ..errors import InvalidPath, IOFailure, NotFound
from ..schemas import FileSystemEntry, QueryOptions
from . import archive
from .paths import PathResolver, canonicalize, is_within
from .storage import format_timestamp, readable_size, storage_size
from .tree import render_tree
from .walker import Visitor, WalkOrder, walk

logger = logging.getLogger(__name__)

Sources = Union[str, Iterable[str]]


def _copy_file(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with source.open('rb') as src, target.open('wb') as dst:
        archive.copy_stream(src, dst)


class _CopyVisitor(Visitor):
    def _target(self, path: Path, context: dict) -> Path:
        return context['target'] / path.relative_to(context['source'])

    def on_dir(self, path: Path, context: dict) -> None:
        self._target(path, context).mkdir(parents=True, exist_ok=True)

    def on_file(self, path: Path, context: dict) -> None:
        _copy_file(path, self._target(path, context))


class _DeleteVisitor(Visitor):
    def on_file(self, path: Path, context: dict) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning('Could not delete file %s: %s', path, exc)
            context['success'] = False

    def on_dir(self, path: Path, context: dict) -> None:
        try:
            path.rmdir()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning('Could not delete directory %s: %s', path, exc)
            context['success'] = False


class FileOps:
    def __init__(self, root: Optional[str] = None, trusted_roots: Optional[Iterable[str]] = None):
        roots = settings.trusted_roots if trusted_roots is None else trusted_roots
        self.resolver = PathResolver(root, roots)

    @property
    def root(self) -> Optional[Path]:
        return self.resolver.base_path

    def safe_path(self, rel: str) -> Path:
        return self.resolver.resolve(rel)

    def create_directory(self, rel: str) -> Path:
        target = self.safe_path(rel)
        if not target.exists():
            target.mkdir(parents=True, exist_ok=True)
        return target

    def delete_directory(self, rel: str) -> bool:
        target = self.safe_path(rel)
        if not target.exists():
            return True
        return self._delete_tree(target)

    def remove(self, rel: str) -> bool:
        target = self.safe_path(rel)
        if not target.exists():
            return True
        return self._delete_tree(target)

    def delete(self, rel: str) -> None:
        target = self.safe_path(rel)
        if not target.exists():
            raise NotFound(f'File not found: {rel}')
        if target.is_dir():
            raise IOFailure(f'Not a file: {rel}')
        target.unlink()

    def read(self, rel: str) -> str:
        target = self.safe_path(rel)
        if not target.is_file():
            raise NotFound(f'File not found: {rel}')
        return target.read_text(encoding='utf-8')

    def write(self, rel: str, data: str = '') -> str:
        target = self.safe_path(rel)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(data, encoding='utf-8')
        return data

    def append(self, rel: str, data: str = '') -> str:
        target = self.safe_path(rel)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open('a', encoding='utf-8') as f:
            f.write(data)
        return target.read_text(encoding='utf-8')

    def get_metadata(self, rel: str) -> FileSystemEntry:
        target = self.safe_path(rel)
        if not target.exists():
            raise NotFound(f'Path not found: {rel}')
        stat = target.stat()
        mtime_ms = stat.st_mtime_ns // 1_000_000
        return FileSystemEntry(
            name=target.name,
            path=str(target),
            size=stat.st_size,
            last_modified=mtime_ms,
            is_directory=target.is_dir(),
            readable_size=readable_size(stat.st_size),
            readable_last_modified=format_timestamp(mtime_ms),
        )

    def tree(self, rel: str, options: Optional[QueryOptions] = None) -> Optional[str]:
        target = self.safe_path(rel)
        return render_tree(target, options, boundary=self.resolver.boundary_for(target))

    def storage_size(self, rel: str, unit: Optional[str] = None) -> Optional[float]:
        target = self.safe_path(rel)
        return storage_size(target, unit, self.resolver.boundary_for(target))

    def zip(self, source: str, archive_path: Optional[str] = None, include_root: bool = False) -> Path:
        src = self.safe_path(source)
        target = self.safe_path(archive_path or str(archive.default_archive_path(src)))
        return archive.pack(src, target, include_root=include_root, boundary=self.resolver.boundary_for(src))

    def unzip(self, archive_path: str, destination: Optional[str] = None) -> Path:
        src = self.safe_path(archive_path)
        target = self.safe_path(destination or str(archive.default_destination(src)))
        return archive.unpack(src, target)

    def copy(self, sources: Sources, destination: str) -> list[Path]:
        targets, dest_root = self._prepare_transfer(sources, destination)
        return [self._copy_one(src, dest_root / src.name) for src in targets]

    def move(self, sources: Sources, destination: str) -> list[Path]:
        targets, dest_root = self._prepare_transfer(sources, destination)
        moved: list[Path] = []
        for src in targets:
            dst = dest_root / src.name
            if dst != src:
                try:
                    os.rename(src, dst)
                except OSError as exc:
                    logger.info('Rename %s -> %s failed (%s), copying instead', src, dst, exc)
                    self._copy_one(src, dst)
                    if not self._delete_tree(src):
                        raise IOFailure(f'Copied {src} but could not remove the original')
            moved.append(dst)
        return moved

    def _prepare_transfer(self, sources: Sources, destination: str) -> tuple[list[Path], Path]:
        if not destination:
            raise InvalidPath('Destination is required')
        targets = self.resolver.resolve_many(sources)
        if not targets:
            raise InvalidPath('No source paths given')
        dest_root = self.safe_path(destination)

        for src in targets:
            if not src.exists():
                raise NotFound(f'Source not found: {src}')
        if dest_root.exists() and not dest_root.is_dir():
            raise IOFailure(f'Destination is not a directory: {dest_root}')
        try:
            dest_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailure(f'Cannot create destination {dest_root}: {exc}') from exc
        return targets, dest_root

    def _copy_one(self, source: Path, target: Path) -> Path:
        if target == source:
            raise IOFailure(f'Source and destination are the same: {source}')
        try:
            if source.is_dir():
                if is_within(canonicalize(target), source):
                    raise IOFailure(f'Cannot copy {source} into itself')
                context = {'source': source, 'target': target}
                walk(source, _CopyVisitor(), context, WalkOrder.PRE, boundary=self.resolver.boundary_for(source))
            else:
                _copy_file(source, target)
        except IOFailure:
            raise
        except OSError as exc:
            raise IOFailure(f'Copy of {source} failed: {exc}') from exc
        return target

    def _delete_tree(self, target: Path) -> bool:
        if not target.is_dir():
            target.unlink(missing_ok=True)
            return True
        return walk(target, _DeleteVisitor(), {'success': True}, WalkOrder.POST, resolve_links=False)['success']
