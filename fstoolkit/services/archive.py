from __future__ import annotations

import logging
import os
import re
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from ..config import settings
from ..errors import IOFailure, NotFound, SecurityViolation
from ..schemas import ArchiveEntry
from .paths import canonicalize, is_within
from .walker import Visitor, WalkOrder, visible_children, walk

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = '.zip'
_DRIVE_MARKER = re.compile(r'^[A-Za-z]:')


def base_name(path: Path) -> str:
    name = path.name
    dot = name.rfind('.')
    return name[:dot] if dot > 0 else name


def default_archive_path(source: Path) -> Path:
    return source.parent / f'{base_name(source)}{ARCHIVE_SUFFIX}'


def default_destination(archive_path: Path) -> Path:
    return archive_path.parent / base_name(archive_path)


def copy_stream(source, target, buffer_size: Optional[int] = None) -> int:
    size = buffer_size or settings.copy_buffer_size
    written = 0
    while True:
        chunk = source.read(size)
        if not chunk:
            return written
        target.write(chunk)
        written += len(chunk)


def _write_file(zf: zipfile.ZipFile, path: Path, arcname: str) -> None:
    info = zipfile.ZipInfo.from_file(path, arcname=arcname)
    info.compress_type = zipfile.ZIP_DEFLATED
    with path.open('rb') as src, zf.open(info, 'w') as dst:
        copy_stream(src, dst)


class _PackVisitor(Visitor):
    def __init__(self, zf: zipfile.ZipFile, anchor: Path, skip: set[Path], boundary: Optional[Path] = None):
        self.zf = zf
        self.anchor = anchor
        self.skip = skip
        self.boundary = boundary

    def _entry_name(self, path: Path) -> str:
        return path.relative_to(self.anchor).as_posix()

    def on_dir(self, path: Path, context: dict) -> None:
        if path == self.anchor or visible_children(path, self.boundary):
            return
        self.zf.writestr(zipfile.ZipInfo(self._entry_name(path) + '/'), b'')
        context['entries'] += 1

    def on_file(self, path: Path, context: dict) -> None:
        if path in self.skip:
            return
        _write_file(self.zf, path, self._entry_name(path))
        context['entries'] += 1


def pack(
    source: Path,
    archive_path: Optional[Path] = None,
    include_root: bool = False,
    boundary: Optional[Path] = None,
) -> Path:
    """Write ``source`` into a ZIP archive and return the archive path.

    Directory entries are relative to the source folder (prefixed with its
    name when ``include_root`` is set). Empty directories get explicit
    ``name/`` marker entries so they survive a round trip. Symlinks are
    packed only when they point to a file inside ``boundary``.
    """
    if not source.exists():
        raise NotFound(f'Source does not exist: {source}')

    target = archive_path or default_archive_path(source)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f'.{target.name}.', suffix='.tmp', dir=str(target.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, 'wb') as raw, zipfile.ZipFile(raw, mode='w', compression=zipfile.ZIP_DEFLATED) as zf:
            entries = 1
            if source.is_dir():
                anchor = source.parent if include_root else source
                visitor = _PackVisitor(zf, anchor, {tmp_path, target}, boundary)
                entries = walk(source, visitor, {'entries': 0}, WalkOrder.PRE, boundary=boundary)['entries']
            else:
                _write_file(zf, source, source.name)
        os.replace(tmp_path, target)
    except OSError as exc:
        raise IOFailure(f'Failed to pack {source}: {exc}') from exc
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.info('Packed %s into %s (%d entries)', source, target, entries)
    return target


def validate_entry_name(name: str, destination: Path) -> Path:
    """Return the canonical output path for an archive entry.

    Raises :class:`SecurityViolation` for absolute names, drive markers and
    anything that resolves outside ``destination``.
    """
    if not name or name.startswith(('/', '\\')) or _DRIVE_MARKER.match(name):
        raise SecurityViolation(f'Illegal archive entry: {name!r}')
    candidate = canonicalize(destination / name)
    if not is_within(candidate, destination, allow_equal=False):
        raise SecurityViolation(f'Archive entry escapes destination: {name!r}')
    return candidate


def list_entries(archive_path: Path) -> list[ArchiveEntry]:
    try:
        with zipfile.ZipFile(archive_path) as zf:
            return [ArchiveEntry(relative_name=info.filename, is_directory=info.is_dir()) for info in zf.infolist()]
    except zipfile.BadZipFile as exc:
        raise IOFailure(f'Not a valid archive: {archive_path}') from exc


def unpack(archive_path: Path, destination: Optional[Path] = None) -> Path:
    """Extract ``archive_path`` into ``destination`` and return it.

    Every entry name is checked before the first byte is written, so a
    hostile archive leaves the filesystem untouched.
    """
    if not archive_path.is_file():
        raise NotFound(f'Archive does not exist: {archive_path}')

    root = canonicalize(destination or default_destination(archive_path))
    try:
        with zipfile.ZipFile(archive_path) as zf:
            plan = [(info, validate_entry_name(info.filename, root)) for info in zf.infolist()]
            root.mkdir(parents=True, exist_ok=True)
            for info, target in plan:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, target.open('wb') as dst:
                    copy_stream(src, dst)
    except SecurityViolation:
        logger.warning('Rejected archive %s: entry escapes %s', archive_path, root)
        raise
    except zipfile.BadZipFile as exc:
        raise IOFailure(f'Not a valid archive: {archive_path}') from exc
    except OSError as exc:
        raise IOFailure(f'Failed to unpack {archive_path}: {exc}') from exc

    logger.info('Unpacked %s into %s', archive_path, root)
    return root
