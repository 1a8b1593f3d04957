from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional, TypeVar

from ..errors import InvalidPath
from .paths import canonicalize, is_within

logger = logging.getLogger(__name__)

C = TypeVar('C')


class WalkOrder(str, Enum):
    PRE = 'pre'
    POST = 'post'


class Visitor:
    """Callbacks invoked by :func:`walk`.

    Subclasses override what they need; the defaults do nothing. The
    accumulator is always passed explicitly so visitors stay stateless.
    """

    def on_file(self, path: Path, context: Any) -> None:
        pass

    def on_dir(self, path: Path, context: Any) -> None:
        pass


@dataclass(frozen=True)
class FunctionVisitor(Visitor):
    file_fn: Optional[Callable[[Path, Any], None]] = None
    dir_fn: Optional[Callable[[Path, Any], None]] = None

    def on_file(self, path: Path, context: Any) -> None:
        if self.file_fn is not None:
            self.file_fn(path, context)

    def on_dir(self, path: Path, context: Any) -> None:
        if self.dir_fn is not None:
            self.dir_fn(path, context)


class Entry(NamedTuple):
    path: Path
    is_dir: bool
    is_link: bool = False


def list_children(directory: Path) -> list[Entry]:
    """Return the entries of ``directory`` in listing order, or nothing when unreadable.

    Symlinks are reported as links and never as directories.
    """
    try:
        with os.scandir(directory) as entries:
            return [_classify(entry) for entry in entries]
    except OSError as exc:
        logger.debug('Cannot list %s: %s', directory, exc)
        return []


def _classify(entry: os.DirEntry) -> Entry:
    try:
        if entry.is_symlink():
            return Entry(Path(entry.path), False, True)
        return Entry(Path(entry.path), entry.is_dir(follow_symlinks=False))
    except OSError:
        return Entry(Path(entry.path), False)


def link_target(path: Path, boundary: Optional[Path] = None) -> Optional[Path]:
    """Canonical target of a symlinked file, or ``None`` when the link must be skipped.

    Links to directories, dangling links and links leaving ``boundary`` are skipped.
    """
    try:
        target = canonicalize(path)
    except InvalidPath:
        return None
    if boundary is not None and not is_within(target, boundary):
        logger.warning('Skipping symlink %s: target %s is outside %s', path, target, boundary)
        return None
    if not target.is_file():
        logger.debug('Skipping symlink %s -> %s', path, target)
        return None
    return target


def visible_children(directory: Path, boundary: Optional[Path] = None, resolve_links: bool = True) -> list[Entry]:
    entries = list_children(directory)
    if not resolve_links:
        return entries
    return [e for e in entries if not e.is_link or link_target(e.path, boundary) is not None]


def walk(
    root: Path,
    visitor: Visitor,
    context: C,
    order: WalkOrder | str = WalkOrder.PRE,
    boundary: Optional[Path] = None,
    resolve_links: bool = True,
) -> C:
    """Visit ``root`` and everything below it without recursion.

    With ``resolve_links`` a symlink is visited as a file only when it points
    to a regular file inside ``boundary`` (anywhere when ``boundary`` is
    ``None``); other links are skipped. Without it, links are handed to
    ``on_file`` as-is so callers can remove them.
    """
    order = WalkOrder(order)
    root = Path(root)
    if not root.exists():
        return context
    if not root.is_dir():
        visitor.on_file(root, context)
        return context

    if order is WalkOrder.PRE:
        visitor.on_dir(root, context)
    stack = [(root, iter(visible_children(root, boundary, resolve_links)))]

    while stack:
        directory, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            if order is WalkOrder.POST:
                visitor.on_dir(directory, context)
            continue

        if child.is_dir:
            if order is WalkOrder.PRE:
                visitor.on_dir(child.path, context)
            stack.append((child.path, iter(visible_children(child.path, boundary, resolve_links))))
        else:
            visitor.on_file(child.path, context)

    return context
