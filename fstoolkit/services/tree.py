from __future__ import annotations

import locale
import logging
import re
from dataclasses import dataclass, field
from functools import cmp_to_key
from pathlib import Path
from typing import Iterable, Optional

from ..config import settings
from ..errors import PatternError
from ..schemas import QueryOptions, SearchOptions, SortOptions
from .storage import format_timestamp, readable_size
from .walker import Visitor, WalkOrder, walk

logger = logging.getLogger(__name__)

INVALID_PATTERN = 'Invalid or unsupported regular expression pattern'

_BRANCH = '├ '
_LAST = '└ '
_PIPE = '│  '
_GAP = '   '


def extension_of(name: str) -> str:
    return name.rsplit('.', 1)[1].lower() if '.' in name else ''


def _compile(pattern: Optional[str]) -> Optional[re.Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternError(f'{INVALID_PATTERN}: {pattern!r} ({exc})') from exc


class FileFilter:
    def __init__(self, search: SearchOptions, binary_extensions: Optional[Iterable[str]] = None):
        self.search = search
        self.name_regex = _compile(search.regex)
        self.content_regex = _compile(search.content_regex)
        exts = settings.binary_extensions if binary_extensions is None else binary_extensions
        self.binary_extensions = frozenset(e.lower() for e in exts)

    def matches(self, path: Path) -> bool:
        name = path.name
        ext = extension_of(name)
        search = self.search

        if search.extension and ext not in search.extension:
            return False
        if search.name and search.name.lower() not in name.lower():
            return False
        if self.name_regex is not None and not self.name_regex.search(name):
            return False
        if not search.has_content_filter:
            return True
        if ext in self.binary_extensions:
            return False
        return self._content_matches(path)

    def _content_matches(self, path: Path) -> bool:
        try:
            content = path.read_bytes().decode('utf-8', errors='replace')
        except OSError as exc:
            logger.debug('Skipping unreadable file %s: %s', path, exc)
            return False
        if self.content_regex is not None:
            return self.content_regex.search(content) is not None
        return self.search.content in content


@dataclass
class _Node:
    path: Path
    is_dir: bool
    size: int = 0
    mtime_ms: int = 0
    children: list[_Node] = field(default_factory=list)
    has_files: bool = False


def _make_node(path: Path, is_dir: bool) -> Optional[_Node]:
    try:
        stat = path.stat()
    except OSError:
        return None
    return _Node(path=path, is_dir=is_dir, size=stat.st_size, mtime_ms=stat.st_mtime_ns // 1_000_000)


class _CollectVisitor(Visitor):
    def __init__(self, file_filter: FileFilter):
        self.file_filter = file_filter

    def on_dir(self, path: Path, context: dict) -> None:
        node = _make_node(path, True)
        parent = context.get(path.parent)
        if node is None:
            return
        context[path] = node
        if parent is not None and path != parent.path:
            parent.children.append(node)

    def on_file(self, path: Path, context: dict) -> None:
        parent = context.get(path.parent)
        if parent is None or not self.file_filter.matches(path):
            return
        node = _make_node(path, False)
        if node is not None:
            parent.children.append(node)


def _compare_names(a: str, b: str) -> int:
    folded = locale.strcoll(a.casefold(), b.casefold())
    return folded if folded else locale.strcoll(a, b)


def _comparator(sort: SortOptions):
    sign = -1 if sort.order == 'desc' else 1

    def compare(a: _Node, b: _Node) -> int:
        if a.is_dir != b.is_dir:
            return -1 if a.is_dir else 1
        if sort.by == 'date':
            result = (a.mtime_ms > b.mtime_ms) - (a.mtime_ms < b.mtime_ms)
        elif sort.by == 'size':
            result = 0 if a.is_dir else (a.size > b.size) - (a.size < b.size)
        else:
            result = _compare_names(a.path.name, b.path.name)
        return sign * result

    return cmp_to_key(compare)


def _mark_files(root: _Node) -> None:
    stack: list[tuple[_Node, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in node.children if child.is_dir)
            continue
        node.has_files = any(not c.is_dir or c.has_files for c in node.children)


def _render_lines(root: _Node, options: QueryOptions) -> list[str]:
    key = _comparator(options.sort)
    lines = [f'{root.path.name}/']
    stack: list[tuple[_Node, str, bool]] = []

    def push_children(node: _Node, indent: str) -> None:
        visible = [c for c in node.children if not c.is_dir or c.has_files or options.show_empty_folders]
        visible.sort(key=key)
        for index in range(len(visible) - 1, -1, -1):
            stack.append((visible[index], indent, index == len(visible) - 1))

    push_children(root, '')
    while stack:
        node, indent, last = stack.pop()
        prefix = indent + (_LAST if last else _BRANCH)
        if node.is_dir:
            lines.append(f'{prefix}{node.path.name}/')
            push_children(node, indent + (_GAP if last else _PIPE))
            continue
        line = prefix + node.path.name
        if options.detail:
            line += f' ({readable_size(node.size)} / {format_timestamp(node.mtime_ms)})'
        lines.append(line)
    return lines


def render_tree(
    root: Path,
    options: Optional[QueryOptions] = None,
    binary_extensions: Optional[Iterable[str]] = None,
    boundary: Optional[Path] = None,
) -> Optional[str]:
    """Render ``root`` as an indented tree.

    Directories come before files at every level. Files must satisfy every
    configured search filter; directories with no matching files below them
    are dropped unless ``show_empty_folders`` is set. Symlinks count only
    when they point to a file inside ``boundary``. Raises
    :class:`PatternError` for malformed regular expressions.
    """
    options = options or QueryOptions()
    file_filter = FileFilter(options.search, binary_extensions)

    root = Path(root)
    if not root.is_dir():
        return None

    nodes = walk(root, _CollectVisitor(file_filter), {}, WalkOrder.PRE, boundary=boundary)
    top = nodes.get(root)
    if top is None:
        return None
    _mark_files(top)
    return '\n'.join(_render_lines(top, options))
