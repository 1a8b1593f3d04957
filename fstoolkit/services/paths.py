from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from ..errors import InvalidPath, SecurityViolation

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def canonicalize(path: PathLike) -> Path:
    try:
        return Path(os.path.abspath(path)).resolve(strict=False)
    except (OSError, RuntimeError, ValueError) as exc:
        raise InvalidPath(f'Cannot resolve path: {path}') from exc


def is_within(candidate: Path, root: Path, allow_equal: bool = True) -> bool:
    """Boundary-aware prefix check on canonical paths.

    ``/sandbox2`` is never considered inside ``/sandbox``.
    """
    cand = str(candidate)
    base = str(root)
    if cand == base:
        return allow_equal
    return cand.startswith(base.rstrip(os.sep) + os.sep)


@dataclass(frozen=True)
class SandboxConfig:
    base_path: Optional[Path] = None
    trusted_roots: tuple[Path, ...] = ()

    @property
    def is_sandboxed(self) -> bool:
        return self.base_path is not None


class PathResolver:
    def __init__(self, base_path: Optional[PathLike] = None, trusted_roots: Iterable[PathLike] = ()):
        base = canonicalize(base_path) if base_path else None
        roots = tuple(Path(os.path.abspath(root)) for root in trusted_roots)
        self.config = SandboxConfig(base_path=base, trusted_roots=roots)

    @property
    def base_path(self) -> Optional[Path]:
        return self.config.base_path

    def resolve(self, user_path: Optional[PathLike]) -> Path:
        raw = os.fspath(user_path) if isinstance(user_path, (str, os.PathLike)) else ''
        if not isinstance(raw, str) or not raw.strip():
            raise InvalidPath('Path must be a non-empty string')

        base = self.config.base_path
        if base is None:
            return canonicalize(raw)

        trusted = self._trusted_root_for(raw)
        if trusted is not None:
            candidate = canonicalize(raw)
            if is_within(candidate, canonicalize(trusted)):
                return candidate
            logger.warning('Blocked escape from trusted root %s: %s', trusted, raw)
            raise SecurityViolation(f'Path escapes trusted root: {raw}')

        candidate = canonicalize(raw if os.path.isabs(raw) else base / raw)
        if not is_within(candidate, base):
            logger.warning('Blocked sandbox escape: %s -> %s', raw, candidate)
            raise SecurityViolation(f'Path escapes sandbox: {raw}')
        return candidate

    def resolve_many(self, user_paths: Union[PathLike, Iterable[PathLike]]) -> list[Path]:
        if isinstance(user_paths, (str, os.PathLike)):
            return [self.resolve(user_paths)]
        return [self.resolve(p) for p in user_paths]

    def boundary_for(self, path: Path) -> Optional[Path]:
        """Directory that walks below ``path`` must stay inside, ``None`` when unconfined."""
        if self.config.base_path is None:
            return None
        for root in self.config.trusted_roots:
            canonical = canonicalize(root)
            if is_within(path, canonical):
                return canonical
        return self.config.base_path

    def relative(self, path: Path) -> str:
        base = self.config.base_path
        if base is None or not is_within(path, base):
            return str(path)
        rel = path.relative_to(base).as_posix()
        return rel if rel != '.' else ''

    def _trusted_root_for(self, raw: str) -> Optional[Path]:
        for root in self.config.trusted_roots:
            prefix = str(root)
            if raw == prefix or raw.startswith(prefix.rstrip(os.sep) + os.sep):
                return root
        return None
