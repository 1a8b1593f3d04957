from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from ..config import settings
from .walker import Visitor, walk

_KILO = 1024
_UNIT_POWERS = {'b': 0, 'kb': 1, 'mb': 2, 'gb': 3, 'tb': 4}


def convert_size(raw_size: int, unit: Optional[str] = None) -> float:
    power = _UNIT_POWERS.get((unit or '').lower())
    if power is None:
        power = _UNIT_POWERS[settings.default_size_unit]
    size = float(raw_size)
    for _ in range(power):
        size /= _KILO
    return round(size, 2)


def readable_size(raw_size: int, unit: str = 'mb') -> str:
    return f'{convert_size(raw_size, unit):.2f} {unit.upper()}'


class _SizeVisitor(Visitor):
    def on_file(self, path: Path, context: dict) -> None:
        try:
            context['total'] += path.stat().st_size
        except FileNotFoundError:
            pass


def total_bytes(path: Path, boundary: Optional[Path] = None) -> Optional[int]:
    if not path.exists():
        return None
    if path.is_file():
        return path.stat().st_size
    return walk(path, _SizeVisitor(), {'total': 0}, boundary=boundary)['total']


def storage_size(path: Path, unit: Optional[str] = None, boundary: Optional[Path] = None) -> Optional[float]:
    raw = total_bytes(path, boundary)
    if raw is None:
        return None
    return convert_size(raw, unit)


def format_timestamp(epoch_ms: int, offset_hours: Optional[int] = None) -> str:
    hours = settings.timestamp_offset_hours if offset_hours is None else offset_hours
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone(timedelta(hours=hours)))
    return moment.strftime('%Y-%m-%d %H:%M')
