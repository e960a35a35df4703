# wholesale_pos/utils/helpers.py
from datetime import datetime
import logging
from typing import Any, Optional, Union

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def now_str(now: Optional[datetime] = None) -> str:
    """Return a local timestamp as 'YYYY-MM-DD HH:MM:SS' (SQLite-comparable text)."""
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored 'YYYY-MM-DD[ HH:MM:SS]' value; None when missing/malformed."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        _log.debug("parse_timestamp: bad value %r", value)
        return None


def to_float(x: Optional[Any], default: float = 0.0) -> float:
    try:
        return float(x if x is not None else default)
    except (TypeError, ValueError):
        return default


def fmt_money(v: NumberLike, places: int = 2) -> str:
    """Money with thousands separators; values that do not parse come back as str(v)."""
    try:
        x = float(v)
    except (TypeError, ValueError):
        _log.debug("fmt_money: failed to parse %r as float", v)
        return str(v)
    return f"{x:,.{places}f}"
