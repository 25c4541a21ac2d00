import datetime as _dt
import uuid as _uuid
from typing import Iterable, List, Optional


def parse_ymd(s: str) -> _dt.date:
    try:
        y, m, d = (int(p) for p in s.strip().split("-"))
        return _dt.date(y, m, d)
    except Exception:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {s!r}")


def maybe_ymd(value) -> Optional[_dt.date]:
    if not value:
        return None
    return parse_ymd(value)


def parse_uuid(value, label: str = "id") -> _uuid.UUID:
    try:
        return _uuid.UUID(str(value))
    except Exception:
        raise ValueError(f"Invalid {label}: {value!r}")


def parse_uuid_list(values: Optional[Iterable], label: str = "id") -> List[_uuid.UUID]:
    if values is None:
        return []
    if isinstance(values, (str, bytes)) or not hasattr(values, "__iter__"):
        raise ValueError(f"{label} must be a list")
    return [parse_uuid(v, label) for v in values]
