"""Sorting utilities: value coercion per field type and multi-key comparison."""

import re
from datetime import date, datetime, timezone
from functools import cmp_to_key
from typing import Any, Callable, List, Mapping, Optional, Sequence

from pyqt_entitylist.protocols import FieldType, SortKey

_DATE_FIELD = re.compile(r"(_date|_at|_time)$|^(date|created|updated)$")


def parse_timestamp(value: Any) -> Optional[float]:
    """Epoch seconds for ``value``, or None when missing/unparsable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def infer_field_type(field_id: str, items: Sequence[Mapping[str, Any]]) -> FieldType:
    """Guess a field's type from its name, then from the first non-null value."""
    if _DATE_FIELD.search(field_id):
        return FieldType.DATE
    for item in items:
        value = item.get(field_id)
        if value is None:
            continue
        if isinstance(value, bool):
            return FieldType.BOOLEAN
        if isinstance(value, (int, float)):
            return FieldType.NUMBER
        if isinstance(value, (datetime, date)):
            return FieldType.DATE
        return FieldType.STRING
    return FieldType.STRING


def _coerce(value: Any, field_type: FieldType) -> Any:
    """Comparable form of ``value``; None means "missing"."""
    if field_type is FieldType.DATE:
        return parse_timestamp(value)
    if field_type is FieldType.BOOLEAN:
        return 1 if value else 0
    if field_type is FieldType.NUMBER:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return str(value).casefold()


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def make_comparator(sort_config: Sequence[SortKey],
                    field_types: Mapping[str, FieldType]) -> Callable[[Mapping, Mapping], int]:
    """
    Build a multi-key comparator.

    Missing dates and numbers always sort after present ones, whatever the
    direction. Ties fall through to the next key.
    """
    resolved = [(key.id, key.desc, field_types.get(key.id, FieldType.STRING)) for key in sort_config]

    def compare(a: Mapping, b: Mapping) -> int:
        for field_id, desc, field_type in resolved:
            va = _coerce(a.get(field_id), field_type)
            vb = _coerce(b.get(field_id), field_type)
            if va is None or vb is None:
                if va is None and vb is None:
                    continue
                return 1 if va is None else -1
            result = _cmp(va, vb)
            if result:
                return -result if desc else result
        return 0

    return compare


def sort_records(items: Sequence[Mapping[str, Any]], sort_config: Sequence[SortKey],
                 field_types: Optional[Mapping[str, FieldType]] = None) -> List[Mapping[str, Any]]:
    """Stable multi-key sort returning a new list."""
    if not sort_config:
        return list(items)
    types = dict(field_types or {})
    for key in sort_config:
        if key.id not in types:
            types[key.id] = infer_field_type(key.id, items)
    return sorted(items, key=cmp_to_key(make_comparator(sort_config, types)))
