from __future__ import annotations

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def to_json(value: Any, *, exclude: Iterable[str] = ()) -> Any:
    """Convert domain objects into JSON-ready data with camelCase keys.

    Decimals become strings so money/hours keep their two decimals.
    `exclude` names fields dropped from the top-level object, or from each
    item when the top level is a list.
    """

    skip = set(exclude)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): to_json(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.name not in skip
        }
    if isinstance(value, dict):
        # Mapping keys are data (job names, custom field names), not attribute names.
        return {k: to_json(v) for k, v in value.items() if k not in skip}
    if isinstance(value, (list, tuple)):
        return [to_json(v, exclude=skip) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat() + ("Z" if value.tzinfo is None else "")
    if isinstance(value, date):
        return value.isoformat()
    return value
