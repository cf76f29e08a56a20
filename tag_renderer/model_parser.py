from __future__ import annotations

import json
from typing import Any

from tag_renderer.models import ModelParseResult, ModelStats
from tag_renderer.template import is_tag_name


class ModelParseError(ValueError):
    """Raised when a model payload cannot be turned into a tag mapping safely."""


def parse_model(payload: Any, *, raise_on_invalid: bool = True) -> ModelParseResult:
    if isinstance(payload, dict):
        rows = [(index, name, value) for index, (name, value) in enumerate(payload.items(), start=1)]
    elif isinstance(payload, list):
        rows = []
        for index, item in enumerate(payload, start=1):
            if not isinstance(item, dict):
                raise ModelParseError(f"Invalid model row at index {index}: expected object")
            rows.append((index, item.get("name"), item.get("value")))
    else:
        raise ModelParseError("Invalid model format: expected object or list")

    return _normalize_rows(rows, raise_on_invalid=raise_on_invalid)


def _normalize_rows(
    rows: list[tuple[int, object, object]],
    *,
    raise_on_invalid: bool,
) -> ModelParseResult:
    model: dict[str, str] = {}
    invalid_messages: list[str] = []
    invalid_name_rows = 0
    duplicate_rows = 0
    empty_rows = 0

    for row_number, raw_name, raw_value in rows:
        name = _to_text(raw_name).strip()
        value = _value_to_text(raw_value, row_number=row_number)

        if not name and not value:
            empty_rows += 1
            continue

        if not is_tag_name(name):
            invalid_name_rows += 1
            invalid_messages.append(f"row {row_number}: invalid tag name '{name}'")
            continue

        if name in model:
            duplicate_rows += 1
            continue

        model[name] = value

    if raise_on_invalid and invalid_messages:
        details = "; ".join(invalid_messages[:20])
        raise ModelParseError(f"Model contains invalid rows: {details}")

    stats = ModelStats(
        total_rows=len(rows),
        valid_rows=len(model),
        invalid_name_rows=invalid_name_rows,
        duplicate_rows=duplicate_rows,
        empty_rows=empty_rows,
    )
    return ModelParseResult(model=model, stats=stats)


def _to_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def _value_to_text(value: object, *, row_number: int) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    raise ModelParseError(f"row {row_number}: unsupported value type {type(value).__name__}")
