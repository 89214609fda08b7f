from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from .errors import FieldMappingError
from .schema import FieldSpec, FieldType, SchemaDescriptor


def _try_int(s: str) -> int | None:
    """Integer text, or float text within epsilon of an integer ("3.0" -> 3)."""
    try:
        return int(s)
    except ValueError:
        pass
    try:
        fval = float(s)
    except ValueError:
        return None
    if abs(fval - round(fval)) < 1e-9:
        return int(round(fval))
    return None


def _try_float(s: str) -> float | None:
    try:
        return float(s)
    except ValueError:
        return None


def _try_bool(s: str) -> bool | None:
    sl = s.lower()
    if sl in {"true", "yes", "y", "1"}:
        return True
    if sl in {"false", "no", "n", "0"}:
        return False
    return None


def coerce_value(value: Any, field_type: FieldType) -> Any:
    """Coerce one JSON value to ``field_type``; ``None`` becomes the zero value.

    Raises ``ValueError`` when no lossless coercion exists.
    """
    if value is None:
        return field_type.zero_value

    if field_type is FieldType.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return json.dumps(value)
        if isinstance(value, (int, float)):
            return str(value)

    elif field_type is FieldType.INTEGER:
        if isinstance(value, bool):
            pass
        elif isinstance(value, int):
            return value
        elif isinstance(value, float):
            if abs(value - round(value)) < 1e-9:
                return int(round(value))
        elif isinstance(value, str):
            parsed = _try_int(value.strip())
            if parsed is not None:
                return parsed

    elif field_type is FieldType.FLOAT:
        if isinstance(value, bool):
            pass
        elif isinstance(value, (int, float)):
            return float(value)
        elif isinstance(value, str):
            parsed = _try_float(value.strip())
            if parsed is not None:
                return parsed

    elif field_type is FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            parsed = _try_bool(value.strip())
            if parsed is not None:
                return parsed

    raise ValueError(f"cannot coerce {value!r} to {field_type.value}")


def _coerce_field(obj: dict[str, Any], spec: FieldSpec, index: int | None) -> Any:
    try:
        return coerce_value(obj.get(spec.name), spec.type)
    except ValueError as exc:
        where = f" (item {index})" if index is not None else ""
        raise FieldMappingError(
            f"Field {spec.name!r}{where}: {exc}", field=spec.name, index=index
        ) from exc


def _to_record(obj: Any, schema: SchemaDescriptor, index: int | None) -> BaseModel:
    if not isinstance(obj, dict):
        where = f"item {index}" if index is not None else "value"
        raise FieldMappingError(
            f"Expected a JSON object for {schema.name} ({where}), got {type(obj).__name__}",
            index=index,
        )
    record_type = schema.record_type
    model_fields = record_type.model_fields
    # Unknown keys are dropped. Missing/null keys use the model's own default
    # when it declares one, otherwise the type's zero value.
    values: dict[str, Any] = {}
    for spec in schema.fields:
        info = model_fields.get(spec.name)
        if obj.get(spec.name) is None and info is not None and not info.is_required():
            continue
        values[spec.name] = _coerce_field(obj, spec, index)
    try:
        return record_type.model_validate(values)
    except ValidationError as exc:
        errors = exc.errors()
        loc = errors[0].get("loc", ()) if errors else ()
        field_name = str(loc[0]) if loc else None
        raise FieldMappingError(
            f"{schema.name} rejected the extracted values: {exc}", field=field_name, index=index
        ) from exc


def to_record(obj: dict[str, Any], schema: SchemaDescriptor) -> BaseModel:
    return _to_record(obj, schema, None)


def to_records(items: Sequence[Any], schema: SchemaDescriptor) -> list[BaseModel]:
    """All-or-nothing: the first failing element aborts the whole list."""
    return [_to_record(item, schema, index) for index, item in enumerate(items)]
