from __future__ import annotations

import types as py_types
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel, create_model

from .errors import SchemaError
from .settings import DEFAULT_TEMPERATURE, DEFAULT_TIMEOUT, ClientSettings


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "boolean"

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]

    @property
    def zero_value(self) -> Any:
        return _ZERO_VALUES[self]

    @classmethod
    def parse(cls, tag: FieldType | str | type) -> FieldType:
        if isinstance(tag, FieldType):
            return tag
        if isinstance(tag, type):
            for member, py_type in _PYTHON_TYPES.items():
                if tag is py_type:
                    return member
            raise SchemaError(f"Unsupported field type {tag.__name__!r}")
        lowered = str(tag).strip().lower()
        try:
            return _TAG_ALIASES[lowered]
        except KeyError:
            raise SchemaError(f"Unsupported field type tag {tag!r}") from None


_PYTHON_TYPES: dict[FieldType, type] = {
    FieldType.STRING: str,
    FieldType.INTEGER: int,
    FieldType.FLOAT: float,
    FieldType.BOOLEAN: bool,
}

_ZERO_VALUES: dict[FieldType, Any] = {
    FieldType.STRING: "",
    FieldType.INTEGER: 0,
    FieldType.FLOAT: 0.0,
    FieldType.BOOLEAN: False,
}

_TAG_ALIASES: dict[str, FieldType] = {
    "string": FieldType.STRING,
    "str": FieldType.STRING,
    "int": FieldType.INTEGER,
    "integer": FieldType.INTEGER,
    "float": FieldType.FLOAT,
    "double": FieldType.FLOAT,
    "number": FieldType.FLOAT,
    "bool": FieldType.BOOLEAN,
    "boolean": FieldType.BOOLEAN,
}


@dataclass(frozen=True, slots=True)
class FieldSpec:
    name: str
    type: FieldType
    description: str = ""

    @property
    def label(self) -> str:
        """Text used in prompts: the description, or the name when there is none."""
        return self.description or self.name


def _to_field_spec(item: FieldSpec | Sequence[Any]) -> FieldSpec:
    if isinstance(item, FieldSpec):
        return FieldSpec(item.name, FieldType.parse(item.type), item.description or "")
    if isinstance(item, (tuple, list)) and len(item) in (2, 3):
        name, tag = item[0], item[1]
        description = item[2] if len(item) == 3 else ""
        return FieldSpec(str(name), FieldType.parse(tag), description or "")
    raise SchemaError(f"Cannot interpret field declaration {item!r}")


def default_wrapper_keys(record_name: str) -> tuple[str, ...]:
    """Plural of the record name first, then the generic ``data``/``results``."""
    plural = record_name.strip().lower() + "s"
    return tuple(dict.fromkeys((plural, "data", "results")))


@dataclass(frozen=True, slots=True)
class SchemaDescriptor:
    """Immutable description of one record type and the endpoint that fills it."""

    name: str
    fields: tuple[FieldSpec, ...]
    model: str
    endpoint: str
    api_key: str | None = None
    wrapper_keys: tuple[str, ...] = ()
    temperature: float = DEFAULT_TEMPERATURE
    timeout: float = DEFAULT_TIMEOUT
    record_type: type[BaseModel] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise SchemaError("Schema name must not be empty")
        specs = tuple(_to_field_spec(f) for f in self.fields)
        if not specs:
            raise SchemaError(f"Schema {self.name!r} declares no fields")
        seen: set[str] = set()
        for spec in specs:
            if not spec.name.isidentifier() or spec.name.startswith("_"):
                raise SchemaError(f"Invalid field name {spec.name!r} in schema {self.name!r}")
            if spec.name in seen:
                raise SchemaError(f"Duplicate field name {spec.name!r} in schema {self.name!r}")
            seen.add(spec.name)
        object.__setattr__(self, "fields", specs)
        keys = tuple(self.wrapper_keys) or default_wrapper_keys(self.name)
        object.__setattr__(self, "wrapper_keys", keys)
        if self.record_type is None:
            object.__setattr__(self, "record_type", _build_record_type(self.name, specs))

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @classmethod
    def create(
        cls,
        name: str,
        fields: Iterable[FieldSpec | Sequence[Any]],
        *,
        model: str | None = None,
        endpoint: str | None = None,
        api_key: str | None = None,
        wrapper_keys: Sequence[str] | None = None,
        settings: ClientSettings | None = None,
        record_type: type[BaseModel] | None = None,
    ) -> SchemaDescriptor:
        """Build a descriptor, resolving connection values from the environment.

        ``model``, ``endpoint`` and ``api_key`` may contain ``${NAME:default}``
        placeholders; they are resolved once, here.
        """
        resolved = settings or ClientSettings.from_env(
            model=model, endpoint=endpoint, api_key=api_key
        )
        return cls(
            name=name,
            fields=tuple(fields),
            model=resolved.model,
            endpoint=resolved.endpoint,
            api_key=resolved.api_key,
            wrapper_keys=tuple(wrapper_keys or ()),
            temperature=resolved.temperature,
            timeout=resolved.timeout,
            record_type=record_type,
        )

    @classmethod
    def from_model(
        cls,
        model_cls: type[BaseModel],
        *,
        name: str | None = None,
        model: str | None = None,
        endpoint: str | None = None,
        api_key: str | None = None,
        wrapper_keys: Sequence[str] | None = None,
        settings: ClientSettings | None = None,
    ) -> SchemaDescriptor:
        """Derive a descriptor from a pydantic model's fields and descriptions."""
        if not (isinstance(model_cls, type) and issubclass(model_cls, BaseModel)):
            raise SchemaError(f"{model_cls!r} is not a pydantic model class")
        specs = [
            FieldSpec(
                field_name,
                _field_type_from_annotation(model_cls.__name__, field_name, info.annotation),
                info.description or "",
            )
            for field_name, info in model_cls.model_fields.items()
        ]
        return cls.create(
            name or model_cls.__name__,
            specs,
            model=model,
            endpoint=endpoint,
            api_key=api_key,
            wrapper_keys=wrapper_keys,
            settings=settings,
            record_type=model_cls,
        )


def _field_type_from_annotation(owner: str, field_name: str, annotation: Any) -> FieldType:
    if get_origin(annotation) in {Union, py_types.UnionType}:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            annotation = args[0]
    try:
        return FieldType.parse(annotation)
    except SchemaError:
        raise SchemaError(
            f"Field {owner}.{field_name} has unsupported annotation {annotation!r}; "
            "expected str, int, float or bool"
        ) from None


def _build_record_type(name: str, specs: Sequence[FieldSpec]) -> type[BaseModel]:
    definitions: dict[str, Any] = {
        spec.name: (spec.type.python_type, spec.type.zero_value) for spec in specs
    }
    model_name = name if name.isidentifier() else "Record"
    return create_model(model_name, **definitions)


# ---------------------------------------------------------------------------
# Class registration
# ---------------------------------------------------------------------------

_REGISTRY: dict[type, SchemaDescriptor] = {}


def ai_entity(
    *,
    model: str | None = None,
    url: str | None = None,
    api_key: str | None = None,
    name: str | None = None,
    wrapper_keys: Sequence[str] | None = None,
) -> Callable[[type[BaseModel]], type[BaseModel]]:
    """Class decorator registering a pydantic model as an extractable entity.

    Placeholders such as ``"${OPENAI_MODEL:gpt-3.5-turbo}"`` are resolved when
    the class is defined.
    """

    def decorator(cls: type[BaseModel]) -> type[BaseModel]:
        _REGISTRY[cls] = SchemaDescriptor.from_model(
            cls,
            name=name,
            model=model,
            endpoint=url,
            api_key=api_key,
            wrapper_keys=wrapper_keys,
        )
        return cls

    return decorator


def schema_for(cls: type) -> SchemaDescriptor:
    try:
        return _REGISTRY[cls]
    except KeyError:
        raise SchemaError(
            f"{cls.__name__} is not registered; decorate it with @ai_entity"
        ) from None
