from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aientity")
except PackageNotFoundError:  # pragma: no cover - local source tree without installed metadata
    __version__ = "0.1.0"

from .deserialize import to_record, to_records
from .errors import (
    AiEntityError,
    ApiError,
    EmptyInputError,
    FieldMappingError,
    MalformedResponseError,
    ProtocolError,
    SchemaError,
    SourceUnavailableError,
    TransportError,
)
from .factory import EntityFactory
from .invoker import AiInvoker, InvocationEvent, build_payload
from .normalize import DEFAULT_WRAPPER_KEYS, to_array, to_object
from .prompt import build_system_prompt
from .schema import FieldSpec, FieldType, SchemaDescriptor, ai_entity, schema_for
from .settings import ClientSettings, resolve_placeholders
from .testing import StaticInvoker

__all__ = [
    "AiEntityError",
    "AiInvoker",
    "ApiError",
    "ClientSettings",
    "DEFAULT_WRAPPER_KEYS",
    "EmptyInputError",
    "EntityFactory",
    "FieldMappingError",
    "FieldSpec",
    "FieldType",
    "InvocationEvent",
    "MalformedResponseError",
    "ProtocolError",
    "SchemaDescriptor",
    "SchemaError",
    "SourceUnavailableError",
    "StaticInvoker",
    "TransportError",
    "ai_entity",
    "build_payload",
    "build_system_prompt",
    "resolve_placeholders",
    "schema_for",
    "to_array",
    "to_object",
    "to_record",
    "to_records",
]
