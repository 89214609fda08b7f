"""Error taxonomy for entity materialization.

Every failure surfaces as a subclass of :class:`AiEntityError`; underlying
exceptions (httpx, json, pydantic, OS) are chained as ``__cause__``.
"""

from __future__ import annotations


class AiEntityError(Exception):
    """Base for all aientity errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SchemaError(AiEntityError):
    """Invalid schema declaration (no fields, duplicate names, unsupported type)."""


class EmptyInputError(AiEntityError):
    """Input text is empty or whitespace-only. No request was issued."""

    def __init__(self, message: str = "Input text is empty") -> None:
        super().__init__(message)


class TransportError(AiEntityError):
    """Network, DNS or timeout failure while talking to the completion endpoint."""


class ApiError(AiEntityError):
    """Non-2xx status, or an error envelope returned by the API."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(AiEntityError):
    """Success status, but the body is not the expected completion envelope."""


class MalformedResponseError(AiEntityError):
    """Model content is not valid JSON, or has no usable object/array."""


class FieldMappingError(AiEntityError):
    """A JSON value cannot be coerced to its declared field type."""

    def __init__(self, message: str, *, field: str | None = None, index: int | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.index = index


class SourceUnavailableError(AiEntityError):
    """The content source (usually a file) could not be read."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


__all__ = [
    "AiEntityError",
    "ApiError",
    "EmptyInputError",
    "FieldMappingError",
    "MalformedResponseError",
    "ProtocolError",
    "SchemaError",
    "SourceUnavailableError",
    "TransportError",
]
