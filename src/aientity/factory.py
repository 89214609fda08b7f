from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from .deserialize import to_record, to_records
from .errors import EmptyInputError, SourceUnavailableError
from .invoker import AiInvoker
from .normalize import to_array, to_object
from .schema import SchemaDescriptor, schema_for

logger = logging.getLogger(__name__)

SourceReader = Callable[[Any], str]

T = TypeVar("T", bound=BaseModel)


class Invoker(Protocol):
    def invoke(self, user_text: str, *, many: bool = False) -> str: ...

    def close(self) -> None: ...


def read_text_file(source: str | Path) -> str:
    return Path(source).read_text(encoding="utf-8")


def _require_text(text: str) -> str:
    if not isinstance(text, str) or not text.strip():
        raise EmptyInputError()
    return text


class EntityFactory(Generic[T]):
    """Materializes records of one schema from free text.

    Example::

        factory = EntityFactory.for_model(Person)
        person = factory.create_one("Zhang San, 30, engineer")
    """

    def __init__(
        self,
        schema: SchemaDescriptor,
        *,
        invoker: Invoker | None = None,
        source_reader: SourceReader | None = None,
        **invoker_kwargs: Any,
    ) -> None:
        self.schema = schema
        self._invoker: Invoker = (
            invoker if invoker is not None else AiInvoker(schema, **invoker_kwargs)
        )
        self._read_source = source_reader or read_text_file

    @classmethod
    def for_model(cls, model_cls: type[T], **kwargs: Any) -> EntityFactory[T]:
        """Factory for a class registered with ``@ai_entity``."""
        return cls(schema_for(model_cls), **kwargs)

    def __enter__(self) -> EntityFactory[T]:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._invoker.close()

    def create_one(self, text: str) -> T:
        raw = self._invoker.invoke(_require_text(text))
        return to_record(to_object(raw), self.schema)  # type: ignore[return-value]

    def create_many(self, text: str) -> list[T]:
        raw = self._invoker.invoke(_require_text(text), many=True)
        items = to_array(raw, self.schema.wrapper_keys)
        logger.debug("Located %d %s item(s) in model reply", len(items), self.schema.name)
        return to_records(items, self.schema)  # type: ignore[return-value]

    def create_many_from_source(self, source: Any) -> list[T]:
        try:
            content = self._read_source(source)
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceUnavailableError(
                f"Failed to read source {source!s}: {exc}", source=str(source)
            ) from exc
        return self.create_many(content)
