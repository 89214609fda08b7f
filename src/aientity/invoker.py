"""Single-shot client for OpenAI-style chat-completion endpoints.

One :meth:`AiInvoker.invoke` call issues exactly one ``POST`` and returns the
``choices[0].message.content`` string.  Nothing is retried here; callers that
want resilience pass a ``retry`` callable that wraps the send, e.g.::

    def retry_twice(send):
        try:
            return send()
        except httpx.TransportError:
            return send()

    AiInvoker(schema, retry=retry_twice)

Diagnostics go to the module logger at DEBUG level and, optionally, to an
``observer`` callable that receives an :class:`InvocationEvent` per step.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from .errors import ApiError, ProtocolError, TransportError
from .prompt import build_system_prompt
from .schema import SchemaDescriptor

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200

EventKind = Literal["request", "response", "content", "failure"]


@dataclass(frozen=True, slots=True)
class InvocationEvent:
    kind: EventKind
    schema_name: str
    payload: dict[str, Any] | None = None
    status_code: int | None = None
    body: str | None = None
    content: str | None = None
    error: Exception | None = None


Observer = Callable[[InvocationEvent], None]
RetryPolicy = Callable[[Callable[[], httpx.Response]], httpx.Response]


def build_payload(
    schema: SchemaDescriptor, user_text: str, *, many: bool = False
) -> dict[str, Any]:
    return {
        "model": schema.model,
        "messages": [
            {"role": "system", "content": build_system_prompt(schema, many=many)},
            {"role": "user", "content": user_text},
        ],
        "response_format": {"type": "json_object"},
        "temperature": schema.temperature,
    }


def _preview(text: str) -> str:
    return text if len(text) <= _PREVIEW_CHARS else text[:_PREVIEW_CHARS] + "..."


def _envelope_message(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message")
        if message:
            return str(message)
        return json.dumps(error, ensure_ascii=False)
    return str(error)


class AiInvoker:
    """Sends one completion request per call for a fixed schema."""

    def __init__(
        self,
        schema: SchemaDescriptor,
        *,
        client: httpx.Client | None = None,
        observer: Observer | None = None,
        retry: RetryPolicy | None = None,
        timeout: float | None = None,
    ) -> None:
        self.schema = schema
        self._observer = observer
        self._retry = retry
        self._timeout = timeout
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(timeout=timeout if timeout is not None else schema.timeout)
        self._client = client

    def __enter__(self) -> AiInvoker:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.schema.api_key:
            headers["Authorization"] = f"Bearer {self.schema.api_key}"
        return headers

    def _notify(self, event: InvocationEvent) -> None:
        if self._observer is not None:
            self._observer(event)

    def _failed(self, error: Exception) -> Exception:
        logger.debug("Completion request for %s failed: %s", self.schema.name, error)
        self._notify(InvocationEvent(kind="failure", schema_name=self.schema.name, error=error))
        return error

    def invoke(self, user_text: str, *, many: bool = False) -> str:
        """Return the raw model content for ``user_text``.

        Raises :class:`TransportError`, :class:`ApiError` or :class:`ProtocolError`.
        """
        payload = build_payload(self.schema, user_text, many=many)
        self._notify(InvocationEvent(kind="request", schema_name=self.schema.name, payload=payload))
        logger.debug(
            "Sending completion request for %s to %s (model=%s)",
            self.schema.name,
            self.schema.endpoint,
            self.schema.model,
        )

        request_kwargs: dict[str, Any] = {"json": payload, "headers": self._headers()}
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        def send() -> httpx.Response:
            return self._client.post(self.schema.endpoint, **request_kwargs)

        try:
            response = self._retry(send) if self._retry is not None else send()
        except httpx.TransportError as exc:
            raise self._failed(
                TransportError(f"Request to {self.schema.endpoint} failed: {exc}")
            ) from exc

        body = response.text
        self._notify(
            InvocationEvent(
                kind="response",
                schema_name=self.schema.name,
                status_code=response.status_code,
                body=body,
            )
        )
        logger.debug("Completion response %s: %s", response.status_code, _preview(body))
        content = self._extract_content(response.status_code, body)
        self._notify(InvocationEvent(kind="content", schema_name=self.schema.name, content=content))
        return content

    def _extract_content(self, status_code: int, body: str) -> str:
        if not 200 <= status_code < 300:
            detail = _preview(body)
            try:
                parsed = json.loads(body)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict) and parsed.get("error") is not None:
                detail = _envelope_message(parsed["error"])
            raise self._failed(
                ApiError(
                    f"API request failed with status code {status_code}: {detail}",
                    status_code=status_code,
                )
            )

        try:
            root = json.loads(body)
        except ValueError as exc:
            raise self._failed(ProtocolError("Response body is not valid JSON")) from exc
        if not isinstance(root, dict):
            raise self._failed(ProtocolError("Response body is not a JSON object"))

        if root.get("error") is not None:
            raise self._failed(
                ApiError(f"API error: {_envelope_message(root['error'])}", status_code=status_code)
            )

        choices = root.get("choices")
        if not isinstance(choices, list) or not choices:
            raise self._failed(ProtocolError("Invalid API response format: missing choices"))
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict) or message.get("content") is None:
            raise self._failed(
                ProtocolError("Invalid API response format: missing message content")
            )
        content = message["content"]
        if not isinstance(content, str):
            raise self._failed(
                ProtocolError("Invalid API response format: content is not a string")
            )
        return content
