from __future__ import annotations

import json
import logging
from typing import Any

import httpx
import pytest

from aientity.errors import ApiError, ProtocolError, TransportError
from aientity.invoker import AiInvoker, InvocationEvent, build_payload
from aientity.schema import SchemaDescriptor
from aientity.settings import ClientSettings

ENDPOINT = "https://llm.test/v1/chat/completions"

PERSON = SchemaDescriptor.create(
    "Person",
    [
        ("name", "string", "人的名字"),
        ("age", "int", "年龄"),
        ("occupation", "string", "职业"),
    ],
    settings=ClientSettings(model="gpt-test", endpoint=ENDPOINT, api_key="sk-test"),
)


def _completion(content: Any) -> dict[str, Any]:
    return {
        "id": "cmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _invoker(handler, schema: SchemaDescriptor = PERSON, **kwargs: Any) -> AiInvoker:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return AiInvoker(schema, client=client, **kwargs)


# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------


def test_build_payload():
    payload = build_payload(PERSON, "张三, 30, 工程师")
    assert payload["model"] == "gpt-test"
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["temperature"] == 0.7
    system, user = payload["messages"]
    assert system["role"] == "system"
    assert system["content"].startswith("You are a JSON generator for the Person class.")
    assert user == {"role": "user", "content": "张三, 30, 工程师"}


def test_invoke_posts_once_with_bearer_credential():
    recorder = Recorder(httpx.Response(200, json=_completion('{"name": "张三"}')))
    content = _invoker(recorder).invoke('He said "hi"')

    assert content == '{"name": "张三"}'
    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == ENDPOINT
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Content-Type"] == "application/json"
    body = json.loads(request.content)
    assert body["messages"][1]["content"] == 'He said "hi"'


def test_invoke_without_credential_omits_authorization():
    schema = SchemaDescriptor.create(
        "Person",
        [("name", "string")],
        settings=ClientSettings(model="local", endpoint="http://localhost:8080/v1/chat"),
    )
    recorder = Recorder(httpx.Response(200, json=_completion("{}")))
    _invoker(recorder, schema).invoke("x")
    assert "Authorization" not in recorder.requests[0].headers


def test_many_mode_changes_system_prompt():
    recorder = Recorder(httpx.Response(200, json=_completion("[]")))
    _invoker(recorder).invoke("x", many=True)
    system = json.loads(recorder.requests[0].content)["messages"][0]["content"]
    assert '"persons"' in system


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


def test_network_failure_is_transport_error():
    recorder = Recorder(httpx.ConnectError("connection refused"))
    with pytest.raises(TransportError, match="connection refused") as exc_info:
        _invoker(recorder).invoke("x")
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_timeout_is_transport_error():
    recorder = Recorder(httpx.ReadTimeout("timed out"))
    with pytest.raises(TransportError):
        _invoker(recorder).invoke("x")


def test_non_success_status_is_api_error():
    recorder = Recorder(httpx.Response(503, text="upstream unavailable"))
    with pytest.raises(ApiError, match="503") as exc_info:
        _invoker(recorder).invoke("x")
    assert exc_info.value.status_code == 503


def test_non_success_status_uses_error_envelope_message():
    body = {"error": {"message": "Incorrect API key provided", "type": "invalid_request_error"}}
    recorder = Recorder(httpx.Response(401, json=body))
    with pytest.raises(ApiError, match="Incorrect API key provided") as exc_info:
        _invoker(recorder).invoke("x")
    assert exc_info.value.status_code == 401


def test_error_envelope_on_success_status_is_api_error():
    recorder = Recorder(httpx.Response(200, json={"error": {"message": "model overloaded"}}))
    with pytest.raises(ApiError, match="model overloaded"):
        _invoker(recorder).invoke("x")


def test_string_error_envelope():
    recorder = Recorder(httpx.Response(200, json={"error": "quota exceeded"}))
    with pytest.raises(ApiError, match="quota exceeded"):
        _invoker(recorder).invoke("x")


def test_invalid_json_body_is_protocol_error():
    recorder = Recorder(httpx.Response(200, text="<html>gateway</html>"))
    with pytest.raises(ProtocolError, match="not valid JSON"):
        _invoker(recorder).invoke("x")


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"choices": []},
        {"choices": "nope"},
        {"choices": [{}]},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"content": {"name": "x"}}}]},
        [1, 2, 3],
    ],
)
def test_malformed_envelopes_are_protocol_errors(body):
    recorder = Recorder(httpx.Response(200, json=body))
    with pytest.raises(ProtocolError):
        _invoker(recorder).invoke("x")


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------


def test_observer_receives_events_in_order():
    events: list[InvocationEvent] = []
    recorder = Recorder(httpx.Response(200, json=_completion('{"age": 30}')))
    _invoker(recorder, observer=events.append).invoke("x")

    assert [e.kind for e in events] == ["request", "response", "content"]
    assert events[0].payload is not None
    assert events[0].payload["model"] == "gpt-test"
    assert events[1].status_code == 200
    assert events[2].content == '{"age": 30}'
    assert all(e.schema_name == "Person" for e in events)


def test_observer_sees_failures():
    events: list[InvocationEvent] = []
    recorder = Recorder(httpx.Response(500, text="boom"))
    with pytest.raises(ApiError):
        _invoker(recorder, observer=events.append).invoke("x")
    assert [e.kind for e in events] == ["request", "response", "failure"]
    assert isinstance(events[-1].error, ApiError)


def test_no_retry_by_default():
    recorder = Recorder(httpx.ConnectError("down"))
    with pytest.raises(TransportError):
        _invoker(recorder).invoke("x")
    assert len(recorder.requests) == 1


def test_retry_hook_wraps_send():
    responses: list[httpx.Response | Exception] = [
        httpx.ConnectError("flaky"),
        httpx.Response(200, json=_completion('{"name": "ok"}')),
    ]
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def retry_once(send):
        try:
            return send()
        except httpx.TransportError:
            return send()

    assert _invoker(handler, retry=retry_once).invoke("x") == '{"name": "ok"}'
    assert len(seen) == 2


def test_credential_is_not_logged(caplog: pytest.LogCaptureFixture):
    recorder = Recorder(httpx.Response(200, json=_completion("{}")))
    with caplog.at_level(logging.DEBUG, logger="aientity.invoker"):
        _invoker(recorder).invoke("x")
    assert "Sending completion request for Person" in caplog.text
    assert "sk-test" not in caplog.text


def test_context_manager_closes_owned_client():
    invoker = AiInvoker(PERSON)
    with invoker:
        pass
    assert invoker._client.is_closed


def test_injected_client_is_left_open():
    client = httpx.Client(transport=httpx.MockTransport(Recorder(httpx.Response(200))))
    with AiInvoker(PERSON, client=client):
        pass
    assert not client.is_closed
