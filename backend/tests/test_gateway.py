"""Tests for the completion gateway and the OpenAI-compatible backend."""

import asyncio
import json

import httpx
import pytest

from healthtest.services.ai.errors import InvalidShapeError, MalformedResponseError, ServiceError
from healthtest.services.ai.gateway import (
    BackendConfig,
    CompletionGateway,
    OpenAICompatibleBackend,
    parse_json_text,
)
from healthtest.services.ai.prompts import (
    ANALYSIS_SHAPE,
    AUTOMATE_SHAPE,
    DUPLICATES_SHAPE,
    ENDPOINTS_SHAPE,
    HEAL_SHAPE,
    IMPACT_SHAPE,
    IMPROVE_SHAPE,
    REQUIREMENTS_SHAPE,
    make_test_case_shape,
)
from healthtest.services.ai.shape import ResponseShape, array_of, obj, string

ITEMS = ResponseShape("items", array_of(obj({"id": string(), "description": string()})))


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _http_gateway(handler, **config) -> tuple[CompletionGateway, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    backend = OpenAICompatibleBackend(
        BackendConfig(model="test-model", api_key="sk-test", **config),
        transport=httpx.MockTransport(recording),
    )
    return CompletionGateway(backend), seen


class TestParseJsonText:
    def test_plain_json(self):
        assert parse_json_text('[{"id": "REQ-001"}]') == [{"id": "REQ-001"}]

    def test_markdown_fence_is_stripped(self):
        raw = '```json\n{"script": "open()"}\n```'
        assert parse_json_text(raw) == {"script": "open()"}

    def test_not_json_raises_malformed(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            parse_json_text("Sure! Here are your requirements:")
        assert exc_info.value.message == "The AI returned a malformed response. Please try again."


class TestBackendConfig:
    def test_provider_default_url(self):
        config = BackendConfig(model="m", api_key="k", provider="deepseek")
        assert config.completions_url == "https://api.deepseek.com/chat/completions"

    def test_explicit_base_url_wins(self):
        config = BackendConfig(model="m", api_key="k", base_url="http://localhost:11434/v1/")
        assert config.completions_url == "http://localhost:11434/v1/chat/completions"


class TestOpenAICompatibleBackend:
    @pytest.mark.asyncio
    async def test_success_sends_schema_and_returns_data(self):
        content = json.dumps({"items": [{"id": "REQ-001", "description": "Login"}]})
        gateway, seen = _http_gateway(lambda request: httpx.Response(200, json=_completion(content)))

        data = await gateway.complete("Extract requirements", ITEMS)

        assert data == [{"id": "REQ-001", "description": "Login"}]
        assert len(seen) == 1
        request = seen[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "test-model"
        assert payload["messages"][-1] == {"role": "user", "content": "Extract requirements"}
        assert payload["response_format"]["type"] == "json_schema"
        assert payload["response_format"]["json_schema"]["name"] == "items"
        assert payload["response_format"]["json_schema"]["schema"] == ITEMS.to_wire_schema()

    @pytest.mark.asyncio
    async def test_http_500_is_service_error_without_retry(self):
        gateway, seen = _http_gateway(lambda request: httpx.Response(500, json={"error": "boom"}))

        with pytest.raises(ServiceError) as exc_info:
            await gateway.complete("prompt", ITEMS)

        assert len(seen) == 1
        assert "check the API key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_is_service_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        gateway, _ = _http_gateway(handler)

        with pytest.raises(ServiceError):
            await gateway.complete("prompt", ITEMS)

    @pytest.mark.asyncio
    async def test_unexpected_envelope_is_service_error(self):
        gateway, _ = _http_gateway(lambda request: httpx.Response(200, json={"id": "x"}))

        with pytest.raises(ServiceError):
            await gateway.complete("prompt", ITEMS)

    @pytest.mark.asyncio
    async def test_non_json_content_is_malformed(self):
        gateway, _ = _http_gateway(lambda request: httpx.Response(200, json=_completion("not json at all")))

        with pytest.raises(MalformedResponseError):
            await gateway.complete("prompt", ITEMS)


class TestCompletionGateway:
    @pytest.mark.asyncio
    async def test_shape_mismatch_raises_invalid_shape(self, backend, gateway):
        backend.queue({"id": "REQ-001"})

        with pytest.raises(InvalidShapeError) as exc_info:
            await gateway.complete("prompt", ITEMS)

        assert exc_info.value.details == ["$: {'id': 'REQ-001'} is not of type 'array'"]

    @pytest.mark.asyncio
    async def test_missing_field_reported(self, backend, gateway):
        backend.queue([{"id": "REQ-001"}])

        with pytest.raises(InvalidShapeError) as exc_info:
            await gateway.complete("prompt", ITEMS)

        assert exc_info.value.details == ["$[0]: 'description' is a required property"]

    @pytest.mark.asyncio
    async def test_asyncio_timeout_is_service_error(self, backend, gateway):
        backend.queue(asyncio.TimeoutError())

        with pytest.raises(ServiceError):
            await gateway.complete("prompt", ITEMS)

    @pytest.mark.asyncio
    async def test_backend_receives_shape_name_and_schema(self, backend, gateway):
        backend.queue([])

        assert await gateway.complete("prompt", ITEMS) == []
        assert backend.calls == [{"prompt": "prompt", "schema": ITEMS.to_wire_schema(), "schema_name": "items"}]

    @pytest.mark.asyncio
    async def test_bare_array_answer_is_accepted(self, backend, gateway):
        backend.queue([{"id": "REQ-001", "description": "Login"}])

        assert await gateway.complete("prompt", ITEMS) == [{"id": "REQ-001", "description": "Login"}]


class TestResponseFormat:
    def test_provider_defaults(self):
        assert BackendConfig(model="m", api_key="k").resolved_response_format == "json_schema"
        assert BackendConfig(model="m", api_key="k", provider="DeepSeek").resolved_response_format == "json_object"
        assert BackendConfig(model="m", api_key="k", provider="zhipu").resolved_response_format == "json_object"
        assert BackendConfig(model="m", api_key="k", provider="local").resolved_response_format == "json_object"

    def test_explicit_format_wins(self):
        config = BackendConfig(model="m", api_key="k", provider="deepseek", response_format="json_schema")
        assert config.resolved_response_format == "json_schema"

    @pytest.mark.asyncio
    async def test_json_object_mode_puts_schema_in_prompt(self):
        content = json.dumps({"items": []})
        gateway, seen = _http_gateway(lambda request: httpx.Response(200, json=_completion(content)), provider="deepseek")

        assert await gateway.complete("Extract requirements", ITEMS) == []

        payload = json.loads(seen[0].content)
        assert str(seen[0].url) == "https://api.deepseek.com/chat/completions"
        assert payload["response_format"] == {"type": "json_object"}
        user_message = payload["messages"][-1]["content"]
        assert user_message.startswith("Extract requirements\n\n")
        assert json.dumps(ITEMS.to_wire_schema()) in user_message

    @pytest.mark.asyncio
    async def test_none_mode_sends_no_response_format(self):
        content = json.dumps({"items": []})
        gateway, seen = _http_gateway(lambda request: httpx.Response(200, json=_completion(content)), response_format="none")

        await gateway.complete("prompt", ITEMS)

        assert "response_format" not in json.loads(seen[0].content)


PIPELINE_SHAPES = [
    (REQUIREMENTS_SHAPE, {"id", "description", "module"}),
    (ENDPOINTS_SHAPE, {"id", "description", "module"}),
    (ANALYSIS_SHAPE, {"summary", "testCaseCategories", "estimatedTestCases"}),
    (make_test_case_shape("Manual Entry"), {"id", "title", "description", "requirementId", "steps", "expectedOutcome"}),
    (IMPROVE_SHAPE, {"title", "description", "steps", "expectedOutcome", "priority", "tags"}),
    (AUTOMATE_SHAPE, {"script"}),
    (DUPLICATES_SHAPE, {"testCase1Id", "testCase2Id", "similarity", "rationale"}),
    (IMPACT_SHAPE, {"testCaseId", "rationale", "recommendedPriority", "suggestion"}),
]


def _record_schema(shape: ResponseShape) -> dict:
    """The object schema describing one record of ``shape``."""
    schema = shape.to_json_schema()
    return schema["items"] if schema["type"] == "array" else schema


class TestPipelineShapesOnTheWire:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("shape, fields", PIPELINE_SHAPES, ids=[s.name for s, _ in PIPELINE_SHAPES])
    async def test_schema_has_object_root_and_required_fields(self, shape, fields):
        gateway, seen = _http_gateway(lambda request: httpx.Response(200, json=_completion("{}")))

        # The answer itself is irrelevant; only the request is inspected
        with pytest.raises(InvalidShapeError):
            await gateway.complete("prompt", shape)

        sent = json.loads(seen[0].content)["response_format"]["json_schema"]
        assert sent["name"] == shape.name
        assert sent["schema"]["type"] == "object"
        assert sent["schema"] == shape.to_wire_schema()
        record = _record_schema(shape)
        assert fields <= set(record["properties"])
        assert fields <= set(record["required"])

    def test_heal_fields_are_declared_but_optional(self):
        schema = HEAL_SHAPE.to_wire_schema()

        assert set(schema["properties"]) == {"title", "description", "steps", "expectedOutcome"}
        assert schema["required"] == []
        assert schema["properties"]["description"]["type"] == ["string", "null"]
