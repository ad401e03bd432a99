"""
Tests for the Gemini and Apigee models and the Gemini live connection.

The google-genai client is replaced with mocks; no request leaves the
process.
"""

import os
from contextlib import asynccontextmanager

import pytest
from unittest.mock import AsyncMock, Mock, patch
from google.genai import types

from tern.agents.core.enums import GoogleLLMVariant
from tern.agents.core.exceptions import ConfigurationError, UnsupportedError
from tern.agents.core.models import LlmRequest
from tern.agents.llm.apigee_llm import ApigeeLlm, get_apigee_model_id, validate_apigee_model
from tern.agents.llm.gemini_connection import GeminiLlmConnection
from tern.agents.llm.google_llm import DEFAULT_GEMINI_MODEL, Gemini, _tracking_headers

from conftest import collect, user_content

API_KEY_ENV = {"GOOGLE_GENAI_API_KEY": "test-key"}
VERTEX_ENV = {
    "GOOGLE_GENAI_USE_VERTEXAI": "true",
    "GOOGLE_CLOUD_PROJECT": "test-project",
    "GOOGLE_CLOUD_LOCATION": "us-central1",
}


def _response(text: str, finish_reason=None) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(candidates=[
        types.Candidate(
            content=types.Content(role="model", parts=[types.Part(text=text)]),
            finish_reason=finish_reason
        )
    ])


async def _aiter(items):
    for item in items:
        yield item


class TestGeminiCredentials:
    """Test cases for Gemini credential resolution."""

    def test_missing_api_key(self):
        """Test that a missing API key fails at construction."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match="API key must be provided"):
                Gemini()

    def test_api_key_from_env(self):
        """Test reading the API key from the environment."""
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            gemini = Gemini()

        assert gemini.model == DEFAULT_GEMINI_MODEL
        assert gemini.api_backend == GoogleLLMVariant.GEMINI_API
        assert gemini.live_api_version == "v1alpha"

    def test_gemini_api_key_fallback(self):
        """Test that GEMINI_API_KEY is accepted."""
        with patch.dict(os.environ, {"GEMINI_API_KEY": "other"}, clear=True):
            gemini = Gemini(model="gemini-2.0-flash")

        assert gemini.model == "gemini-2.0-flash"
        assert gemini._api_key == "other"

    def test_constructor_key_wins(self):
        """Test that an explicit key overrides the environment."""
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            gemini = Gemini(api_key="explicit")

        assert gemini._api_key == "explicit"

    def test_vertex_from_env(self):
        """Test selecting Vertex AI through the environment."""
        with patch.dict(os.environ, VERTEX_ENV, clear=True):
            gemini = Gemini()

        assert gemini.api_backend == GoogleLLMVariant.VERTEX_AI
        assert gemini.live_api_version == "v1beta1"

    def test_vertex_missing_project(self):
        """Test that Vertex AI requires a project."""
        env = {"GOOGLE_GENAI_USE_VERTEXAI": "1", "GOOGLE_CLOUD_LOCATION": "us-central1"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError, match="GOOGLE_CLOUD_PROJECT"):
                Gemini()

    def test_vertex_missing_location(self):
        """Test that Vertex AI requires a location."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match="GOOGLE_CLOUD_LOCATION"):
                Gemini(vertexai=True, project="p")

    def test_supported_models(self):
        """Test the model-name patterns Gemini serves."""
        patterns = Gemini.supported_models()

        assert r"gemini-.*" in patterns
        assert len(patterns) == 3


class TestGeminiClient:
    """Test cases for client construction and headers."""

    def test_tracking_headers(self):
        """Test that requests identify the library."""
        from tern import __version__

        headers = _tracking_headers()

        assert headers["x-goog-api-client"].startswith(f"tern-agents/{__version__} gl-python/")
        assert headers["user-agent"] == headers["x-goog-api-client"]

    def test_custom_headers_merged(self):
        """Test that caller headers are added to the tracking headers."""
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            gemini = Gemini(headers={"x-custom": "1"})

        headers = gemini._http_options().headers

        assert headers["x-custom"] == "1"
        assert "x-goog-api-client" in headers

    def test_api_client_cached(self):
        """Test that the client is built once with the resolved credentials."""
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            gemini = Gemini()

        with patch("tern.agents.llm.google_llm.genai.Client") as client_cls:
            first = gemini.api_client
            second = gemini.api_client

        assert first is second
        client_cls.assert_called_once()
        assert client_cls.call_args.kwargs["api_key"] == "test-key"

    def test_vertex_client(self):
        """Test that Vertex AI clients carry project and location."""
        with patch.dict(os.environ, VERTEX_ENV, clear=True):
            gemini = Gemini()

        with patch("tern.agents.llm.google_llm.genai.Client") as client_cls:
            gemini.api_client

        kwargs = client_cls.call_args.kwargs
        assert kwargs["vertexai"] is True
        assert kwargs["project"] == "test-project"
        assert kwargs["location"] == "us-central1"


class TestGeminiGenerate:
    """Test cases for Gemini.generate_content_async."""

    @pytest.fixture
    def gemini(self):
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            gemini = Gemini()
        gemini.api_client = Mock()
        return gemini

    @pytest.mark.asyncio
    async def test_non_streaming(self, gemini):
        """Test a single complete response."""
        gemini.api_client.aio.models.generate_content = AsyncMock(return_value=_response("Hi"))
        request = LlmRequest(model="gemini-2.5-flash", contents=[user_content("Hello")])

        responses = await collect(gemini.generate_content_async(request))

        assert [r.content.parts[0].text for r in responses] == ["Hi"]
        kwargs = gemini.api_client.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_streaming_aggregates_text(self, gemini):
        """Test that streamed chunks are partial and followed by the full text."""
        gemini.api_client.aio.models.generate_content_stream = AsyncMock(return_value=_aiter([
            _response("Hel"),
            _response("lo", finish_reason=types.FinishReason.STOP),
        ]))
        request = LlmRequest(model="gemini-2.5-flash", contents=[user_content("Hello")])

        responses = await collect(gemini.generate_content_async(request, stream=True))

        assert [r.partial for r in responses] == [True, True, None]
        assert responses[-1].content.parts[0].text == "Hello"

    @pytest.mark.asyncio
    async def test_request_preprocessing(self, gemini):
        """Test that Gemini API requests drop labels and end with a user turn."""
        gemini.api_client.aio.models.generate_content = AsyncMock(return_value=_response("ok"))
        request = LlmRequest(
            model="gemini-2.5-flash",
            contents=[types.Content(role="model", parts=[types.Part(text="earlier")])],
            config=types.GenerateContentConfig(labels={"team": "a"})
        )

        await collect(gemini.generate_content_async(request))

        assert request.config.labels is None
        assert request.contents[-1].role == "user"
        assert request.contents[-1].parts[0].text.startswith("Continue processing")

    @pytest.mark.asyncio
    async def test_connect(self, gemini):
        """Test that connect opens a live session with the request's config."""
        session = Mock()

        @asynccontextmanager
        async def fake_connect(model, config):
            yield session

        gemini.live_api_client = Mock()
        gemini.live_api_client.aio.live.connect = Mock(side_effect=fake_connect)
        request = LlmRequest(model="gemini-2.5-flash")
        request.append_instructions(["Be brief."])

        async with gemini.connect(request) as connection:
            assert isinstance(connection, GeminiLlmConnection)

        kwargs = gemini.live_api_client.aio.live.connect.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["config"].system_instruction.parts[0].text == "Be brief."


class TestApigeeModel:
    """Test cases for Apigee model strings."""

    @pytest.mark.parametrize("model", [
        "apigee/gemini-2.5-flash",
        "apigee/v1/gemini-2.5-flash",
        "apigee/vertex_ai/gemini-2.5-flash",
        "apigee/gemini/v1beta/gemini-2.5-flash",
    ])
    def test_valid_models(self, model):
        """Test accepted layouts."""
        assert validate_apigee_model(model)

    @pytest.mark.parametrize("model", [
        "gemini-2.5-flash",
        "apigee/",
        "apigee/gemini/",
        "apigee/openai/gpt",
        "apigee/gemini/beta/model",
        "apigee/gemini/v1/extra/model",
    ])
    def test_invalid_models(self, model):
        """Test rejected layouts."""
        assert not validate_apigee_model(model)

    def test_model_id(self):
        """Test extracting the model id."""
        assert get_apigee_model_id("apigee/vertex_ai/v1beta/gemini-2.5-flash") == "gemini-2.5-flash"
        with pytest.raises(UnsupportedError):
            get_apigee_model_id("gemini-2.5-flash")


class TestApigeeLlm:
    """Test cases for ApigeeLlm."""

    def test_invalid_model(self):
        """Test that an invalid model string is unsupported."""
        with patch.dict(os.environ, {"APIGEE_PROXY_URL": "https://proxy"}, clear=True):
            with pytest.raises(UnsupportedError):
                ApigeeLlm(model="apigee/openai/gpt")

    def test_missing_proxy_url(self):
        """Test that a proxy URL is required."""
        with patch.dict(os.environ, API_KEY_ENV, clear=True):
            with pytest.raises(ConfigurationError, match="Proxy URL must be provided"):
                ApigeeLlm(model="apigee/gemini-2.5-flash")

    def test_fake_key_and_proxy_from_env(self):
        """Test the fake key used without credentials and the env proxy URL."""
        with patch.dict(os.environ, {"APIGEE_PROXY_URL": "https://proxy"}, clear=True):
            llm = ApigeeLlm(model="apigee/gemini-2.5-flash")

        assert llm._api_key == "-"
        assert llm.proxy_url == "https://proxy"
        assert llm._http_options().base_url == "https://proxy"
        assert llm.live_api_version == "v1alpha"

    def test_vertex_prefix_forces_vertex(self):
        """Test that a vertex_ai model uses Vertex AI settings."""
        env = {
            "APIGEE_PROXY_URL": "https://proxy",
            "GOOGLE_CLOUD_PROJECT": "p",
            "GOOGLE_CLOUD_LOCATION": "l",
        }
        with patch.dict(os.environ, env, clear=True):
            llm = ApigeeLlm(model="apigee/vertex_ai/gemini-2.5-flash")

        assert llm.api_backend == GoogleLLMVariant.VERTEX_AI
        assert llm.live_api_version == "v1beta1"

    def test_vertex_prefix_requires_project(self):
        """Test that Vertex AI settings are required for vertex_ai models."""
        with patch.dict(os.environ, {"APIGEE_PROXY_URL": "https://proxy"}, clear=True):
            with pytest.raises(ConfigurationError):
                ApigeeLlm(model="apigee/vertex_ai/gemini-2.5-flash")

    @pytest.mark.parametrize("model,version", [
        ("apigee/gemini/v1/gemini-2.5-flash", "v1"),
        ("apigee/v1beta/gemini-2.5-flash", "v1beta"),
    ])
    def test_live_api_version_from_model(self, model, version):
        """Test that an explicit version in the model string wins."""
        with patch.dict(os.environ, {}, clear=True):
            llm = ApigeeLlm(model=model, proxy_url="https://proxy", api_key="k")

        assert llm.live_api_version == version

    @pytest.mark.asyncio
    async def test_generate_uses_model_id(self):
        """Test that requests are sent with the bare model id."""
        with patch.dict(os.environ, {}, clear=True):
            llm = ApigeeLlm(model="apigee/gemini-2.5-flash", proxy_url="https://proxy", api_key="k")
        llm.api_client = Mock()
        llm.api_client.aio.models.generate_content = AsyncMock(return_value=_response("ok"))
        request = LlmRequest(model="apigee/gemini-2.5-flash", contents=[user_content("Hi")])

        await collect(llm.generate_content_async(request))

        assert request.model == "gemini-2.5-flash"
        assert llm.api_client.aio.models.generate_content.call_args.kwargs["model"] == "gemini-2.5-flash"


class TestGeminiLlmConnection:
    """Test cases for GeminiLlmConnection."""

    @pytest.fixture
    def session(self):
        session = Mock()
        session.send_client_content = AsyncMock()
        session.send_tool_response = AsyncMock()
        session.send_realtime_input = AsyncMock()
        session.close = AsyncMock()
        return session

    @pytest.mark.asyncio
    async def test_send_history(self, session):
        """Test that history is sent and completes the turn after a user message."""
        connection = GeminiLlmConnection(session)
        history = [user_content("Hi"), types.Content(role="model", parts=[])]

        await connection.send_history(history)

        kwargs = session.send_client_content.call_args.kwargs
        assert len(kwargs["turns"]) == 1
        assert kwargs["turn_complete"] is True

    @pytest.mark.asyncio
    async def test_send_empty_history(self, session):
        """Test that empty history is not sent."""
        await GeminiLlmConnection(session).send_history([])

        session.send_client_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_function_response(self, session):
        """Test that function responses use the tool response channel."""
        response = types.FunctionResponse(name="f", response={"ok": True})
        content = types.Content(role="user", parts=[types.Part(function_response=response)])

        await GeminiLlmConnection(session).send_content(content)

        session.send_tool_response.assert_awaited_once_with(function_responses=[response])

    @pytest.mark.asyncio
    async def test_send_text_and_realtime(self, session):
        """Test sending user text and realtime blobs."""
        connection = GeminiLlmConnection(session)
        blob = types.Blob(data=b"\x00\x01", mime_type="audio/pcm")

        await connection.send_content(user_content("Hi"))
        await connection.send_realtime(blob)
        await connection.close()

        session.send_client_content.assert_awaited_once()
        session.send_realtime_input.assert_awaited_once_with(media=blob)
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_receive(self, session):
        """Test that text chunks are aggregated when the turn completes."""

        def text_message(text):
            return types.LiveServerMessage(server_content=types.LiveServerContent(
                model_turn=types.Content(role="model", parts=[types.Part(text=text)])
            ))

        session.receive = Mock(return_value=_aiter([
            text_message("Hi "),
            text_message("there"),
            types.LiveServerMessage(server_content=types.LiveServerContent(turn_complete=True)),
        ]))

        responses = await collect(GeminiLlmConnection(session).receive())

        assert [r.partial for r in responses[:2]] == [True, True]
        assert responses[2].content.parts[0].text == "Hi there"
        assert responses[3].turn_complete is True

    @pytest.mark.asyncio
    async def test_receive_tool_call(self, session):
        """Test that tool calls become function call responses."""
        call = types.FunctionCall(name="lookup", args={"q": "x"})
        session.receive = Mock(return_value=_aiter([
            types.LiveServerMessage(tool_call=types.LiveServerToolCall(function_calls=[call])),
        ]))

        responses = await collect(GeminiLlmConnection(session).receive())

        assert responses[0].content.parts[0].function_call.name == "lookup"
