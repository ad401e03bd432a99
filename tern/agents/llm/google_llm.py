"""
Gemini models served through google-genai.

Credentials come from the constructor or the environment:
``GOOGLE_GENAI_API_KEY`` / ``GEMINI_API_KEY`` for the Gemini API, or
``GOOGLE_GENAI_USE_VERTEXAI`` with ``GOOGLE_CLOUD_PROJECT`` and
``GOOGLE_CLOUD_LOCATION`` for Vertex AI. Missing credentials fail at
construction.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from functools import cached_property
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional

from google import genai
from google.genai import types

from .gemini_connection import GeminiLlmConnection
from ..core.enums import GoogleLLMVariant
from ..core.exceptions import ConfigurationError
from ..core.interfaces import BaseLlm, BaseLlmConnection
from ..core.models import LlmRequest, LlmResponse
from ..utils.env_utils import get_boolean_env_var

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

_CONTINUE_PROMPT = (
    "Continue processing previous requests as instructed. "
    "Exit or provide a summary if no more outputs are needed."
)


def _tracking_headers() -> Dict[str, str]:
    from ... import __version__

    python_version = f"{sys.version_info.major}.{sys.version_info.minor}"
    label = f"tern-agents/{__version__} gl-python/{python_version}"
    return {"x-goog-api-client": label, "user-agent": label}


def resolve_gemini_credentials(
    api_key: Optional[str] = None,
    vertexai: Optional[bool] = None,
    project: Optional[str] = None,
    location: Optional[str] = None
) -> Dict[str, Optional[object]]:
    """Fill in Gemini credentials from the environment.

    Raises:
        ConfigurationError: If Vertex AI is selected without project or location
    """
    use_vertexai = bool(vertexai) or get_boolean_env_var("GOOGLE_GENAI_USE_VERTEXAI")
    if use_vertexai:
        project = project or os.environ.get("GOOGLE_CLOUD_PROJECT")
        location = location or os.environ.get("GOOGLE_CLOUD_LOCATION")
        if not project:
            raise ConfigurationError(
                "VertexAI project must be provided via constructor or "
                "GOOGLE_CLOUD_PROJECT environment variable."
            )
        if not location:
            raise ConfigurationError(
                "VertexAI location must be provided via constructor or "
                "GOOGLE_CLOUD_LOCATION environment variable."
            )
    else:
        api_key = (
            api_key
            or os.environ.get("GOOGLE_GENAI_API_KEY")
            or os.environ.get("GEMINI_API_KEY")
        )
    return {
        "api_key": api_key,
        "vertexai": use_vertexai,
        "project": project,
        "location": location,
    }


class Gemini(BaseLlm):
    """Gemini models on the Gemini API or Vertex AI."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        vertexai: Optional[bool] = None,
        project: Optional[str] = None,
        location: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        """
        Raises:
            ConfigurationError: If no usable credentials are configured
        """
        super().__init__(model or DEFAULT_GEMINI_MODEL)
        credentials = resolve_gemini_credentials(api_key, vertexai, project, location)
        if not credentials["vertexai"] and not credentials["api_key"]:
            raise ConfigurationError(
                "API key must be provided via constructor or GOOGLE_GENAI_API_KEY "
                "or GEMINI_API_KEY environment variable."
            )
        self._api_key = credentials["api_key"]
        self.vertexai = bool(credentials["vertexai"])
        self._project = credentials["project"]
        self._location = credentials["location"]
        self._headers = headers or {}

    @classmethod
    def supported_models(cls) -> List[str]:
        return [
            r"gemini-.*",
            # fine-tuned vertex endpoint
            r"projects\/.+\/locations\/.+\/endpoints\/.+",
            # vertex gemini long name
            r"projects\/.+\/locations\/.+\/publishers\/google\/models\/gemini.+",
        ]

    def _http_options(self) -> types.HttpOptions:
        return types.HttpOptions(headers={**_tracking_headers(), **self._headers})

    def _live_http_options(self) -> types.HttpOptions:
        return types.HttpOptions(headers=_tracking_headers(), api_version=self.live_api_version)

    def _new_client(self, http_options: types.HttpOptions) -> genai.Client:
        if self.vertexai:
            return genai.Client(
                vertexai=True,
                project=self._project,
                location=self._location,
                http_options=http_options
            )
        return genai.Client(api_key=self._api_key, http_options=http_options)

    @cached_property
    def api_client(self) -> genai.Client:
        return self._new_client(self._http_options())

    @cached_property
    def live_api_client(self) -> genai.Client:
        return self._new_client(self._live_http_options())

    @property
    def api_backend(self) -> GoogleLLMVariant:
        return GoogleLLMVariant.VERTEX_AI if self.vertexai else GoogleLLMVariant.GEMINI_API

    @property
    def live_api_version(self) -> str:
        return "v1beta1" if self.api_backend == GoogleLLMVariant.VERTEX_AI else "v1alpha"

    async def generate_content_async(
        self,
        llm_request: LlmRequest,
        stream: bool = False
    ) -> AsyncGenerator[LlmResponse, None]:
        self._preprocess_request(llm_request)
        self._maybe_append_user_content(llm_request)
        model = llm_request.model or self.model
        logger.info(
            f"Sending out request, model: {model}, backend: {self.api_backend}, stream: {stream}"
        )

        if not stream:
            response = await self.api_client.aio.models.generate_content(
                model=model,
                contents=llm_request.contents,
                config=llm_request.config
            )
            yield LlmResponse.create(response)
            return

        responses = await self.api_client.aio.models.generate_content_stream(
            model=model,
            contents=llm_request.contents,
            config=llm_request.config
        )
        thought_text = ""
        text = ""
        usage_metadata = None
        last_response: Optional[types.GenerateContentResponse] = None
        async for response in responses:
            last_response = response
            llm_response = LlmResponse.create(response)
            usage_metadata = llm_response.usage_metadata
            first_part = (
                llm_response.content.parts[0]
                if llm_response.content and llm_response.content.parts else None
            )
            if first_part is not None and first_part.text:
                if first_part.thought:
                    thought_text += first_part.text
                else:
                    text += first_part.text
                llm_response.partial = True
            elif (thought_text or text) and (first_part is None or not first_part.inline_data):
                yield self._aggregated_response(thought_text, text, usage_metadata)
                thought_text = ""
                text = ""
            yield llm_response

        if (
            (text or thought_text)
            and last_response is not None
            and last_response.candidates
            and last_response.candidates[0].finish_reason == types.FinishReason.STOP
        ):
            yield self._aggregated_response(thought_text, text, usage_metadata)

    @staticmethod
    def _aggregated_response(thought_text: str, text: str, usage_metadata) -> LlmResponse:
        parts = []
        if thought_text:
            parts.append(types.Part(text=thought_text, thought=True))
        if text:
            parts.append(types.Part(text=text))
        return LlmResponse(
            content=types.Content(role="model", parts=parts),
            usage_metadata=usage_metadata
        )

    @asynccontextmanager
    async def connect(self, llm_request: LlmRequest) -> AsyncIterator[BaseLlmConnection]:
        live_config = llm_request.live_connect_config
        if llm_request.config.system_instruction:
            live_config.system_instruction = types.Content(
                role="system",
                parts=[types.Part(text=str(llm_request.config.system_instruction))]
            )
        live_config.tools = llm_request.config.tools

        model = llm_request.model or self.model
        logger.info(f"Connecting to live model: {model}, backend: {self.api_backend}")
        async with self.live_api_client.aio.live.connect(model=model, config=live_config) as session:
            connection = GeminiLlmConnection(session)
            yield connection

    def _preprocess_request(self, llm_request: LlmRequest) -> None:
        if self.api_backend != GoogleLLMVariant.GEMINI_API:
            return
        # The Gemini API rejects labels and display names.
        llm_request.config.labels = None
        for content in llm_request.contents:
            for part in content.parts or []:
                if part.inline_data and part.inline_data.display_name:
                    part.inline_data.display_name = None
                if part.file_data and part.file_data.display_name:
                    part.file_data.display_name = None

    @staticmethod
    def _maybe_append_user_content(llm_request: LlmRequest) -> None:
        if not llm_request.contents or llm_request.contents[-1].role != "user":
            llm_request.contents.append(
                types.Content(role="user", parts=[types.Part(text=_CONTINUE_PROMPT)])
            )
