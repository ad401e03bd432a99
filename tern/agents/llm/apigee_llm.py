"""
Gemini models reached through an Apigee proxy.

Model strings take the form ``apigee/[<provider>/][<version>/]<model_id>``
where provider is ``vertex_ai`` or ``gemini`` and version starts with ``v``,
for example ``apigee/gemini-2.5-flash`` or
``apigee/vertex_ai/v1beta/gemini-2.5-flash``.
"""

import logging
import os
from contextlib import asynccontextmanager
from functools import cached_property
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional

from google.genai import types

from .google_llm import Gemini, resolve_gemini_credentials
from ..core.exceptions import ConfigurationError, UnsupportedError
from ..core.interfaces import BaseLlmConnection
from ..core.models import LlmRequest, LlmResponse

logger = logging.getLogger(__name__)

APIGEE_PROXY_URL_ENV_VARIABLE_NAME = "APIGEE_PROXY_URL"

_APIGEE_PREFIX = "apigee/"
_VALID_PROVIDERS = ("vertex_ai", "gemini")


def validate_apigee_model(model: str) -> bool:
    """Check an Apigee model string against the accepted layouts."""
    if not model.startswith(_APIGEE_PREFIX):
        return False
    model_part = model[len(_APIGEE_PREFIX):]
    if not model_part:
        return False
    components = model_part.split("/")
    if not components[-1]:
        return False

    if len(components) == 1:
        return True
    if len(components) == 2:
        return components[0] in _VALID_PROVIDERS or components[0].startswith("v")
    if len(components) == 3:
        return components[0] in _VALID_PROVIDERS and components[1].startswith("v")
    return False


def _invalid_model_error(model: str) -> UnsupportedError:
    return UnsupportedError(
        f"Model {model} is not a valid Apigee model, "
        f"expected apigee/[<provider>/][<version>/]<model_id>",
        context={"model": model}
    )


def get_apigee_model_id(model: str) -> str:
    """Extract the model id, e.g. ``gemini-2.5-flash`` from ``apigee/v1/gemini-2.5-flash``.

    Raises:
        UnsupportedError: If the model string is not a valid Apigee model
    """
    if not validate_apigee_model(model):
        raise _invalid_model_error(model)
    return model.split("/")[-1]


class ApigeeLlm(Gemini):
    """Gemini served through an Apigee proxy URL."""

    def __init__(
        self,
        model: str,
        proxy_url: Optional[str] = None,
        api_key: Optional[str] = None,
        vertexai: Optional[bool] = None,
        project: Optional[str] = None,
        location: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        """
        Args:
            model: Apigee model string
            proxy_url: Proxy base URL, defaults to ``APIGEE_PROXY_URL``
            api_key: API key, a fake key is used for Gemini when none is found

        Raises:
            UnsupportedError: On an invalid model string
            ConfigurationError: On missing Vertex AI settings or proxy URL
        """
        if not validate_apigee_model(model):
            raise _invalid_model_error(model)

        credentials = resolve_gemini_credentials(
            api_key,
            bool(vertexai) or model.startswith(f"{_APIGEE_PREFIX}vertex_ai/"),
            project,
            location
        )
        if not credentials["vertexai"] and not credentials["api_key"]:
            logger.warning('No API key provided when using a Gemini model, using a fake key "-".')
            credentials["api_key"] = "-"

        super().__init__(
            model=model,
            api_key=credentials["api_key"],
            vertexai=credentials["vertexai"],
            project=credentials["project"],
            location=credentials["location"],
            headers=headers
        )

        self.proxy_url = proxy_url or os.environ.get(APIGEE_PROXY_URL_ENV_VARIABLE_NAME, "")
        if not self.proxy_url:
            raise ConfigurationError(
                f"Proxy URL must be provided via the constructor or "
                f"{APIGEE_PROXY_URL_ENV_VARIABLE_NAME} environment variable."
            )

    @classmethod
    def supported_models(cls) -> List[str]:
        return [r"apigee\/.*"]

    def _http_options(self) -> types.HttpOptions:
        options = super()._http_options()
        options.base_url = self.proxy_url
        return options

    def _live_http_options(self) -> types.HttpOptions:
        options = super()._live_http_options()
        options.base_url = self.proxy_url
        return options

    @cached_property
    def live_api_version(self) -> str:
        components = self.model[len(_APIGEE_PREFIX):].split("/")
        if len(components) == 3:
            return components[1]
        if len(components) == 2 and components[0] not in _VALID_PROVIDERS and components[0].startswith("v"):
            return components[0]
        return "v1beta1" if self.vertexai else "v1alpha"

    async def generate_content_async(
        self,
        llm_request: LlmRequest,
        stream: bool = False
    ) -> AsyncGenerator[LlmResponse, None]:
        llm_request.model = get_apigee_model_id(llm_request.model or self.model)
        async for llm_response in super().generate_content_async(llm_request, stream):
            yield llm_response

    @asynccontextmanager
    async def connect(self, llm_request: LlmRequest) -> AsyncIterator[BaseLlmConnection]:
        llm_request.model = get_apigee_model_id(llm_request.model or self.model)
        async with super().connect(llm_request) as connection:
            yield connection
