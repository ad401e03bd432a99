"""
Models and the flow that drives them.
"""

from .google_llm import Gemini, DEFAULT_GEMINI_MODEL
from .apigee_llm import ApigeeLlm
from .gemini_connection import GeminiLlmConnection
from .flow import LlmFlow

__all__ = [
    "Gemini",
    "DEFAULT_GEMINI_MODEL",
    "ApigeeLlm",
    "GeminiLlmConnection",
    "LlmFlow",
]
