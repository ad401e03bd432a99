"""
Environment-based configuration helpers.
"""

import os

from ..core.enums import GoogleLLMVariant


def get_boolean_env_var(name: str, default: bool = False) -> bool:
    """Read a boolean flag; "true" (any case) and "1" are true.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset
    """
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1")


def get_google_llm_variant() -> GoogleLLMVariant:
    """Backend selected by GOOGLE_GENAI_USE_VERTEXAI."""
    if get_boolean_env_var("GOOGLE_GENAI_USE_VERTEXAI"):
        return GoogleLLMVariant.VERTEX_AI
    return GoogleLLMVariant.GEMINI_API
