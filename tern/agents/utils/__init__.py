"""
Utility functions for the agent execution engine.

The agent factory lives in ``tern.agents.utils.agent_factory``; it builds
on the agents and is imported from there.
"""

from .logger import get_logger, set_logger, reset_logger, set_log_level
from .env_utils import get_boolean_env_var, get_google_llm_variant
from .model_name import extract_model_name, is_gemini_model, is_gemini_1_model, is_gemini_2_model
from .callbacks import canonicalize_callbacks, run_callbacks

__all__ = [
    "get_logger",
    "set_logger",
    "reset_logger",
    "set_log_level",
    "get_boolean_env_var",
    "get_google_llm_variant",
    "extract_model_name",
    "is_gemini_model",
    "is_gemini_1_model",
    "is_gemini_2_model",
    "canonicalize_callbacks",
    "run_callbacks",
]
