"""
Helpers for recognizing model names.
"""

import re
from typing import Optional

_MODEL_PATH_PATTERNS = (
    re.compile(r"^projects/[^/]+/locations/[^/]+/publishers/[^/]+/models/(?P<name>[^/]+)$"),
    re.compile(r"^projects/[^/]+/locations/[^/]+/endpoints/(?P<name>[^/]+)$"),
    re.compile(r"^models/(?P<name>[^/]+)$"),
)


def extract_model_name(model: str) -> str:
    """Strip resource-path prefixes from a model string."""
    for pattern in _MODEL_PATH_PATTERNS:
        match = pattern.match(model)
        if match:
            return match.group("name")
    return model


def is_gemini_model(model: Optional[str]) -> bool:
    if not model:
        return False
    return extract_model_name(model).startswith("gemini-")


def is_gemini_1_model(model: Optional[str]) -> bool:
    if not model:
        return False
    return re.match(r"^gemini-1\.\d+", extract_model_name(model)) is not None


def is_gemini_2_model(model: Optional[str]) -> bool:
    if not model:
        return False
    return re.match(r"^gemini-2\.\d+", extract_model_name(model)) is not None
