"""
Model registry for resolving model strings.

This module provides a centralized registry that maps model-name patterns
to the BaseLlm classes serving them.
"""

import logging
import re
from typing import Dict, List, Optional, Type
from threading import Lock

from ..core.exceptions import UnsupportedError
from ..core.interfaces import BaseLlm

logger = logging.getLogger(__name__)


class LLMRegistry:
    """Registry of model classes keyed by model-name regex.

    A model string resolves to the first registered class with a pattern
    that fully matches it.
    """

    def __init__(self):
        self._registry: Dict[str, Type[BaseLlm]] = {}
        self._lock = Lock()

    def register(self, llm_cls: Type[BaseLlm]) -> None:
        """Register every pattern a model class declares.

        Raises:
            ValueError: If the class declares no patterns
        """
        patterns = llm_cls.supported_models()
        if not patterns:
            raise ValueError(f"{llm_cls.__name__} declares no supported models")

        with self._lock:
            for pattern in patterns:
                existing = self._registry.get(pattern)
                if existing is not None and existing is not llm_cls:
                    logger.warning(
                        f"Overriding model pattern {pattern}: {existing.__name__} -> {llm_cls.__name__}"
                    )
                self._registry[pattern] = llm_cls
        logger.info(f"Registered model class: {llm_cls.__name__} ({len(patterns)} patterns)")

    def unregister(self, llm_cls: Type[BaseLlm]) -> bool:
        """Remove every pattern registered for a class.

        Returns:
            True if any pattern was removed
        """
        with self._lock:
            patterns = [p for p, cls in self._registry.items() if cls is llm_cls]
            for pattern in patterns:
                del self._registry[pattern]
        if patterns:
            logger.info(f"Unregistered model class: {llm_cls.__name__}")
        return bool(patterns)

    def resolve(self, model: str) -> Type[BaseLlm]:
        """Find the class serving a model string.

        Raises:
            UnsupportedError: If no registered pattern matches
        """
        with self._lock:
            for pattern, llm_cls in self._registry.items():
                if re.fullmatch(pattern, model):
                    return llm_cls
        raise UnsupportedError(f"Model {model} not found.", context={"model": model})

    def new_llm(self, model: str) -> BaseLlm:
        """Instantiate the class serving a model string."""
        return self.resolve(model)(model=model)

    def list_patterns(self) -> List[str]:
        with self._lock:
            return list(self._registry.keys())


# Global registry instance
_global_registry: Optional[LLMRegistry] = None
_registry_lock = Lock()


def get_llm_registry() -> LLMRegistry:
    """Get the global model registry, with the Google models registered.

    Returns:
        The global LLMRegistry instance
    """
    global _global_registry

    if _global_registry is None:
        with _registry_lock:
            if _global_registry is None:
                from ..llm.apigee_llm import ApigeeLlm
                from ..llm.google_llm import Gemini

                registry = LLMRegistry()
                registry.register(Gemini)
                registry.register(ApigeeLlm)
                _global_registry = registry

    return _global_registry
