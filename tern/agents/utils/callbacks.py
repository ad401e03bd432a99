"""
Helpers for user-supplied callbacks.

Agent, model and tool callbacks may be given as a single callable or a
list, and each callable may be sync or async.
"""

import inspect
from typing import Any, Callable, List, Optional, Sequence, Union

CallbackOrList = Optional[Union[Callable[..., Any], Sequence[Callable[..., Any]]]]


def canonicalize_callbacks(callbacks: CallbackOrList) -> List[Callable[..., Any]]:
    """Normalize a callback or a list of callbacks to a list."""
    if callbacks is None:
        return []
    if callable(callbacks):
        return [callbacks]
    return list(callbacks)


async def run_callbacks(callbacks: CallbackOrList, **kwargs: Any) -> Any:
    """Call callbacks in order and return the first non-None result."""
    for callback in canonicalize_callbacks(callbacks):
        result = callback(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            return result
    return None
