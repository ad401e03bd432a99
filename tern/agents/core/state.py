"""
Scoped key/value state and delta merging.

Keys are classified by prefix (``app:``, ``user:``, ``temp:``, or none for
session scope). Deltas are flat mappings merged shallowly, later keys win.
"""

from typing import Any, Dict, Iterator, Mapping, Optional

from .enums import StateScope


class State:
    """A state view that tracks pending changes.

    Reads consult the pending delta before the committed value. Writes only
    touch the delta; committed state changes when the session service
    appends the event carrying that delta.
    """

    APP_PREFIX = "app:"
    USER_PREFIX = "user:"
    TEMP_PREFIX = "temp:"

    def __init__(self, value: Dict[str, Any], delta: Dict[str, Any]):
        """
        Args:
            value: The committed state, read only through this view.
            delta: The pending delta, shared with the owner's EventActions.
        """
        self._value = value
        self._delta = delta

    def __getitem__(self, key: str) -> Any:
        if key in self._delta:
            return self._delta[key]
        return self._value[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._delta[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._delta or key in self._value

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __len__(self) -> int:
        return len(self.to_dict())

    def __repr__(self) -> str:
        return f"State({self.to_dict()!r})"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for key, or default if absent."""
        if key not in self:
            return default
        return self[key]

    def update(self, delta: Mapping[str, Any]) -> None:
        """Record every key of delta as a pending change."""
        self._delta.update(delta)

    def has_delta(self) -> bool:
        """Whether any change is pending."""
        return bool(self._delta)

    def to_dict(self) -> Dict[str, Any]:
        """Committed state with the pending delta merged over it."""
        return merge_state(self._value, self._delta)


def scope_of(key: str) -> StateScope:
    """Classify a state key by its prefix."""
    if key.startswith(State.APP_PREFIX):
        return StateScope.APP
    if key.startswith(State.USER_PREFIX):
        return StateScope.USER
    if key.startswith(State.TEMP_PREFIX):
        return StateScope.TEMP
    return StateScope.SESSION


def merge_state(
    base: Mapping[str, Any],
    delta: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Return a new mapping of base with every key in delta overwritten.

    The merge is shallow: nested values are replaced, never combined.
    """
    merged = dict(base)
    if delta:
        merged.update(delta)
    return merged


def strip_temp(delta: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop temp-scoped keys from a delta."""
    if not delta:
        return {}
    return {
        key: value for key, value in delta.items()
        if scope_of(key) != StateScope.TEMP
    }


def extract_scoped(
    state: Optional[Mapping[str, Any]],
    scope: StateScope
) -> Dict[str, Any]:
    """Select the keys of state that belong to one scope."""
    if not state:
        return {}
    return {key: value for key, value in state.items() if scope_of(key) == scope}
