from __future__ import annotations

import logging
from typing import Any, Callable, FrozenSet, List, Optional, Tuple

from .resolver import ResolvedState, StateResolver

logger = logging.getLogger(__name__)

Listener = Callable[[ResolvedState, ResolvedState, FrozenSet[str]], None]


def changed_fields(old: ResolvedState, new: ResolvedState) -> FrozenSet[str]:
    names = set(old.values) | set(new.values)
    return frozenset(n for n in names if old.values.get(n) != new.values.get(n))


class StateStore:
    """
    Holds the single current ResolvedState.

    The snapshot is replaced wholesale by apply_resolved_state, so readers
    never observe a partially applied resolution. Listeners are called once
    per commit with (old, new, changed_fields).
    """

    def __init__(self, resolver: Optional[StateResolver] = None, initial: Optional[ResolvedState] = None):
        self.resolver = resolver or StateResolver()
        self._state: ResolvedState = initial or self.resolver.resolve_initial(None)
        self._revision = 0
        self._listeners: List[Listener] = []

    @property
    def state(self) -> ResolvedState:
        return self._state

    @property
    def revision(self) -> int:
        """Incremented on every commit that changed something."""
        return self._revision

    @property
    def view(self) -> str:
        return self._state.view

    def get(self, name: str, default: Any = None) -> Any:
        return self._state.get(name, default)

    def is_user_set(self, name: str) -> bool:
        return self._state.is_user_set(name)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply_resolved_state(self, resolved: ResolvedState) -> FrozenSet[str]:
        """
        Commit `resolved` atomically. Returns the names of fields whose
        value changed (view and override-only changes commit too, with an
        empty or partial set).
        """
        old = self._state
        changed = changed_fields(old, resolved)
        if not changed and old.view == resolved.view and old.user_overrides == resolved.user_overrides:
            return changed

        self._state = resolved
        self._revision += 1
        logger.debug(
            "Committed explorer state",
            extra={"revision": self._revision, "view": resolved.view, "changed": sorted(changed)},
        )
        for listener in list(self._listeners):
            listener(old, resolved, changed)
        return changed

    def to_query(self) -> List[Tuple[str, str]]:
        return self.resolver.to_query_pairs(self._state)

    def query_string(self) -> str:
        return self.resolver.to_query_string(self._state)
