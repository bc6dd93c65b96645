"""
Explorer state: field encoding, views and their constraints, resolution of
queries and edits into immutable snapshots, and the store that holds the
current snapshot.
"""

from .resolver import ResolvedState, StateChange, StateResolver
from .store import StateStore
from .views import VIEWS, ViewDefinition, ViewRegistry, detect_view, view_defaults

__all__ = [
    "ResolvedState",
    "StateChange",
    "StateResolver",
    "StateStore",
    "VIEWS",
    "ViewDefinition",
    "ViewRegistry",
    "detect_view",
    "view_defaults",
]
