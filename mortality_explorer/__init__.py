"""
Top-level package for the mortality explorer.

This package exposes the state-resolution and data-orchestration engine
behind the explorer. Most code should import from submodules such as:
    mortality_explorer.core
    mortality_explorer.state
    mortality_explorer.services
    mortality_explorer.ui
"""

__all__: list[str] = []
