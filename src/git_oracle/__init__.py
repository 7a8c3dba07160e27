"""Git Oracle: a live, cached view of a git repository's state.

This package provides the synchronization engine (caching, debounced refresh,
background auto-fetch), the git command layer and output parsers behind it,
and a command-line front end that renders the results.
"""

from . import (
    branches,
    cache,
    cli,
    config,
    constants,
    engine,
    errors,
    git_wrapper,
    models,
    parsers,
    poller,
    scheduling,
)

__all__ = [
    "branches",
    "cache",
    "cli",
    "config",
    "constants",
    "engine",
    "errors",
    "git_wrapper",
    "models",
    "parsers",
    "poller",
    "scheduling",
]
