"""
Domain layer for the Prospect Pipeline.

Holds the repository interfaces the pipeline orchestrator depends on;
implementations live in the ``database`` package.
"""

from .repositories import IProspectStore

__all__ = [
    "IProspectStore",
]
