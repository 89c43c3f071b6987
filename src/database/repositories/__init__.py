"""Repository implementations for the prospect pipeline."""

from .prospect_repository import ProspectRepository, SCHEMA_STATEMENTS

__all__ = [
    "ProspectRepository",
    "SCHEMA_STATEMENTS",
]
