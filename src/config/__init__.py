"""Configuration module for the prospect pipeline."""

from .database import DatabaseSettings, get_database_settings
from .settings import PipelineSettings, SMTPSettings, get_settings, get_smtp_settings

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "PipelineSettings",
    "SMTPSettings",
    "get_settings",
    "get_smtp_settings",
]
