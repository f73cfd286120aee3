"""Core storage services."""

from tokenvault.services.database import Database
from tokenvault.services.project import ProjectService
from tokenvault.services.settings import SettingsService
from tokenvault.services.token import TokenService

__all__ = [
    "Database",
    "ProjectService",
    "SettingsService",
    "TokenService",
]
