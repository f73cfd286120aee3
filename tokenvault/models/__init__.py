"""Pydantic data models."""

from tokenvault.models.project import Project
from tokenvault.models.settings import BrokerSettings
from tokenvault.models.token import Token

__all__ = ["BrokerSettings", "Project", "Token"]
