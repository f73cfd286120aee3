"""Project model for TokenVault."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tokenvault.utils.dates import utc_now


class Project(BaseModel):
    """A local backend application the broker keeps a token for."""

    id: int = Field(default=0, description="Store-assigned row id")
    name: str = Field(min_length=1, description="Unique name, compared case-insensitively")
    port: int = Field(default=0, ge=0, description="Local port the backend runs on, 0 if unknown")
    api_base_url: str | None = Field(default=None, alias="apiBaseUrl")
    description: str | None = Field(default=None)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_auto_provisioned(self) -> bool:
        """Whether the project was created implicitly by a token push."""
        return self.port == 0

    def public_dict(self) -> dict[str, Any]:
        """Fields that are safe to expose over the wire (never tokens)."""
        return {
            "name": self.name,
            "port": self.port,
            "apiBaseUrl": self.api_base_url,
            "description": self.description,
        }
