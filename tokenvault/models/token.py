"""Token model for TokenVault."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tokenvault.utils.dates import utc_now

DEFAULT_TOKEN_TYPE = "Bearer"

# Values at or below this length are masked completely
MASK_THRESHOLD = 20
MASK_VISIBLE_CHARS = 10


class Token(BaseModel):
    """The current credential stored for a project."""

    id: int = Field(default=0)
    project_id: int = Field(alias="projectId")
    project_name: str | None = Field(default=None, alias="projectName")
    token_value: str = Field(alias="tokenValue")
    token_type: str = Field(default=DEFAULT_TOKEN_TYPE, alias="tokenType")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_expired(self) -> bool:
        """Check if the token has a known expiry that is in the past."""
        return self.expires_at is not None and self.expires_at < utc_now()

    @property
    def masked_value(self) -> str:
        """Get a display-safe version of the token value.

        Short values are fully masked; longer ones keep the first and
        last ten characters.
        """
        value = self.token_value
        if not value:
            return ""
        if len(value) <= MASK_THRESHOLD:
            return "*" * len(value)
        return f"{value[:MASK_VISIBLE_CHARS]}...{value[-MASK_VISIBLE_CHARS:]}"
