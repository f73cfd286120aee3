"""Typed broker settings."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SERVER_PORT = 9999


class BrokerSettings(BaseModel):
    """Application settings, validated once when loaded.

    The camel-case aliases match the keys used by the desktop shell.
    """

    server_port: int = Field(default=DEFAULT_SERVER_PORT, ge=1, le=65535, alias="serverPort")
    minimize_to_tray: bool = Field(default=True, alias="minimizeToTray")
    start_with_windows: bool = Field(default=False, alias="startWithWindows")
    auto_start_server: bool = Field(default=True, alias="autoStartServer")
    database_path: Path | None = Field(default=None, alias="databasePath")

    model_config = ConfigDict(populate_by_name=True, extra="forbid", validate_assignment=True)
