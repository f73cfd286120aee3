"""TokenVault - a local token broker for API development."""

__version__ = "2.0.0"
