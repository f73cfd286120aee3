"""Transport layers for the TokenVault broker."""

from tokenvault.daemon.transports.http import HttpTransport

__all__ = ["HttpTransport"]
