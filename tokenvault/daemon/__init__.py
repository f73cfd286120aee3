"""TokenVault broker - the local service that holds one token per project.

Backends push tokens to it after logging in; API clients fetch them by
project name. It listens on loopback only.
"""

from tokenvault.daemon.events import (
    NotificationChannel,
    StatusChanged,
    Subscription,
    TokenReceived,
)
from tokenvault.daemon.handlers import HandlerContext, dispatch_request
from tokenvault.daemon.protocol import BrokerResponse, StoreTokenRequest
from tokenvault.daemon.server import ServiceState, TokenBroker

__all__ = [
    "TokenBroker",
    "ServiceState",
    "NotificationChannel",
    "Subscription",
    "StatusChanged",
    "TokenReceived",
    "HandlerContext",
    "dispatch_request",
    "BrokerResponse",
    "StoreTokenRequest",
]
