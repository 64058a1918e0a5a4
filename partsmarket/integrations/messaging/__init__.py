from partsmarket.integrations.messaging.base import MessageResult, MessagingProvider
from partsmarket.integrations.messaging.factory import (
    build_messaging_provider,
    get_messaging_provider,
    messaging_health,
    set_messaging_provider,
)

__all__ = [
    "MessageResult",
    "MessagingProvider",
    "build_messaging_provider",
    "get_messaging_provider",
    "messaging_health",
    "set_messaging_provider",
]
