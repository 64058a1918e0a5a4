from __future__ import annotations

import os

from partsmarket.integrations.common import IntegrationDisabledError, IntegrationMisconfiguredError
from partsmarket.integrations.messaging.base import MessagingProvider
from partsmarket.integrations.messaging.mock_provider import MockMessagingProvider
from partsmarket.integrations.messaging.termii_provider import TermiiMessagingProvider, termii_missing_env

_EXTENSION_KEY = "partsmarket.messaging"


def build_messaging_provider(settings) -> MessagingProvider:
    mode = (getattr(settings, "messaging_mode", "disabled") or "disabled").strip().lower()
    if mode == "disabled":
        raise IntegrationDisabledError("INTEGRATION_DISABLED:whatsapp")
    if mode == "mock":
        return MockMessagingProvider()

    missing = termii_missing_env()
    if missing:
        raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:missing {', '.join(missing)}")
    sender = os.getenv("TERMII_SENDER_ID", "").strip()
    return TermiiMessagingProvider(
        api_key=os.getenv("TERMII_API_KEY", "").strip(),
        sender_id=sender,
        whatsapp_sender=(os.getenv("TERMII_WHATSAPP_SENDER") or sender).strip(),
    )


def get_messaging_provider(app, settings) -> MessagingProvider:
    """One provider per app; raises when messaging is disabled or misconfigured."""
    provider = app.extensions.get(_EXTENSION_KEY)
    if provider is None:
        provider = build_messaging_provider(settings)
        app.extensions[_EXTENSION_KEY] = provider
    return provider


def set_messaging_provider(app, provider: MessagingProvider) -> MessagingProvider:
    app.extensions[_EXTENSION_KEY] = provider
    return provider


def messaging_health(settings) -> dict:
    mode = (getattr(settings, "messaging_mode", "disabled") or "disabled").strip().lower()
    missing = termii_missing_env() if mode == "live" else []
    if mode == "disabled":
        status = "disabled"
    elif missing:
        status = "misconfigured"
    else:
        status = "configured"
    return {"status": status, "mode": mode, "missing": missing}
