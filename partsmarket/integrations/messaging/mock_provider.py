from __future__ import annotations

import os

from partsmarket.integrations.messaging.base import MessageResult, MessagingProvider


class MockMessagingProvider(MessagingProvider):
    """Keeps what it would have sent in `outbox`; never touches the network."""

    name = "mock"

    def __init__(self):
        self.outbox: list[dict] = []

    def _force_failure(self, message: str) -> bool:
        msg = (message or "").lower()
        return "[fail]" in msg or (os.getenv("MOCK_MESSAGING_FORCE_FAIL") or "").strip() == "1"

    def send_whatsapp(self, *, to: str, message: str, reference: str = "") -> MessageResult:
        if self._force_failure(message):
            return MessageResult(ok=False, code="PROVIDER_DOWN", message="mock forced failure")
        self.outbox.append({"to": to, "message": message, "reference": reference})
        return MessageResult(ok=True, code="OK", message="mock_sent", raw={"to": to, "reference": reference})
