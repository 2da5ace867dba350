"""Best-effort notification dispatch over the single configured transport."""

from __future__ import annotations

from typing import Iterable

import structlog

from ..recipients import Recipient
from .transports import DeliveryResult, Transport


logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """
    Sends one notification per recipient.

    Deliveries are independent: a failure is logged and returned as a failed
    DeliveryResult, never retried and never raised. Status already written to
    the store is not affected by delivery outcome.
    """

    def __init__(self, transport: Transport | None):
        self.transport = transport
        if transport is None:
            logger.warning("No notification transport configured, notifications will be skipped")
        else:
            logger.info("Notification transport selected", transport=transport.name)

    async def notify(self, recipient: Recipient, subject: str, body: str) -> DeliveryResult:
        if self.transport is None:
            return DeliveryResult(ok=False, transport="none", address=recipient.address, error="no transport configured")

        if not recipient.accepts(self.transport.channel):
            logger.debug(
                "Recipient does not accept transport channel, skipping",
                recipient=recipient.name,
                channel=self.transport.channel,
            )
            return DeliveryResult(
                ok=False,
                transport=self.transport.name,
                address=recipient.address,
                error=f"recipient does not accept channel {self.transport.channel}",
            )

        try:
            result = await self.transport.send(recipient.address, subject, body)
        except Exception as e:
            result = DeliveryResult(
                ok=False,
                transport=self.transport.name,
                address=recipient.address,
                error=f"{type(e).__name__}: {e}",
            )

        if result.ok:
            logger.info(
                "Sent notification",
                recipient=recipient.name,
                address=recipient.address,
                transport=result.transport,
                receipt=str(result.receipt),
                subject=subject,
            )
        else:
            logger.error(
                "Failed to send notification",
                recipient=recipient.name,
                address=recipient.address,
                transport=result.transport,
                error=result.error,
                subject=subject,
            )
        return result

    async def notify_all(self, recipients: Iterable[Recipient], subject: str, body: str) -> list[DeliveryResult]:
        results: list[DeliveryResult] = []
        for recipient in recipients:
            results.append(await self.notify(recipient, subject, body))
        return results
