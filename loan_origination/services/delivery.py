"""Push pending outbox events to the webhook"""

import logging

import httpx
from sqlalchemy.orm import Session

from loan_origination.config import settings
from loan_origination.infrastructure.clients.webhooks import WebhookClient
from loan_origination.infrastructure.database.repositories import OutboxRepository
from loan_origination.infrastructure.database.session import SessionLocal
from loan_origination.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


async def deliver_pending_events(
    db: Session,
    client: WebhookClient,
    clock: Clock | None = None,
    limit: int = 100,
    max_attempts: int | None = None,
) -> int:
    """
    Send pending events in creation order.

    Claimed rows stay locked until the commit, so concurrent deliverers never
    send the same event. A failed event stays pending for the next run and is
    marked failed once max_attempts runs have failed.

    Returns the number delivered. Does nothing when no webhook is configured,
    leaving events pending.
    """
    if not client.enabled:
        return 0
    clock = clock or SystemClock()
    max_attempts = max_attempts or settings.outbox_max_attempts
    outbox = OutboxRepository(db)
    delivered = 0
    for row in outbox.claim_pending(limit=limit):
        try:
            ok = await client.send_event(row.event_type, row.payload)
        except httpx.HTTPError as e:
            logger.error(
                "Event delivery failed",
                extra={"event_id": str(row.id), "event_type": row.event_type, "error": str(e)},
            )
            ok = False
        outbox.mark_attempt(row, ok, clock.now(), max_attempts=max_attempts)
        delivered += int(ok)
    db.commit()
    return delivered


async def deliver_in_background(client: WebhookClient) -> None:
    """Background-task entry point; uses its own session since the request's is closed"""
    if not client.enabled:
        return
    db = SessionLocal()
    try:
        await deliver_pending_events(db, client)
    finally:
        db.close()
