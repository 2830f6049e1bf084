"""Event webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any
from loan_origination.config import settings
from loan_origination.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


class WebhookClient:
    """Client for delivering application events to the configured webhook"""

    def __init__(
        self,
        webhook_url: str | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
    ):
        self.webhook_url = webhook_url or settings.webhook_url
        self.max_retries = max_retries if max_retries is not None else settings.webhook_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.webhook_backoff_base

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_event(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        POST one event with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt - 1)
        - Retries on non-2xx responses and network failures
        - Tracks latency histogram and failure counter

        Returns:
            False when no webhook is configured, True once delivered

        Raises:
            httpx.HTTPError: after the last retry fails
        """
        if not self.enabled:
            return False

        attempt = 0
        async with httpx.AsyncClient() as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            headers={"X-Webhook-Event": event_type},
                            timeout=10.0,
                        )
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            "Webhook delivery failed",
                            extra={"event_type": event_type, "attempts": attempt},
                        )
                        raise

                    await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))
        return False
