"""
BizzyLink Backend: Outbound Link Notifications
================================================

What:  POSTs a JSON event to the Minecraft server's webhook whenever an
       account is linked or unlinked, so the plugin can sync ranks at once
       instead of waiting for the player's next lookup.
How:   httpx.AsyncClient with a per-request timeout, wrapped in a tenacity
       retry (exponential backoff + jitter).
When:  Scheduled as a background task after the link state is saved.

Failure model:
    Transport errors and 5xx responses are retried. A 4xx response is not
    (the receiver rejected the event and will keep rejecting it). Once
    retries are exhausted the failure is logged and dropped; the saved link
    state is never rolled back because a webhook failed.

Payload:
    {
        "event": "minecraft_linked" | "minecraft_unlinked",
        "user_id": "...",
        "username": "...",
        "minecraft_uuid": "...",
        "minecraft_username": "...",
        "timestamp": "2026-01-01T00:00:00+00:00"
    }
"""

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from bizzylink.config import settings
from bizzylink.database import utcnow
from bizzylink.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)

LINKED_EVENT = "minecraft_linked"
UNLINKED_EVENT = "minecraft_unlinked"


def build_event(
    event: str,
    user_id: Any,
    username: str,
    minecraft_uuid: Optional[str],
    minecraft_username: Optional[str],
) -> Dict[str, Any]:
    return {
        "event": event,
        "user_id": str(user_id),
        "username": username,
        "minecraft_uuid": minecraft_uuid,
        "minecraft_username": minecraft_username,
        "timestamp": utcnow().isoformat(),
    }


class LinkNotifier:
    """
    Args:
        transport: Optional httpx transport; tests pass an httpx.MockTransport.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def send(self, payload: Dict[str, Any]) -> bool:
        """
        Deliver one event.

        Returns:
            True when the receiver accepted it, False when skipped or failed
        """
        url = settings.minecraft_webhook_url
        if not url:
            logger.debug("No Minecraft webhook configured; skipping %s event", payload["event"])
            return False

        try:
            await self._post_event(url, payload)
        except (NotificationDeliveryError, httpx.HTTPError) as e:
            logger.error(
                "Giving up on %s webhook for user %s: %s",
                payload["event"],
                payload["user_id"],
                e,
            )
            return False

        logger.info("Delivered %s webhook for user %s", payload["event"], payload["user_id"])
        return True

    async def notify_linked(self, payload: Dict[str, Any]) -> bool:
        return await self.send({**payload, "event": LINKED_EVENT})

    async def notify_unlinked(self, payload: Dict[str, Any]) -> bool:
        return await self.send({**payload, "event": UNLINKED_EVENT})

    @retry(
        retry=retry_if_exception_type((httpx.TransportError, NotificationDeliveryError)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_event(self, url: str, payload: Dict[str, Any]) -> None:
        headers = {}
        if settings.minecraft_webhook_secret:
            headers["X-Internal-Secret"] = settings.minecraft_webhook_secret

        async with httpx.AsyncClient(
            timeout=settings.webhook_timeout, transport=self._transport
        ) as client:
            response = await client.post(url, json=payload, headers=headers)

        if response.status_code >= 500:
            raise NotificationDeliveryError(
                f"Webhook receiver answered {response.status_code}",
                status_code=response.status_code,
            )
        # 4xx raises httpx.HTTPStatusError, which is not retried
        response.raise_for_status()


link_notifier = LinkNotifier()
