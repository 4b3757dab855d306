"""WhatsApp notification adapter — implements NotificationPort.

Sends plain-text messages through the WhatsApp Cloud (Graph) API.
"""

from __future__ import annotations

import logging

import httpx

from src.ports.notification_port import NotificationError

logger = logging.getLogger(__name__)

_GRAPH_URL = "https://graph.facebook.com/{version}/{phone_number_id}/messages"


class WhatsAppNotifier:
    """WhatsApp Cloud API implementation of NotificationPort."""

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        api_version: str = "v17.0",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._token = token
        self._url = _GRAPH_URL.format(version=api_version, phone_number_id=phone_number_id)
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls) -> WhatsAppNotifier:
        from src.config import settings

        return cls(
            token=settings.WHATSAPP_TOKEN,
            phone_number_id=settings.PHONE_NUMBER_ID,
            api_version=settings.WHATSAPP_API_VERSION,
            timeout_seconds=settings.EXTERNAL_TIMEOUT_SECONDS,
        )

    async def send_message(self, user_id: str, text: str) -> None:
        payload = {
            "messaging_product": "whatsapp",
            "to": user_id,
            "type": "text",
            "text": {"body": text},
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._token}"},
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "WhatsApp API rejected message to %s: %s %s",
                user_id, exc.response.status_code, exc.response.text,
            )
            raise NotificationError(
                f"WhatsApp API returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Error sending WhatsApp message to %s: %s", user_id, exc)
            raise NotificationError(str(exc)) from exc

        logger.info("Message sent to %s", user_id)
