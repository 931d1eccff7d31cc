"""
Email Service - transactional email via the SparkPost transmissions API.
"""

import logging
from typing import Optional

import httpx

from app.config import settings
from app.exceptions import TransientDeliveryError

logger = logging.getLogger(__name__)


class EmailService:
    """Sends one email per call. Raises on failure; the Notifier owns retries."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.sparkpost_api_key
        self.api_url = api_url or settings.sparkpost_api_url
        self.sender = sender or settings.mail_from
        self._transport = transport

    @property
    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def send_email(self, to: str, subject: str, text: str) -> Optional[str]:
        """
        Send a plain-text email.

        Returns the transmission ID. Transport errors and 5xx responses raise
        TransientDeliveryError; other non-2xx responses raise ValueError since
        repeating them cannot succeed.
        """
        if not self.is_enabled:
            logger.warning(f"Email disabled (no SPARKPOST_API_KEY); not sending '{subject}' to {to}")
            return None

        payload = {
            "options": {"transactional": True},
            "content": {
                "from": self.sender,
                "subject": subject,
                "text": text,
            },
            "recipients": [{"address": {"email": to}}],
        }
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"SparkPost request timeout: {e}") from e
        except httpx.TransportError as e:
            raise TransientDeliveryError(f"SparkPost transport error: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientDeliveryError(
                f"SparkPost HTTP error: {response.status_code}",
                status=response.status_code,
            )
        if response.status_code >= 400:
            raise ValueError(f"SparkPost rejected email: {response.status_code} {response.text}")

        transmission_id = response.json().get("results", {}).get("id")
        logger.info(f"Email sent to {to}: {transmission_id}")
        return transmission_id
