"""
Notifier - renders engagement templates and delivers them by email or in-app.

Delivery is best effort from the scheduler's point of view: transient email
failures are retried here with exponential backoff, and a final failure is
reported in the DeliveryResult instead of raised.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import TransientDeliveryError
from app.fsm.states import DeliveryChannel
from app.models.notification import Notification
from app.models.user import User
from app.schemas.engagement import MessageTemplate
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(text: str, variables: Mapping[str, Any]) -> str:
    """Fill {{name}} placeholders; unknown names render empty."""
    return PLACEHOLDER.sub(lambda match: str(variables.get(match.group(1), "")), text)


def notification_type(template_key: str) -> str:
    """reminder, digest or escalation."""
    if template_key == "weekly_digest":
        return "digest"
    return template_key.split("_")[0]


@dataclass
class DeliveryResult:
    channel: DeliveryChannel
    delivered: bool
    attempts: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None


class Notifier:
    """Sends one rendered notice to one user on one channel."""

    def __init__(
        self,
        db: AsyncSession,
        templates: Dict[str, MessageTemplate],
        email: Optional[EmailService] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self.db = db
        self.templates = templates
        self.email = email or EmailService()
        self.max_attempts = max_attempts or settings.notifier_max_attempts
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.notifier_backoff_seconds
        )

    async def send(
        self,
        user: User,
        channel: DeliveryChannel,
        template_key: str,
        variables: Mapping[str, Any],
    ) -> DeliveryResult:
        template = self.templates.get(template_key)
        if template is None:
            logger.error(f"Unknown engagement template '{template_key}'")
            return DeliveryResult(channel, delivered=False, error=f"unknown template {template_key}")

        subject = render_template(template.subject, variables)
        body = render_template(template.body, variables)

        if channel == DeliveryChannel.PUSH:
            return await self._send_in_app(user, template_key, subject, body)
        return await self._send_email_with_retry(user, subject, body)

    async def _send_in_app(
        self, user: User, template_key: str, title: str, body: str
    ) -> DeliveryResult:
        notification = Notification(
            user_id=user.id,
            title=title,
            body=body,
            type=notification_type(template_key),
        )
        self.db.add(notification)
        await self.db.flush()
        return DeliveryResult(
            DeliveryChannel.PUSH,
            delivered=True,
            attempts=1,
            message_id=str(notification.id),
        )

    async def _send_email_with_retry(self, user: User, subject: str, body: str) -> DeliveryResult:
        if not self.email.is_enabled:
            return DeliveryResult(DeliveryChannel.EMAIL, delivered=False, error="email disabled")

        last_error: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                message_id = await self.email.send_email(user.email, subject, body)
                return DeliveryResult(
                    DeliveryChannel.EMAIL,
                    delivered=True,
                    attempts=attempt,
                    message_id=message_id,
                )
            except TransientDeliveryError as e:
                last_error = e.message
                logger.warning(
                    f"Email to user {user.id} failed (attempt {attempt}/{self.max_attempts}): {e.message}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
            except ValueError as e:
                logger.error(f"Email to user {user.id} rejected: {e}")
                return DeliveryResult(
                    DeliveryChannel.EMAIL, delivered=False, attempts=attempt, error=str(e)
                )

        return DeliveryResult(
            DeliveryChannel.EMAIL,
            delivered=False,
            attempts=self.max_attempts,
            error=last_error,
        )
