"""Customer notification transport.

``Notifier`` is the collaborator contract the dispatcher depends on;
``EmailNotifier`` delivers through Django's configured email backend
(SMTP in production, locmem in tests).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

import structlog
from django.conf import settings
from django.core.mail import EmailMessage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mimetype: str


class Notifier(Protocol):
    def notify(
        self,
        email: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> None: ...


class EmailNotifier:
    """Send HTML email with optional attachments."""

    def __init__(self, from_email: str | None = None) -> None:
        self._from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def notify(
        self,
        email: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> None:
        message = EmailMessage(
            subject=subject,
            body=body,
            from_email=self._from_email,
            to=[email],
        )
        message.content_subtype = "html"
        for attachment in attachments:
            message.attach(attachment.filename, attachment.content, attachment.mimetype)
        message.send(fail_silently=False)
        logger.info(
            "notification.email_sent",
            subject=subject,
            attachment_count=len(attachments),
        )
