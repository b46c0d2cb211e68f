import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import resend
from fastapi.concurrency import run_in_threadpool

from cube_waitlist.core.config import Settings
from cube_waitlist.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def sent(cls) -> "NotificationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> "NotificationResult":
        return cls(ok=False, reason=reason)


class Notifier(ABC):
    @abstractmethod
    async def notify(self, email: str) -> NotificationResult:
        """Send the waitlist confirmation to ``email``. Never retried."""


class ResendNotifier(Notifier):
    def __init__(self, api_key: str, sender: str, subject: str, text: str):
        resend.api_key = api_key
        self.sender = sender
        self.subject = subject
        self.text = text

    def _send(self, to: str) -> None:
        try:
            resend.Emails.send({
                "from": self.sender,
                "to": [to],
                "subject": self.subject,
                "text": self.text,
            })
        except Exception as e:
            # The SDK raises its own error types as well as transport errors
            raise NotificationError("Resend rejected the message", details=str(e)) from e

    async def notify(self, email: str) -> NotificationResult:
        try:
            await run_in_threadpool(self._send, email)
        except NotificationError as e:
            return NotificationResult.failed(e.details or e.message)
        logger.info(f"📧 Confirmation email sent to {email}")
        return NotificationResult.sent()


class LoggingNotifier(Notifier):
    """Notifier for local runs: records the message instead of sending it."""

    def __init__(self, subject: str = ""):
        self.subject = subject

    async def notify(self, email: str) -> NotificationResult:
        logger.info(f"📧 Would send '{self.subject}' to {email}")
        return NotificationResult.sent()


def build_notifier(settings: Settings) -> Notifier:
    backend = settings.NOTIFIER_BACKEND.lower()
    if backend == "log":
        return LoggingNotifier(subject=settings.WAITLIST_EMAIL_SUBJECT)
    if backend == "resend":
        return ResendNotifier(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            subject=settings.WAITLIST_EMAIL_SUBJECT,
            text=settings.WAITLIST_EMAIL_TEXT,
        )
    raise ValueError(f"Unknown NOTIFIER_BACKEND: {settings.NOTIFIER_BACKEND}")
