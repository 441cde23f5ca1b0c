"""Data models and exceptions for the notification pipeline."""

from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import List, Optional

from marketplace.domain.exceptions import (
    NotificationError,
    PayloadContractError,
    UnknownNotificationKindError,
)


class NotificationTemplateError(NotificationError):
    """Raised when a subject, body or layout template fails to render."""

    pass


class MailDeliveryError(NotificationError):
    """Raised by the SMTP client when a single delivery attempt fails.

    The mail queue retries on this error; it never reaches the dispatcher.
    """

    pass


@dataclass
class RenderedMessage:
    """Subject and bodies produced by the template renderer."""

    subject: str
    text_body: str
    html_body: str


@dataclass
class OutgoingMessage:
    """A fully composed email, ready for the mail-delivery collaborator.

    Attributes:
        kind: Notification kind name
        recipient_id: ID of the receiving user
        to: Recipient email address
        locale: Locale the message was rendered in
        subject: Single-line subject
        text_body: Plain text body
        html_body: HTML body
        dispatch_id: ID of the dispatch that produced this message
    """

    kind: str
    recipient_id: int
    to: str
    locale: str
    subject: str
    text_body: str
    html_body: str
    dispatch_id: Optional[str] = None

    def to_email(self, sender: str) -> EmailMessage:
        """Build a multipart/alternative EmailMessage (text first, then HTML)."""
        message = EmailMessage()
        message["Subject"] = self.subject
        message["From"] = sender
        message["To"] = self.to
        message.set_content(self.text_body)
        message.add_alternative(self.html_body, subtype="html")
        # set_content clears Content-* headers, so this goes last
        message["Content-Language"] = self.locale
        return message


@dataclass
class DispatchResult:
    """Outcome of one dispatch.

    ``delivered`` holds the IDs of recipients whose message was handed to
    the mail queue; ``suppressed`` the IDs skipped because of their mask.
    Delivery itself happens later and is not reflected here.
    """

    kind: str
    dispatch_id: str
    delivered: List[int] = field(default_factory=list)
    suppressed: List[int] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return len(self.delivered) + len(self.suppressed)


__all__ = [
    "NotificationError",
    "UnknownNotificationKindError",
    "PayloadContractError",
    "NotificationTemplateError",
    "MailDeliveryError",
    "RenderedMessage",
    "OutgoingMessage",
    "DispatchResult",
]
