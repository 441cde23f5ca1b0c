"""Notification dispatch and delivery.

Public API:
- NotificationDispatcher: ``dispatch(kind, payload) -> DispatchResult``
- NOTIFIER_REGISTRY and the notifier classes
- Translator / TemplateRenderer: locale catalogs and Jinja2 rendering
- MailQueue / SMTPClient: asynchronous SMTP delivery with retry
"""

from .delivery import MailQueue, MailQueueStats
from .dispatcher import NotificationDispatcher
from .models import (
    DispatchResult,
    MailDeliveryError,
    NotificationError,
    NotificationTemplateError,
    OutgoingMessage,
    PayloadContractError,
    RenderedMessage,
    UnknownNotificationKindError,
)
from .notifiers import NOTIFIER_CLASSES, NOTIFIER_REGISTRY, BaseNotifier, required_catalog_keys
from .smtp_client import SMTPClient, build_sender_address, validate_recipient
from .templates import TemplateRenderer
from .translations import Translator, is_missing

__all__ = [
    "NotificationDispatcher",
    "DispatchResult",
    "OutgoingMessage",
    "RenderedMessage",
    "BaseNotifier",
    "NOTIFIER_CLASSES",
    "NOTIFIER_REGISTRY",
    "required_catalog_keys",
    "Translator",
    "TemplateRenderer",
    "is_missing",
    "MailQueue",
    "MailQueueStats",
    "SMTPClient",
    "build_sender_address",
    "validate_recipient",
    "NotificationError",
    "UnknownNotificationKindError",
    "PayloadContractError",
    "NotificationTemplateError",
    "MailDeliveryError",
]
