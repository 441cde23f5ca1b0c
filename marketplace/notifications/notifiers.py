"""Notifier classes, one per dispatchable kind.

A notifier declares its payload contract (``required_fields``), who receives
the message (``recipients``) and the template variables (``context``).
``call`` validates the payload once and then runs the single-recipient path
for each recipient: mask check, locale resolution, rendering and hand-off to
the mail-delivery collaborator.

``NOTIFIER_REGISTRY`` maps every kind to its class. It is a static table;
adding a kind means adding a class here and to ``NOTIFIER_CLASSES``.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Type

from marketplace.domain.kinds import AnyKind, NotificationKind, TransactionalKind
from marketplace.domain.models import PROFILE_ATTRIBUTES, VIRTUAL_ATTRIBUTES, User
from marketplace.logging import get_logger
from marketplace.matching.engine import MatchEngine

from .models import DispatchResult, NotificationError, OutgoingMessage, PayloadContractError
from .templates import TemplateRenderer

logger = get_logger(__name__, component="notifier")

Payload = Mapping[str, Any]
AdminProvider = Callable[[], Iterable[User]]


class MailDelivery(Protocol):
    def enqueue(self, message: OutgoingMessage) -> None: ...


def new_dispatch_id() -> str:
    return uuid.uuid4().hex[:12]


def format_datetime(value: Optional[datetime]) -> str:
    """Human-readable UTC timestamp for templates; empty for None."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M UTC")


class BaseNotifier(ABC):
    """Base class for all notifiers.

    Subclasses set ``kind`` and ``required_fields`` and implement
    ``recipients`` and ``context``. ``mask_kind`` defaults to ``kind`` for
    maskable kinds and to None (never suppressed) for transactional ones.
    """

    kind: ClassVar[AnyKind]
    mask_kind: ClassVar[Optional[NotificationKind]] = None
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        kind = cls.__dict__.get("kind")
        if isinstance(kind, NotificationKind) and "mask_kind" not in cls.__dict__:
            cls.mask_kind = kind

    def __init__(
        self,
        renderer: TemplateRenderer,
        delivery: MailDelivery,
        match_engine: Optional[MatchEngine] = None,
        admin_provider: Optional[AdminProvider] = None,
        profile_attributes: Iterable[str] = (),
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.renderer = renderer
        self.translator = renderer.translator
        self.delivery = delivery
        self.match_engine = match_engine
        self.admin_provider = admin_provider
        self.profile_attributes = list(profile_attributes)
        self.logger = logger_instance or logger

    def validate(self, payload: Payload) -> None:
        """Fail fast on a missing or None required field.

        Raises:
            PayloadContractError: If any required field is absent
        """
        if not isinstance(payload, Mapping):
            raise PayloadContractError(self.kind.value, self.required_fields)
        missing = [name for name in self.required_fields if payload.get(name) is None]
        if missing:
            raise PayloadContractError(self.kind.value, missing)

    @abstractmethod
    def recipients(self, payload: Payload) -> Iterable[User]:
        """Users to notify; duplicates are skipped by ``call``."""
        pass

    @abstractmethod
    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        """Template variables for one recipient."""
        pass

    def call(self, payload: Payload, dispatch_id: Optional[str] = None) -> DispatchResult:
        """Validate ``payload`` and notify every recipient once."""
        self.validate(payload)
        result = DispatchResult(kind=self.kind.value, dispatch_id=dispatch_id or new_dispatch_id())

        seen = set()
        for recipient in self.recipients(payload):
            if recipient.id in seen:
                continue
            seen.add(recipient.id)
            if self.notify(recipient, payload, result.dispatch_id):
                result.delivered.append(recipient.id)
            else:
                result.suppressed.append(recipient.id)

        return result

    def notify(self, recipient: User, payload: Payload, dispatch_id: Optional[str] = None) -> bool:
        """Single-recipient path. Returns False if the recipient masked the kind."""
        if self.mask_kind is not None and recipient.notification_masked(self.mask_kind):
            self.logger.debug(
                f"Recipient {recipient.id} has masked {self.mask_kind.value}",
                extra={
                    "event": "notification.suppressed",
                    "recipient_id": recipient.id,
                    "mask_kind": self.mask_kind.value,
                },
            )
            return False

        locale = self.translator.resolve_locale(recipient)
        context = {"recipient_name": recipient.name}
        context.update(self.context(recipient, payload))
        rendered = self.renderer.render(self.kind.value, locale, context)

        message = OutgoingMessage(
            kind=self.kind.value,
            recipient_id=recipient.id,
            to=str(recipient.email),
            locale=locale,
            subject=rendered.subject,
            text_body=rendered.text_body,
            html_body=rendered.html_body,
            dispatch_id=dispatch_id,
        )
        self.delivery.enqueue(message)

        self.logger.info(
            f"Enqueued {self.kind.value} for user {recipient.id}",
            extra={
                "event": "notification.enqueued",
                "recipient_id": recipient.id,
                "locale": locale,
            },
        )
        return True


class ApplicationNotifier(BaseNotifier):
    """Notifiers about a job application, addressed to the job owner."""

    required_fields = ("job_application", "owner")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["owner"]]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        application = payload["job_application"]
        return {
            "job_name": application.job.name,
            "applicant_name": application.user.name,
            "owner_name": payload["owner"].name,
        }


class ApplicantNotifier(ApplicationNotifier):
    """Notifiers about a job application, addressed to the applicant."""

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["job_application"].user]


class AcceptedApplicantConfirmationOverdueNotifier(ApplicationNotifier):
    kind = NotificationKind.ACCEPTED_APPLICANT_CONFIRMATION_OVERDUE

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        context = super().context(recipient, payload)
        context["confirmation_by"] = format_datetime(
            payload["job_application"].will_perform_confirmation_by
        )
        return context


class AcceptedApplicantWithdrawnNotifier(ApplicationNotifier):
    kind = NotificationKind.ACCEPTED_APPLICANT_WITHDRAWN


class ApplicantAcceptedNotifier(ApplicantNotifier):
    kind = NotificationKind.APPLICANT_ACCEPTED

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        context = super().context(recipient, payload)
        context["confirmation_by"] = format_datetime(
            payload["job_application"].will_perform_confirmation_by
        )
        return context


class ApplicantWillPerformNotifier(ApplicationNotifier):
    kind = NotificationKind.APPLICANT_WILL_PERFORM


class InvoiceCreatedNotifier(BaseNotifier):
    kind = NotificationKind.INVOICE_CREATED
    required_fields = ("invoice", "owner")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["owner"]]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        invoice = payload["invoice"]
        return {
            "invoice_id": invoice.external_id or invoice.id,
            "job_name": invoice.job_application.job.name,
            "applicant_name": invoice.job_application.user.name,
        }


class JobUserPerformedNotifier(ApplicationNotifier):
    kind = NotificationKind.JOB_USER_PERFORMED


class JobCancelledNotifier(BaseNotifier):
    kind = NotificationKind.JOB_CANCELLED
    required_fields = ("job", "applicants")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return list(payload["applicants"])

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        return {"job_name": payload["job"].name}


class NewApplicantNotifier(ApplicationNotifier):
    kind = NotificationKind.NEW_APPLICANT


class UserJobMatchNotifier(BaseNotifier):
    """Broadcast a new job to every matching user."""

    kind = NotificationKind.USER_JOB_MATCH
    required_fields = ("job", "owner")

    def recipients(self, payload: Payload) -> Iterable[User]:
        if self.match_engine is None:
            raise NotificationError("user_job_match requires a match engine")
        return sorted(self.match_engine.matching_users(payload["job"]), key=lambda u: u.id)

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        job = payload["job"]
        return {"job_name": job.name, "owner_name": payload["owner"].name, "max_rate": job.max_rate}


class NewChatMessageNotifier(BaseNotifier):
    kind = NotificationKind.NEW_CHAT_MESSAGE
    required_fields = ("chat_message", "recipients")

    def recipients(self, payload: Payload) -> Iterable[User]:
        author_id = payload["chat_message"].author.id
        return [user for user in payload["recipients"] if user.id != author_id]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        message = payload["chat_message"]
        return {"author_name": message.author.name, "message_body": message.body}


class NewJobCommentNotifier(BaseNotifier):
    kind = NotificationKind.NEW_JOB_COMMENT
    required_fields = ("comment", "job", "owner")

    def recipients(self, payload: Payload) -> Iterable[User]:
        owner = payload["owner"]
        if payload["comment"].author.id == owner.id:
            return []
        return [owner]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        comment = payload["comment"]
        return {
            "job_name": payload["job"].name,
            "author_name": comment.author.name,
            "comment_body": comment.body,
        }


class ApplicantRejectedNotifier(ApplicantNotifier):
    kind = NotificationKind.APPLICANT_REJECTED


class JobMatchNotifier(BaseNotifier):
    """Recommend a job to an explicit list of users."""

    kind = NotificationKind.JOB_MATCH
    required_fields = ("job", "users")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return list(payload["users"])

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        job = payload["job"]
        return {"job_name": job.name, "max_rate": job.max_rate}


class NewApplicantJobInfoNotifier(ApplicantNotifier):
    kind = NotificationKind.NEW_APPLICANT_JOB_INFO


class ApplicantWillPerformJobInfoNotifier(ApplicantNotifier):
    kind = NotificationKind.APPLICANT_WILL_PERFORM_JOB_INFO


class FailedToActivateInvoiceNotifier(BaseNotifier):
    """Tell every admin; each admin's mask is checked separately."""

    kind = NotificationKind.FAILED_TO_ACTIVATE_INVOICE
    required_fields = ("invoice",)

    def recipients(self, payload: Payload) -> Iterable[User]:
        if self.admin_provider is None:
            raise NotificationError("failed_to_activate_invoice requires an admin provider")
        return list(self.admin_provider())

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        invoice = payload["invoice"]
        return {
            "invoice_id": invoice.external_id or invoice.id,
            "job_name": invoice.job_application.job.name,
            "activation_error": invoice.activation_error or "",
        }


class UpdateDataReminderNotifier(BaseNotifier):
    """Ask an applicant to fill in missing profile data.

    Optional payload keys ``skills`` and ``languages`` (collections of Skill
    / Language wanted by the job) add missing skills and languages to the
    list. Nothing is sent when nothing is missing.
    """

    kind = NotificationKind.UPDATE_DATA_REMINDER
    required_fields = ("job_application",)

    def recipients(self, payload: Payload) -> Iterable[User]:
        applicant = payload["job_application"].user
        if self.missing_for(applicant, payload):
            return [applicant]
        self.logger.debug(
            f"User {applicant.id} has a complete profile",
            extra={"event": "notification.nothing_missing", "recipient_id": applicant.id},
        )
        return []

    def missing_for(self, user: User, payload: Payload, locale: Optional[str] = None) -> List[str]:
        """Labels of everything missing, attributes first in configured order."""
        locale = locale or self.translator.resolve_locale(user)
        traits = MatchEngine.missing_traits(user, self.profile_attributes)
        labels = [
            self.translator.translate(f"attributes.{name}", locale)
            for name in self.profile_attributes
            if name in traits
        ]
        skills = MatchEngine.missing_skills(user, payload.get("skills") or ())
        languages = MatchEngine.missing_languages(user, payload.get("languages") or ())
        labels.extend(sorted(skill.name for skill in skills))
        labels.extend(sorted(language.name for language in languages))
        return labels

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        return {
            "job_name": payload["job_application"].job.name,
            "missing": self.missing_for(recipient, payload),
        }


class MarketingNotifier(BaseNotifier):
    kind = NotificationKind.MARKETING
    required_fields = ("user", "campaign")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["user"]]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        return {
            "campaign": str(payload["campaign"]),
            "campaign_body": str(payload.get("campaign_body") or ""),
        }


class ResetPasswordNotifier(BaseNotifier):
    """Transactional: never masked."""

    kind = TransactionalKind.RESET_PASSWORD
    required_fields = ("user", "token")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["user"]]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        return {"token": payload["token"]}


class ContactNotifier(BaseNotifier):
    """Transactional: forward a contact-form message to every admin."""

    kind = TransactionalKind.CONTACT
    required_fields = ("contact",)

    def recipients(self, payload: Payload) -> Iterable[User]:
        if self.admin_provider is None:
            raise NotificationError("contact requires an admin provider")
        return list(self.admin_provider())

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        contact = payload["contact"]
        return {
            "contact_name": contact.name,
            "contact_email": str(contact.email),
            "contact_body": contact.body,
        }


class JobPerformedNotifier(BaseNotifier):
    """Transactional, but honours the job_user_performed mask bit."""

    kind = TransactionalKind.JOB_PERFORMED
    mask_kind = NotificationKind.JOB_USER_PERFORMED
    required_fields = ("job", "job_application", "owner")

    def recipients(self, payload: Payload) -> Iterable[User]:
        return [payload["job_application"].user]

    def context(self, recipient: User, payload: Payload) -> Dict[str, Any]:
        return {"job_name": payload["job"].name, "owner_name": payload["owner"].name}


NOTIFIER_CLASSES: Tuple[Type[BaseNotifier], ...] = (
    AcceptedApplicantConfirmationOverdueNotifier,
    AcceptedApplicantWithdrawnNotifier,
    ApplicantAcceptedNotifier,
    ApplicantWillPerformNotifier,
    InvoiceCreatedNotifier,
    JobUserPerformedNotifier,
    JobCancelledNotifier,
    NewApplicantNotifier,
    UserJobMatchNotifier,
    NewChatMessageNotifier,
    NewJobCommentNotifier,
    ApplicantRejectedNotifier,
    JobMatchNotifier,
    NewApplicantJobInfoNotifier,
    ApplicantWillPerformJobInfoNotifier,
    FailedToActivateInvoiceNotifier,
    UpdateDataReminderNotifier,
    MarketingNotifier,
    ResetPasswordNotifier,
    JobPerformedNotifier,
    ContactNotifier,
)

NOTIFIER_REGISTRY: Dict[AnyKind, Type[BaseNotifier]] = {cls.kind: cls for cls in NOTIFIER_CLASSES}


def required_catalog_keys() -> List[str]:
    """Every catalog key the shipped notifiers and layouts rely on."""
    keys = ["mailer.greeting", "mailer.signature", "mailer.footer"]
    for kind in NotificationKind:
        keys.append(f"notifications.{kind.value}")
        keys.append(f"notifications.{kind.value}_description")
    for notifier_cls in NOTIFIER_CLASSES:
        keys.append(f"mailer.{notifier_cls.kind.value}.subject")
        keys.append(f"mailer.{notifier_cls.kind.value}.body")
    keys.extend(f"attributes.{name}" for name in PROFILE_ATTRIBUTES + VIRTUAL_ATTRIBUTES)
    return keys
