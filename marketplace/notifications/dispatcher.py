"""Notification dispatcher: the single entry point for domain events.

``dispatch(kind, payload)`` resolves the kind, looks up its notifier in the
static registry and runs it. Dispatch is synchronous up to the hand-off to
the mail-delivery collaborator; it never waits for a message to be sent.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Type

from marketplace.domain.kinds import AnyKind, resolve_kind
from marketplace.logging import get_logger
from marketplace.logging.context import log_context
from marketplace.matching.engine import MatchEngine

from .models import DispatchResult, NotificationError, UnknownNotificationKindError
from .notifiers import (
    NOTIFIER_REGISTRY,
    AdminProvider,
    BaseNotifier,
    MailDelivery,
    Payload,
    new_dispatch_id,
)
from .templates import TemplateRenderer
from .translations import Translator

logger = get_logger(__name__, component="dispatcher")


class NotificationDispatcher:
    """Routes ``(kind, payload)`` events to their notifier.

    Collaborators:
    - delivery: anything with ``enqueue(message)`` (normally a MailQueue)
    - match_engine: recipient set for ``user_job_match``
    - admin_provider: zero-argument callable returning the admin users
    """

    def __init__(
        self,
        delivery: MailDelivery,
        renderer: Optional[TemplateRenderer] = None,
        match_engine: Optional[MatchEngine] = None,
        admin_provider: Optional[AdminProvider] = None,
        profile_attributes: Iterable[str] = (),
        registry: Optional[Mapping[AnyKind, Type[BaseNotifier]]] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.delivery = delivery
        self.renderer = renderer or TemplateRenderer(Translator())
        self.match_engine = match_engine
        self.admin_provider = admin_provider
        self.logger = logger_instance or logger

        registry = NOTIFIER_REGISTRY if registry is None else registry
        self._notifiers: Dict[AnyKind, BaseNotifier] = {
            kind: notifier_cls(
                self.renderer,
                delivery,
                match_engine=match_engine,
                admin_provider=admin_provider,
                profile_attributes=profile_attributes,
            )
            for kind, notifier_cls in registry.items()
        }

    @property
    def kinds(self) -> list:
        return list(self._notifiers)

    def notifier_for(self, kind) -> BaseNotifier:
        """Look up the notifier for ``kind`` (enum member or name).

        Raises:
            UnknownNotificationKindError: If no notifier handles the kind
        """
        resolved = resolve_kind(kind)
        notifier = self._notifiers.get(resolved)
        if notifier is None:
            raise UnknownNotificationKindError(f"No notifier registered for {resolved.value!r}")
        return notifier

    def dispatch(self, kind, payload: Payload) -> DispatchResult:
        """Dispatch one event.

        Raises:
            UnknownNotificationKindError: If ``kind`` is unknown
            PayloadContractError: If ``payload`` lacks a required field
            NotificationTemplateError: If a message fails to render
        """
        try:
            notifier = self.notifier_for(kind)
        except UnknownNotificationKindError:
            self.logger.error(
                f"Unknown notification kind: {kind!r}",
                exc_info=True,
                extra={"event": "notification.unknown_kind"},
            )
            raise

        dispatch_id = new_dispatch_id()
        kind_name = notifier.kind.value

        with log_context(dispatch_id=dispatch_id, notification_kind=kind_name):
            try:
                result = notifier.call(payload, dispatch_id=dispatch_id)
            except NotificationError as e:
                self.logger.error(
                    f"Dispatch of {kind_name} failed: {e}",
                    exc_info=True,
                    extra={"event": "notification.dispatch.failed", "error_type": type(e).__name__},
                )
                raise

            self.logger.info(
                f"Dispatched {kind_name}: {len(result.delivered)} enqueued, "
                f"{len(result.suppressed)} suppressed",
                extra={
                    "event": "notification.dispatched",
                    "delivered": len(result.delivered),
                    "suppressed": len(result.suppressed),
                },
            )

        return result
