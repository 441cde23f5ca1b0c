"""Lifecycle hooks that turn job and application transitions into dispatches.

Callers invoke a hook when something changed; each hook dispatches only on
the transition edge (``performed`` flipping to True, a status actually
changing), so saving an unchanged record twice never notifies twice.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from marketplace.domain.kinds import NotificationKind, TransactionalKind
from marketplace.domain.models import (
    ApplicationStatus,
    ChatMessage,
    Comment,
    Contact,
    Invoice,
    Job,
    JobApplication,
    User,
)
from marketplace.logging import get_logger
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.models import DispatchResult

logger = get_logger(__name__, component="lifecycle")

# New application status -> kinds to dispatch, all with the
# (job_application, owner) payload.
STATUS_TRANSITIONS: Dict[ApplicationStatus, Tuple[NotificationKind, ...]] = {
    ApplicationStatus.ACCEPTED: (NotificationKind.APPLICANT_ACCEPTED,),
    ApplicationStatus.REJECTED: (NotificationKind.APPLICANT_REJECTED,),
    ApplicationStatus.WILL_PERFORM: (
        NotificationKind.APPLICANT_WILL_PERFORM,
        NotificationKind.APPLICANT_WILL_PERFORM_JOB_INFO,
    ),
    ApplicationStatus.PERFORMED: (NotificationKind.JOB_USER_PERFORMED,),
}

# A withdrawal only matters to the owner once the applicant had been accepted.
WITHDRAWAL_NOTIFIED_FROM: FrozenSet[ApplicationStatus] = frozenset(
    {ApplicationStatus.ACCEPTED, ApplicationStatus.WILL_PERFORM}
)

PERFORMING_STATUSES: FrozenSet[ApplicationStatus] = frozenset(
    {ApplicationStatus.ACCEPTED, ApplicationStatus.WILL_PERFORM}
)


class JobLifecycle:
    """Entry points for controllers and model callbacks."""

    def __init__(self, dispatcher: NotificationDispatcher, logger_instance: Optional[logging.Logger] = None):
        self.dispatcher = dispatcher
        self.logger = logger_instance or logger

    def job_created(self, job: Job, owner: User) -> DispatchResult:
        """Broadcast a new job to matching users."""
        return self.dispatcher.dispatch(NotificationKind.USER_JOB_MATCH, {"job": job, "owner": owner})

    def job_updated(
        self,
        previous: Job,
        current: Job,
        owner: User,
        applications: Iterable[JobApplication],
    ) -> List[DispatchResult]:
        """Dispatch on the performed and cancelled edges of a job update."""
        applications = list(applications)
        results = []

        if current.performed and not previous.performed:
            for application in applications:
                if application.status in PERFORMING_STATUSES:
                    results.append(
                        self.dispatcher.dispatch(
                            TransactionalKind.JOB_PERFORMED,
                            {"job": current, "job_application": application, "owner": owner},
                        )
                    )

        if current.cancelled and not previous.cancelled:
            applicants = [
                application.user
                for application in applications
                if application.status != ApplicationStatus.WITHDRAWN
            ]
            results.append(
                self.dispatcher.dispatch(
                    NotificationKind.JOB_CANCELLED, {"job": current, "applicants": applicants}
                )
            )

        if not results:
            self.logger.debug(
                f"Job {current.id} updated without a notifying transition",
                extra={"event": "lifecycle.no_transition", "job_id": current.id},
            )
        return results

    def application_created(self, application: JobApplication, owner: User) -> List[DispatchResult]:
        payload = {"job_application": application, "owner": owner}
        return [
            self.dispatcher.dispatch(NotificationKind.NEW_APPLICANT, payload),
            self.dispatcher.dispatch(NotificationKind.NEW_APPLICANT_JOB_INFO, payload),
        ]

    def application_status_changed(
        self,
        application: JobApplication,
        previous_status: ApplicationStatus,
        owner: User,
    ) -> List[DispatchResult]:
        """Dispatch the kinds bound to the new status, if it changed."""
        previous_status = ApplicationStatus(previous_status)
        current_status = application.status

        if current_status == previous_status:
            return []

        if current_status == ApplicationStatus.WITHDRAWN:
            kinds: Tuple[NotificationKind, ...] = (
                (NotificationKind.ACCEPTED_APPLICANT_WITHDRAWN,)
                if previous_status in WITHDRAWAL_NOTIFIED_FROM
                else ()
            )
        else:
            kinds = STATUS_TRANSITIONS.get(current_status, ())

        self.logger.debug(
            f"Application {application.id}: {previous_status.value} -> {current_status.value}",
            extra={
                "event": "lifecycle.status_changed",
                "application_id": application.id,
                "kinds": [kind.value for kind in kinds],
            },
        )

        payload = {"job_application": application, "owner": owner}
        return [self.dispatcher.dispatch(kind, payload) for kind in kinds]

    def comment_created(self, comment: Comment, job: Job, owner: User) -> DispatchResult:
        return self.dispatcher.dispatch(
            NotificationKind.NEW_JOB_COMMENT, {"comment": comment, "job": job, "owner": owner}
        )

    def chat_message_created(self, message: ChatMessage, participants: Iterable[User]) -> DispatchResult:
        return self.dispatcher.dispatch(
            NotificationKind.NEW_CHAT_MESSAGE,
            {"chat_message": message, "recipients": list(participants)},
        )

    def invoice_created(self, invoice: Invoice, owner: User) -> DispatchResult:
        return self.dispatcher.dispatch(
            NotificationKind.INVOICE_CREATED, {"invoice": invoice, "owner": owner}
        )

    def invoice_activation_failed(self, invoice: Invoice) -> DispatchResult:
        """Tell every admin that an invoice could not be activated."""
        return self.dispatcher.dispatch(NotificationKind.FAILED_TO_ACTIVATE_INVOICE, {"invoice": invoice})

    def password_reset_requested(self, user: User, token: str) -> DispatchResult:
        return self.dispatcher.dispatch(TransactionalKind.RESET_PASSWORD, {"user": user, "token": token})

    def contact_submitted(self, contact: Contact) -> DispatchResult:
        """Forward a contact-form message to every admin."""
        return self.dispatcher.dispatch(TransactionalKind.CONTACT, {"contact": contact})
