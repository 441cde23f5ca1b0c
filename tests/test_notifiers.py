"""Unit tests for the notifier classes.

Each notifier is exercised through the dispatcher with an in-memory
delivery collaborator, so the tests see exactly which messages were
enqueued and for whom.
"""

from datetime import timedelta

import pytest

from marketplace.domain.kinds import NotificationKind, TransactionalKind
from marketplace.domain.models import ApplicationStatus, ChatMessage, Comment, Contact
from marketplace.notifications import NOTIFIER_REGISTRY, NotificationError, PayloadContractError
from marketplace.notifications.notifiers import (
    BaseNotifier,
    UpdateDataReminderNotifier,
    format_datetime,
)
from tests.helpers import (
    NOW,
    RecordingDelivery,
    StaticDirectory,
    build_dispatcher,
    make_application,
    make_invoice,
    make_job,
    make_user,
)
from tests.helpers.factories import ARABIC, CARPENTRY, CLEANING, ENGLISH, SWEDISH


@pytest.fixture
def owner():
    return make_user(1, first_name="Olga", last_name="Owner")


@pytest.fixture
def applicant():
    return make_user(2, first_name="Adam", last_name="Applicant")


@pytest.fixture
def application(owner, applicant):
    return make_application(user=applicant, job=make_job(owner_user_id=owner.id, name="Paint fence"))


class TestRegistry:
    """The static kind-to-notifier table."""

    def test_every_maskable_kind_has_a_notifier(self):
        for kind in NotificationKind:
            assert kind in NOTIFIER_REGISTRY

    def test_transactional_kinds_have_notifiers(self):
        assert TransactionalKind.RESET_PASSWORD in NOTIFIER_REGISTRY
        assert TransactionalKind.JOB_PERFORMED in NOTIFIER_REGISTRY
        assert TransactionalKind.CONTACT in NOTIFIER_REGISTRY

    def test_registry_keys_match_class_kind(self):
        for kind, notifier_cls in NOTIFIER_REGISTRY.items():
            assert notifier_cls.kind is kind
            assert issubclass(notifier_cls, BaseNotifier)

    def test_notifier_must_implement_recipients_and_context(self):
        class RecipientsOnly(BaseNotifier):
            kind = TransactionalKind.RESET_PASSWORD

            def recipients(self, payload):
                return [payload["user"]]

        with pytest.raises(TypeError, match="context"):
            RecipientsOnly(renderer=None, delivery=RecordingDelivery())
        with pytest.raises(TypeError):
            BaseNotifier(renderer=None, delivery=RecordingDelivery())

    def test_maskable_notifiers_default_mask_kind(self):
        for kind in NotificationKind:
            assert NOTIFIER_REGISTRY[kind].mask_kind is kind

    def test_transactional_mask_kinds(self):
        assert NOTIFIER_REGISTRY[TransactionalKind.RESET_PASSWORD].mask_kind is None
        assert NOTIFIER_REGISTRY[TransactionalKind.CONTACT].mask_kind is None
        assert (
            NOTIFIER_REGISTRY[TransactionalKind.JOB_PERFORMED].mask_kind
            is NotificationKind.JOB_USER_PERFORMED
        )


class TestMaskSuppression:
    """A masked recipient gets nothing; other kinds are unaffected."""

    def test_masked_new_applicant_is_not_enqueued(self, owner, application):
        owner.set_notification_masked(NotificationKind.NEW_APPLICANT)
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery)

        result = dispatcher.dispatch(
            "new_applicant", {"job_application": application, "owner": owner}
        )

        assert delivery.messages == []
        assert result.delivered == []
        assert result.suppressed == [owner.id]

    def test_other_kind_still_delivered_to_masked_user(self, owner, application):
        owner.set_notification_masked(NotificationKind.NEW_APPLICANT)
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery)

        dispatcher.dispatch(
            "applicant_will_perform", {"job_application": application, "owner": owner}
        )

        assert delivery.recipient_ids == [owner.id]
        assert delivery.messages[0].kind == "applicant_will_perform"

    def test_admin_masks_checked_individually(self):
        admins = [make_user(50), make_user(51), make_user(52)]
        admins[1].set_notification_masked("failed_to_activate_invoice")
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery, StaticDirectory(admins=admins))

        result = dispatcher.dispatch(
            "failed_to_activate_invoice",
            {"invoice": make_invoice(activation_error="provider timeout")},
        )

        assert delivery.recipient_ids == [50, 52]
        assert result.suppressed == [51]
        assert "provider timeout" in delivery.messages[0].text_body

    def test_reset_password_ignores_mask(self):
        user = make_user(3)
        user.set_ignored_notifications([kind.value for kind in NotificationKind])
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch("reset_password", {"user": user, "token": "XY12"})

        assert delivery.recipient_ids == [3]
        assert "XY12" in delivery.messages[0].text_body

    def test_job_performed_honours_job_user_performed_mask(self, owner, applicant, application):
        application.user.set_notification_masked(NotificationKind.JOB_USER_PERFORMED)
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "job_performed",
            {"job": application.job, "job_application": application, "owner": owner},
        )

        assert delivery.messages == []

    def test_contact_reaches_every_admin_regardless_of_mask(self):
        admins = [make_user(50, admin=True), make_user(51, admin=True)]
        admins[1].set_ignored_notifications([kind.value for kind in NotificationKind])
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery, StaticDirectory(admins=admins))
        contact = Contact(name="Vera Visitor", email="vera@example.com", body="Do you hire in Uppsala?")

        result = dispatcher.dispatch("contact", {"contact": contact})

        assert result.delivered == [50, 51]
        assert result.suppressed == []
        message = delivery.messages[0]
        assert message.subject == "Contact form: message from Vera Visitor"
        assert "vera@example.com" in message.text_body
        assert "Do you hire in Uppsala?" in message.text_body


class TestPayloadContract:
    """Missing payload fields are a caller defect and always raise."""

    def test_missing_field(self, application):
        dispatcher = build_dispatcher()

        with pytest.raises(PayloadContractError) as exc_info:
            dispatcher.dispatch("new_applicant", {"job_application": application})

        assert exc_info.value.kind == "new_applicant"
        assert exc_info.value.missing_fields == ["owner"]

    def test_none_counts_as_missing(self, application):
        with pytest.raises(PayloadContractError):
            build_dispatcher().dispatch(
                "new_applicant", {"job_application": application, "owner": None}
            )

    def test_non_mapping_payload(self):
        with pytest.raises(PayloadContractError):
            build_dispatcher().dispatch("marketing", ["not", "a", "mapping"])

    def test_nothing_enqueued_on_contract_error(self):
        delivery = RecordingDelivery()
        with pytest.raises(PayloadContractError):
            build_dispatcher(delivery).dispatch("job_cancelled", {"job": make_job()})
        assert delivery.messages == []

    def test_payload_error_is_notification_error(self):
        assert issubclass(PayloadContractError, NotificationError)


class TestRecipients:
    """Who receives each kind."""

    def test_application_kinds_go_to_owner(self, owner, application):
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery)
        payload = {"job_application": application, "owner": owner}

        for kind in (
            "new_applicant",
            "accepted_applicant_withdrawn",
            "applicant_will_perform",
            "job_user_performed",
            "accepted_applicant_confirmation_overdue",
        ):
            dispatcher.dispatch(kind, payload)

        assert set(delivery.recipient_ids) == {owner.id}
        assert len(delivery.messages) == 5

    def test_applicant_kinds_go_to_applicant(self, owner, applicant, application):
        delivery = RecordingDelivery()
        dispatcher = build_dispatcher(delivery)
        payload = {"job_application": application, "owner": owner}

        for kind in (
            "applicant_accepted",
            "applicant_rejected",
            "new_applicant_job_info",
            "applicant_will_perform_job_info",
        ):
            dispatcher.dispatch(kind, payload)

        assert delivery.recipient_ids == [applicant.id] * 4

    def test_job_cancelled_deduplicates_recipients(self):
        users = [make_user(20), make_user(21), make_user(20)]
        delivery = RecordingDelivery()

        result = build_dispatcher(delivery).dispatch(
            "job_cancelled", {"job": make_job(), "applicants": users}
        )

        assert delivery.recipient_ids == [20, 21]
        assert result.recipient_count == 2

    def test_chat_author_is_excluded(self):
        author = make_user(30, first_name="Chatty")
        other = make_user(31)
        message = ChatMessage(id=1, chat_id=9, author=author, body="Are you free on Sunday?")
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "new_chat_message", {"chat_message": message, "recipients": [author, other]}
        )

        assert delivery.recipient_ids == [31]
        assert "Are you free on Sunday?" in delivery.messages[0].text_body
        assert "Chatty" in delivery.messages[0].subject

    def test_comment_by_owner_notifies_nobody(self, owner):
        job = make_job(owner_user_id=owner.id)
        comment = Comment(id=1, job_id=job.id, author=owner, body="Bring gloves")
        delivery = RecordingDelivery()

        result = build_dispatcher(delivery).dispatch(
            "new_job_comment", {"comment": comment, "job": job, "owner": owner}
        )

        assert delivery.messages == []
        assert result.recipient_count == 0

    def test_comment_by_other_notifies_owner(self, owner):
        job = make_job(owner_user_id=owner.id)
        comment = Comment(id=1, job_id=job.id, author=make_user(40), body="Is it indoors?")
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "new_job_comment", {"comment": comment, "job": job, "owner": owner}
        )

        assert delivery.recipient_ids == [owner.id]

    def test_job_match_to_explicit_users(self):
        delivery = RecordingDelivery()
        build_dispatcher(delivery).dispatch(
            "job_match", {"job": make_job(max_rate=200), "users": [make_user(60), make_user(61)]}
        )

        assert delivery.recipient_ids == [60, 61]
        assert "200" in delivery.messages[0].text_body

    def test_user_job_match_uses_match_engine(self, owner):
        job = make_job(owner_user_id=owner.id, skill_ids={CLEANING.id, CARPENTRY.id})
        directory = StaticDirectory(
            users=[
                owner,
                make_user(71, skill_ids={CARPENTRY.id}),
                make_user(70, skill_ids={CLEANING.id}),
                make_user(72, skill_ids={CLEANING.id}),
            ],
            applicant_ids={72},
        )
        delivery = RecordingDelivery()

        build_dispatcher(delivery, directory).dispatch("user_job_match", {"job": job, "owner": owner})

        assert delivery.recipient_ids == [70, 71]

    def test_user_job_match_without_engine_raises(self, owner, renderer):
        notifier = NOTIFIER_REGISTRY[NotificationKind.USER_JOB_MATCH](renderer, RecordingDelivery())

        with pytest.raises(NotificationError):
            notifier.call({"job": make_job(), "owner": owner})

    def test_invoice_created_goes_to_owner(self, owner, application):
        delivery = RecordingDelivery()
        invoice = make_invoice(application=application, external_id="INV-7")

        build_dispatcher(delivery).dispatch("invoice_created", {"invoice": invoice, "owner": owner})

        assert delivery.recipient_ids == [owner.id]
        assert "INV-7" in delivery.messages[0].text_body

    def test_marketing(self):
        delivery = RecordingDelivery()
        build_dispatcher(delivery).dispatch(
            "marketing",
            {"user": make_user(80), "campaign": "Spring jobs", "campaign_body": "Lots of gardening."},
        )

        assert delivery.messages[0].subject == "Spring jobs"
        assert "Lots of gardening." in delivery.messages[0].text_body


class TestUpdateDataReminder:
    """Reminders list exactly what is missing, or are not sent at all."""

    def test_complete_profile_sends_nothing(self, application):
        application.user.phone = "070-1234567"
        application.user.street = "Storgatan 1"
        application.user.zip = "111 22"
        application.user.city = "Stockholm"
        delivery = RecordingDelivery()

        result = build_dispatcher(delivery).dispatch(
            "update_data_reminder", {"job_application": application}
        )

        assert delivery.messages == []
        assert result.recipient_count == 0

    def test_missing_attributes_listed_in_configured_order(self, application):
        application.user.street = "Storgatan 1"
        application.user.zip = "   "
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "update_data_reminder", {"job_application": application}
        )

        assert delivery.recipient_ids == [application.user.id]
        assert "Please add: phone number, postal code, city." in delivery.messages[0].text_body

    def test_missing_skills_and_languages(self, application, renderer):
        user = application.user
        user.phone, user.street, user.zip, user.city = "1", "2", "3", "4"
        user.skill_ids = {CLEANING.id}
        notifier = UpdateDataReminderNotifier(
            renderer, RecordingDelivery(), profile_attributes=["phone"]
        )

        labels = notifier.missing_for(
            user,
            {
                "job_application": application,
                "skills": [CLEANING, CARPENTRY],
                "languages": [SWEDISH, ENGLISH],
            },
        )

        assert labels == ["Carpentry", "English", "Swedish"]

    def test_labels_are_translated(self, application, renderer):
        application.user.system_language = SWEDISH
        notifier = UpdateDataReminderNotifier(
            renderer, RecordingDelivery(), profile_attributes=["phone", "bank_account"]
        )

        labels = notifier.missing_for(application.user, {"job_application": application})

        assert labels == [
            renderer.translator.translate("attributes.phone", "sv"),
            renderer.translator.translate("attributes.bank_account", "sv"),
        ]
        assert labels[0] != renderer.translator.translate("attributes.phone", "en")


class TestMessageContents:
    """Rendered messages carry locale, recipient address and context."""

    def test_locale_follows_system_language(self, owner, application):
        owner.system_language = SWEDISH
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "new_applicant", {"job_application": application, "owner": owner}
        )

        message = delivery.messages[0]
        assert message.locale == "sv"
        assert message.subject == 'Ny sökande till "Paint fence"'
        assert message.text_body.startswith("Hej Olga Owner,")

    def test_unknown_locale_falls_back_to_default(self, owner, application):
        owner.system_language = ARABIC
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "new_applicant", {"job_application": application, "owner": owner}
        )

        assert delivery.messages[0].locale == "en"

    def test_message_metadata(self, owner, application):
        delivery = RecordingDelivery()

        result = build_dispatcher(delivery).dispatch(
            "new_applicant", {"job_application": application, "owner": owner}
        )

        message = delivery.messages[0]
        assert message.to == "user1@example.com"
        assert message.kind == "new_applicant"
        assert message.dispatch_id == result.dispatch_id
        assert "Adam Applicant applied for" in message.text_body
        assert "<html" in message.html_body

    def test_confirmation_deadline_formatted(self, owner, applicant):
        application = make_application(
            user=applicant,
            job=make_job(owner_user_id=owner.id),
            status=ApplicationStatus.ACCEPTED,
            will_perform_confirmation_by=NOW + timedelta(days=1),
        )
        delivery = RecordingDelivery()

        build_dispatcher(delivery).dispatch(
            "applicant_accepted", {"job_application": application, "owner": owner}
        )

        assert "2026-03-03 12:00 UTC" in delivery.messages[0].text_body

    def test_format_datetime_none(self):
        assert format_datetime(None) == ""
