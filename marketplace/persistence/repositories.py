"""Data access layer (repositories).

Repositories wrap a SQLAlchemy session and speak in domain models; ORM models
never leave this package. Writes are flushed but not committed: the
surrounding ``get_session()`` block owns the transaction.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.domain.models import (
    ApplicationStatus,
    Invoice,
    Job,
    JobApplication,
    Language,
    Skill,
    User,
)
from marketplace.utils.timestamps import format_timestamp

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    InvoiceModel,
    JobModel,
    JobUserModel,
    LanguageModel,
    SkillModel,
    UserModel,
)

logger = logging.getLogger(__name__)


def _load_links(session: Session, model_cls, ids: Iterable[int]) -> list:
    """Fetch lookup rows for ``ids``; unknown IDs are an integrity error."""
    wanted = sorted(set(ids))
    if not wanted:
        return []
    rows = session.execute(select(model_cls).where(model_cls.id.in_(wanted))).scalars().all()
    missing = set(wanted) - {row.id for row in rows}
    if missing:
        raise DataIntegrityError(
            f"Unknown {model_cls.__tablename__} id(s): {', '.join(str(i) for i in sorted(missing))}"
        )
    return list(rows)


class SkillRepository:
    """Repository for the skills lookup table."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, skill_id: int) -> Optional[Skill]:
        try:
            model = self.session.get(SkillModel, skill_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving skill {skill_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve skill: {e}") from e

    def list_by_ids(self, skill_ids: Iterable[int]) -> List[Skill]:
        try:
            stmt = select(SkillModel).where(SkillModel.id.in_(list(skill_ids))).order_by(SkillModel.id)
            return [m.to_domain() for m in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing skills: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list skills: {e}") from e

    def save(self, skill: Skill) -> Skill:
        try:
            existing = self.session.get(SkillModel, skill.id)
            if existing:
                existing.name = skill.name
                model = existing
            else:
                model = SkillModel.from_domain(skill)
                self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error saving skill {skill.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to save skill due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving skill {skill.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save skill: {e}") from e


class LanguageRepository:
    """Repository for the languages lookup table."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, language_id: int) -> Optional[Language]:
        try:
            model = self.session.get(LanguageModel, language_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving language {language_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve language: {e}") from e

    def get_by_code(self, lang_code: str) -> Optional[Language]:
        try:
            stmt = select(LanguageModel).where(LanguageModel.lang_code == lang_code.strip().lower())
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving language {lang_code}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve language: {e}") from e

    def save(self, language: Language) -> Language:
        try:
            existing = self.session.get(LanguageModel, language.id)
            if existing:
                existing.name = language.name
                existing.lang_code = language.lang_code
                model = existing
            else:
                model = LanguageModel.from_domain(language)
                self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error saving language {language.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to save language due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving language {language.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save language: {e}") from e


class UserRepository:
    """Repository for users, including their skill and language links."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        """Retrieve a user by ID, or None if absent."""
        try:
            model = self.session.get(UserModel, user_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving user {user_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve user: {e}") from e

    def find(self, user_id: int) -> User:
        """Retrieve a user by ID.

        Raises:
            RecordNotFoundError: If no such user exists
        """
        user = self.get(user_id)
        if user is None:
            raise RecordNotFoundError(f"User with id {user_id} not found")
        return user

    def save(self, user: User) -> User:
        """Insert or update a user, replacing its skill and language links.

        The notification mask is written as the packed integer.

        Raises:
            DataIntegrityError: On unique/foreign key violations or unknown links
            PersistenceError: If a database error occurs
        """
        try:
            model = self.session.get(UserModel, user.id)
            if model is None:
                model = UserModel(id=user.id)
                self.session.add(model)
            model.apply_domain(user)
            model.skills = _load_links(self.session, SkillModel, user.skill_ids)
            model.languages = _load_links(self.session, LanguageModel, user.language_ids)
            model.system_language = (
                self.session.get(LanguageModel, user.system_language.id)
                if user.system_language
                else None
            )
            self.session.flush()
            return model.to_domain()
        except DataIntegrityError:
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error saving user {user.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to save user due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving user {user.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save user: {e}") from e

    def admins(self) -> List[User]:
        """All administrators, ordered by ID. Banned admins are included."""
        try:
            stmt = select(UserModel).where(UserModel.admin.is_(True)).order_by(UserModel.id)
            return [m.to_domain() for m in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving admins: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve admins: {e}") from e

    def find_by_any_skill(self, skill_ids: Iterable[int]) -> List[User]:
        """Users having at least one of ``skill_ids``, each returned once."""
        wanted = list(set(skill_ids))
        if not wanted:
            return []
        try:
            stmt = (
                select(UserModel)
                .where(UserModel.skills.any(SkillModel.id.in_(wanted)))
                .order_by(UserModel.id)
            )
            return [m.to_domain() for m in self.session.execute(stmt).scalars().unique().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error finding users by skill: {e}", exc_info=True)
            raise PersistenceError(f"Failed to find users by skill: {e}") from e


class JobRepository:
    """Repository for jobs."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, job_id: int) -> Optional[Job]:
        try:
            model = self.session.get(JobModel, job_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    def find(self, job_id: int) -> Job:
        job = self.get(job_id)
        if job is None:
            raise RecordNotFoundError(f"Job with id {job_id} not found")
        return job

    def save(self, job: Job) -> Job:
        """Insert or update a job and its required skills and languages."""
        try:
            model = self.session.get(JobModel, job.id)
            if model is None:
                model = JobModel(id=job.id)
                self.session.add(model)
            model.apply_domain(job)
            model.skills = _load_links(self.session, SkillModel, job.skill_ids)
            model.languages = _load_links(self.session, LanguageModel, job.language_ids)
            self.session.flush()
            return model.to_domain()
        except DataIntegrityError:
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error saving job {job.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to save job due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving job {job.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save job: {e}") from e


class JobApplicationRepository:
    """Repository for job applications and the reminder sweep queries."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, application_id: int) -> Optional[JobApplication]:
        try:
            model = self.session.get(JobUserModel, application_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving application {application_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve application: {e}") from e

    def find(self, application_id: int) -> JobApplication:
        application = self.get(application_id)
        if application is None:
            raise RecordNotFoundError(f"Job application with id {application_id} not found")
        return application

    def save(self, application: JobApplication) -> JobApplication:
        try:
            model = self.session.get(JobUserModel, application.id)
            if model is None:
                model = JobUserModel(id=application.id)
                self.session.add(model)
            model.apply_domain(application)
            self.session.flush()
            # Reload relationships after user_id/job_id changed.
            self.session.refresh(model)
            return model.to_domain()
        except IntegrityError as e:
            logger.error(
                f"Integrity error saving application {application.id}: {e}", exc_info=True
            )
            raise DataIntegrityError(
                f"Failed to save application due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving application {application.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save application: {e}") from e

    def for_job(self, job_id: int) -> List[JobApplication]:
        """All applications for a job, in creation (ID) order."""
        try:
            stmt = select(JobUserModel).where(JobUserModel.job_id == job_id).order_by(JobUserModel.id)
            return [m.to_domain() for m in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving applications for job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve applications: {e}") from e

    def applicant_ids_for_job(self, job_id: int) -> set:
        """IDs of every user with an application for the job, in any status."""
        try:
            stmt = select(JobUserModel.user_id).where(JobUserModel.job_id == job_id)
            return set(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving applicant ids for job {job_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve applicant ids: {e}") from e

    def confirmation_overdue(self, now: datetime) -> List[JobApplication]:
        """Accepted applications past their confirmation deadline, not yet notified."""
        try:
            stmt = (
                select(JobUserModel)
                .where(
                    JobUserModel.status == ApplicationStatus.ACCEPTED.value,
                    JobUserModel.will_perform_confirmation_by.is_not(None),
                    JobUserModel.will_perform_confirmation_by < format_timestamp(now),
                    JobUserModel.overdue_notified_at.is_(None),
                )
                .order_by(JobUserModel.will_perform_confirmation_by.asc())
            )
            return [m.to_domain() for m in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving overdue confirmations: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve overdue confirmations: {e}") from e

    def pending_data_reminders(self) -> List[JobApplication]:
        """Applications still in ``applied`` that have never had a data reminder."""
        try:
            stmt = (
                select(JobUserModel)
                .where(
                    JobUserModel.status == ApplicationStatus.APPLIED.value,
                    JobUserModel.data_reminder_sent_at.is_(None),
                )
                .order_by(JobUserModel.id)
            )
            return [m.to_domain() for m in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving pending data reminders: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve pending data reminders: {e}") from e

    def mark_overdue_notified(self, application_id: int, timestamp: datetime) -> None:
        self._stamp(application_id, overdue_notified_at=format_timestamp(timestamp))

    def mark_data_reminder_sent(self, application_id: int, timestamp: datetime) -> None:
        self._stamp(application_id, data_reminder_sent_at=format_timestamp(timestamp))

    def _stamp(self, application_id: int, **values) -> None:
        try:
            stmt = update(JobUserModel).where(JobUserModel.id == application_id).values(**values)
            result = self.session.execute(stmt)
            self.session.flush()
            if result.rowcount == 0:
                raise RecordNotFoundError(f"Job application with id {application_id} not found")
        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating application {application_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update application: {e}") from e


class InvoiceRepository:
    """Repository for invoices."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, invoice_id: int) -> Optional[Invoice]:
        try:
            model = self.session.get(InvoiceModel, invoice_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving invoice {invoice_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve invoice: {e}") from e

    def find(self, invoice_id: int) -> Invoice:
        invoice = self.get(invoice_id)
        if invoice is None:
            raise RecordNotFoundError(f"Invoice with id {invoice_id} not found")
        return invoice

    def save(self, invoice: Invoice) -> Invoice:
        try:
            model = self.session.get(InvoiceModel, invoice.id)
            if model is None:
                model = InvoiceModel(id=invoice.id)
                self.session.add(model)
            model.apply_domain(invoice)
            self.session.flush()
            self.session.refresh(model)
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error saving invoice {invoice.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to save invoice due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error saving invoice {invoice.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save invoice: {e}") from e
