"""Database schema definition and ORM models.

SQLAlchemy ORM models for the marketplace tables, with conversion to the
pydantic domain models. Timestamps are stored as ISO 8601 strings in UTC and
calendar dates as ``YYYY-MM-DD``.
"""

import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from marketplace.domain.models import (
    ApplicationStatus,
    Invoice,
    Job,
    JobApplication,
    Language,
    Location,
    Skill,
    User,
    UserStatus,
)
from marketplace.utils.timestamps import (
    format_date,
    format_timestamp,
    parse_date,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

user_skills = Table(
    "user_skills",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_user_skills_skill", "skill_id"),
)

user_languages = Table(
    "user_languages",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("language_id", Integer, ForeignKey("languages.id", ondelete="CASCADE"), primary_key=True),
)

job_skills = Table(
    "job_skills",
    Base.metadata,
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True),
    Column("skill_id", Integer, ForeignKey("skills.id", ondelete="CASCADE"), primary_key=True),
)

job_languages = Table(
    "job_languages",
    Base.metadata,
    Column("job_id", Integer, ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True),
    Column("language_id", Integer, ForeignKey("languages.id", ondelete="CASCADE"), primary_key=True),
)


class SkillModel(Base):
    """ORM model for the skills lookup table."""

    __tablename__ = "skills"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)

    def to_domain(self) -> Skill:
        return Skill(id=self.id, name=self.name)

    @classmethod
    def from_domain(cls, skill: Skill) -> "SkillModel":
        return cls(id=skill.id, name=skill.name)


class LanguageModel(Base):
    """ORM model for the languages lookup table."""

    __tablename__ = "languages"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    lang_code = Column(String(16), nullable=False, unique=True)

    def to_domain(self) -> Language:
        return Language(id=self.id, name=self.name, lang_code=self.lang_code)

    @classmethod
    def from_domain(cls, language: Language) -> "LanguageModel":
        return cls(id=language.id, name=language.name, lang_code=language.lang_code)


class UserModel(Base):
    """ORM model for the users table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)

    # Profile
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    description = Column(Text, nullable=True)
    street = Column(String(255), nullable=True)
    zip = Column(String(32), nullable=True)
    city = Column(String(255), nullable=True)
    job_experience = Column(Text, nullable=True)
    education = Column(Text, nullable=True)
    competence_text = Column(Text, nullable=True)
    arrived_at = Column(String(10), nullable=True)
    current_status = Column(String(32), nullable=True)
    account_clearing_number = Column(String(32), nullable=True)
    account_number = Column(String(64), nullable=True)

    # Geocoded location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    system_language_id = Column(Integer, ForeignKey("languages.id"), nullable=True)
    admin = Column(Boolean, nullable=False, default=False)
    banned = Column(Boolean, nullable=False, default=False)
    ignored_notifications_mask = Column(Integer, nullable=False, default=0)

    system_language = relationship(LanguageModel, lazy="joined")
    skills = relationship(SkillModel, secondary=user_skills, lazy="selectin")
    languages = relationship(LanguageModel, secondary=user_languages, lazy="selectin")

    __table_args__ = (Index("idx_users_admin", "admin"),)

    def to_domain(self) -> User:
        return User(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            phone=self.phone,
            description=self.description,
            street=self.street,
            zip=self.zip,
            city=self.city,
            job_experience=self.job_experience,
            education=self.education,
            competence_text=self.competence_text,
            arrived_at=parse_date(self.arrived_at),
            current_status=UserStatus(self.current_status) if self.current_status else None,
            account_clearing_number=self.account_clearing_number,
            account_number=self.account_number,
            skill_ids={skill.id for skill in self.skills},
            language_ids={language.id for language in self.languages},
            location=_location(self.latitude, self.longitude),
            system_language=self.system_language.to_domain() if self.system_language else None,
            admin=bool(self.admin),
            banned=bool(self.banned),
            ignored_notifications_mask=self.ignored_notifications_mask or 0,
        )

    def apply_domain(self, user: User) -> None:
        """Copy scalar fields from a domain user (links are set by the repository)."""
        self.email = str(user.email)
        self.first_name = user.first_name
        self.last_name = user.last_name
        self.phone = user.phone
        self.description = user.description
        self.street = user.street
        self.zip = user.zip
        self.city = user.city
        self.job_experience = user.job_experience
        self.education = user.education
        self.competence_text = user.competence_text
        self.arrived_at = format_date(user.arrived_at)
        self.current_status = user.current_status.value if user.current_status else None
        self.account_clearing_number = user.account_clearing_number
        self.account_number = user.account_number
        self.latitude = user.location.latitude if user.location else None
        self.longitude = user.location.longitude if user.location else None
        self.system_language_id = user.system_language.id if user.system_language else None
        self.admin = user.admin
        self.banned = user.banned
        self.ignored_notifications_mask = user.ignored_notifications_mask


class JobModel(Base):
    """ORM model for the jobs table."""

    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    max_rate = Column(Integer, nullable=False, default=0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    job_date = Column(String(50), nullable=True)

    # Soft-state flags
    performed = Column(Boolean, nullable=False, default=False)
    cancelled = Column(Boolean, nullable=False, default=False)
    filled = Column(Boolean, nullable=False, default=False)
    hidden = Column(Boolean, nullable=False, default=False)

    skills = relationship(SkillModel, secondary=job_skills, lazy="selectin")
    languages = relationship(LanguageModel, secondary=job_languages, lazy="selectin")

    __table_args__ = (Index("idx_jobs_owner", "owner_user_id"),)

    def to_domain(self) -> Job:
        return Job(
            id=self.id,
            name=self.name,
            description=self.description,
            owner_user_id=self.owner_user_id,
            skill_ids={skill.id for skill in self.skills},
            language_ids={language.id for language in self.languages},
            max_rate=self.max_rate or 0,
            location=_location(self.latitude, self.longitude),
            job_date=parse_timestamp(self.job_date),
            performed=bool(self.performed),
            cancelled=bool(self.cancelled),
            filled=bool(self.filled),
            hidden=bool(self.hidden),
        )

    def apply_domain(self, job: Job) -> None:
        self.name = job.name
        self.description = job.description
        self.owner_user_id = job.owner_user_id
        self.max_rate = job.max_rate
        self.latitude = job.location.latitude if job.location else None
        self.longitude = job.location.longitude if job.location else None
        self.job_date = format_timestamp(job.job_date)
        self.performed = job.performed
        self.cancelled = job.cancelled
        self.filled = job.filled
        self.hidden = job.hidden


class JobUserModel(Base):
    """ORM model for job applications (``job_users`` table)."""

    __tablename__ = "job_users"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(32), nullable=False, default=ApplicationStatus.APPLIED.value)

    # Timestamps (stored as ISO 8601 strings)
    accepted_at = Column(String(50), nullable=True)
    will_perform_confirmation_by = Column(String(50), nullable=True)
    overdue_notified_at = Column(String(50), nullable=True)
    data_reminder_sent_at = Column(String(50), nullable=True)

    user = relationship(UserModel, lazy="joined")
    job = relationship(JobModel, lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="uq_job_users_user_job"),
        Index("idx_job_users_job", "job_id"),
        Index("idx_job_users_status", "status"),
    )

    def to_domain(self) -> JobApplication:
        return JobApplication(
            id=self.id,
            user=self.user.to_domain(),
            job=self.job.to_domain(),
            status=ApplicationStatus(self.status),
            accepted_at=parse_timestamp(self.accepted_at),
            will_perform_confirmation_by=parse_timestamp(self.will_perform_confirmation_by),
            overdue_notified_at=parse_timestamp(self.overdue_notified_at),
            data_reminder_sent_at=parse_timestamp(self.data_reminder_sent_at),
        )

    def apply_domain(self, application: JobApplication) -> None:
        self.user_id = application.user.id
        self.job_id = application.job.id
        self.status = application.status.value
        self.accepted_at = format_timestamp(application.accepted_at)
        self.will_perform_confirmation_by = format_timestamp(
            application.will_perform_confirmation_by
        )
        self.overdue_notified_at = format_timestamp(application.overdue_notified_at)
        self.data_reminder_sent_at = format_timestamp(application.data_reminder_sent_at)


class InvoiceModel(Base):
    """ORM model for the invoices table."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    job_user_id = Column(Integer, ForeignKey("job_users.id"), nullable=False)
    external_id = Column(String(255), nullable=True)
    activation_error = Column(Text, nullable=True)

    job_user = relationship(JobUserModel, lazy="joined")

    def to_domain(self) -> Invoice:
        return Invoice(
            id=self.id,
            job_application=self.job_user.to_domain(),
            external_id=self.external_id,
            activation_error=self.activation_error,
        )

    def apply_domain(self, invoice: Invoice) -> None:
        self.job_user_id = invoice.job_application.id
        self.external_id = invoice.external_id
        self.activation_error = invoice.activation_error


def _location(latitude: Optional[float], longitude: Optional[float]) -> Optional[Location]:
    """Both coordinates are required for a usable location."""
    if latitude is None or longitude is None:
        return None
    return Location(latitude=latitude, longitude=longitude)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(sorted(tables))}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
