"""Core domain models for the job marketplace.

This module defines the data structures used throughout the application:
- Skill, Language: immutable lookup entities
- Location: a geocoded point
- User: marketplace member with profile traits and a notification mask
- Job: posted job with required skills and lifecycle flags
- JobApplication: a user's application to a job (the "job user")
- Invoice, ChatMessage, Comment: entities carried in notification payloads
- Contact: a contact-form submission forwarded to the admins
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, EmailStr, Field, field_validator

from marketplace.utils.timestamps import ensure_utc

from .mask import NotificationMask

# Stored user attributes that can be asked for in "complete your profile" prompts.
PROFILE_ATTRIBUTES = (
    "first_name",
    "last_name",
    "phone",
    "description",
    "street",
    "zip",
    "city",
    "job_experience",
    "education",
    "competence_text",
    "arrived_at",
    "current_status",
    "account_clearing_number",
    "account_number",
)

VIRTUAL_ATTRIBUTES = ("bank_account",)


class UserStatus(str, Enum):
    """Residence status of a user."""

    ASYLUM_SEEKER = "asylum_seeker"
    PERMANENT_RESIDENCE = "permanent_residence"
    TEMPORARY_RESIDENCE = "temporary_residence"
    EU_CITIZEN = "eu_citizen"
    SWEDISH_CITIZEN = "swedish_citizen"


class ApplicationStatus(str, Enum):
    """Lifecycle status of a job application."""

    APPLIED = "applied"
    ACCEPTED = "accepted"
    WILL_PERFORM = "will_perform"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    PERFORMED = "performed"


class Skill(BaseModel):
    """A skill a job can require and a user can have."""

    id: int = Field(..., description="Skill ID")
    name: str = Field(..., min_length=1, description="Skill name")

    model_config = {"frozen": True}


class Language(BaseModel):
    """A spoken language; also used as a user's system language."""

    id: int = Field(..., description="Language ID")
    name: str = Field(..., min_length=1, description="Language name")
    lang_code: str = Field(..., min_length=2, description="ISO 639-1 code, e.g. 'sv'")

    @field_validator("lang_code")
    @classmethod
    def normalize_lang_code(cls, v: str) -> str:
        """Lowercase and strip the language code."""
        return v.strip().lower()

    model_config = {"frozen": True}


class Location(BaseModel):
    """A geocoded point."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)

    model_config = {"frozen": True}


class User(BaseModel):
    """Marketplace member.

    Holds profile traits used by matching and "complete your profile"
    reminders, and the packed notification mask. The mask is stored as an
    integer so it round-trips through the persistence layer unchanged; use
    ``notification_masked`` / ``set_notification_masked`` instead of touching
    the integer directly.
    """

    id: int = Field(..., description="User ID")
    email: EmailStr = Field(..., description="Contact email address")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    street: Optional[str] = None
    zip: Optional[str] = None
    city: Optional[str] = None
    job_experience: Optional[str] = None
    education: Optional[str] = None
    competence_text: Optional[str] = None
    arrived_at: Optional[date] = None
    current_status: Optional[UserStatus] = None
    account_clearing_number: Optional[str] = None
    account_number: Optional[str] = None
    skill_ids: Set[int] = Field(default_factory=set, description="IDs of the user's skills")
    language_ids: Set[int] = Field(default_factory=set, description="IDs of spoken languages")
    location: Optional[Location] = None
    system_language: Optional[Language] = None
    admin: bool = False
    banned: bool = False
    ignored_notifications_mask: int = Field(0, ge=0, description="Packed suppressed kinds")

    @field_validator("ignored_notifications_mask")
    @classmethod
    def validate_mask(cls, v: int) -> int:
        """Reject masks with bits that belong to no known kind."""
        NotificationMask.from_int(v)
        return v

    def __hash__(self) -> int:
        return hash(("User", self.id))

    @property
    def name(self) -> str:
        """Display name, falling back to the email address."""
        parts = [p for p in (self.first_name, self.last_name) if p and p.strip()]
        return " ".join(parts) if parts else str(self.email)

    @property
    def locale(self) -> Optional[str]:
        """Language code of the user's system language, if any."""
        if self.system_language is None:
            return None
        return self.system_language.lang_code

    @property
    def bank_account(self) -> Optional[str]:
        """Virtual attribute joining clearing number and account number."""
        if is_blank(self.account_clearing_number) or is_blank(self.account_number):
            return None
        return f"{self.account_clearing_number}{self.account_number}"

    def virtual_attributes(self) -> Dict[str, Any]:
        return {"bank_account": self.bank_account}

    def all_attributes(self) -> Dict[str, Any]:
        """Stored profile attributes merged with the virtual ones."""
        attributes = {name: getattr(self, name) for name in PROFILE_ATTRIBUTES}
        attributes.update(self.virtual_attributes())
        return attributes

    @property
    def notification_mask(self) -> NotificationMask:
        return NotificationMask.from_int(self.ignored_notifications_mask)

    @property
    def ignored_notifications(self) -> List[str]:
        """Names of suppressed kinds, in canonical order."""
        return self.notification_mask.ignored

    def notification_masked(self, kind) -> bool:
        """Check whether the user has suppressed ``kind``."""
        return self.notification_mask.masked(kind)

    def set_notification_masked(self, kind, masked: bool = True) -> None:
        """Suppress or re-enable ``kind``; the caller persists the user."""
        mask = self.notification_mask
        mask.set_masked(kind, masked)
        self.ignored_notifications_mask = mask.to_int()

    def set_ignored_notifications(self, names) -> None:
        """Replace the whole mask from a collection of kind names."""
        self.ignored_notifications_mask = NotificationMask.from_names(names).to_int()


class Job(BaseModel):
    """A posted job.

    ``owner_user_id`` identifies the user who created the job; only the owner
    mutates it. ``performed`` and ``cancelled`` are soft-state flags whose
    False-to-True transitions trigger notifications.
    """

    id: int = Field(..., description="Job ID")
    name: str = Field(..., min_length=1, description="Job title")
    description: Optional[str] = None
    owner_user_id: int = Field(..., description="ID of the owning user")
    skill_ids: Set[int] = Field(default_factory=set, description="Required skill IDs")
    language_ids: Set[int] = Field(default_factory=set, description="Required language IDs")
    max_rate: int = Field(0, ge=0, description="Maximum hourly rate")
    location: Optional[Location] = None
    job_date: Optional[datetime] = None
    performed: bool = False
    cancelled: bool = False
    filled: bool = False
    hidden: bool = False

    @field_validator("job_date")
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    def __hash__(self) -> int:
        return hash(("Job", self.id))


class JobApplication(BaseModel):
    """A user's application to a job."""

    id: int = Field(..., description="Application ID")
    user: User = Field(..., description="Applicant")
    job: Job = Field(..., description="Job applied to")
    status: ApplicationStatus = ApplicationStatus.APPLIED
    accepted_at: Optional[datetime] = None
    will_perform_confirmation_by: Optional[datetime] = Field(
        None, description="Deadline for the applicant to confirm after acceptance"
    )
    overdue_notified_at: Optional[datetime] = None
    data_reminder_sent_at: Optional[datetime] = None

    @field_validator(
        "accepted_at",
        "will_perform_confirmation_by",
        "overdue_notified_at",
        "data_reminder_sent_at",
    )
    @classmethod
    def normalize_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @property
    def applicant(self) -> User:
        return self.user

    def confirmation_overdue(self, now: datetime) -> bool:
        """True if accepted, unconfirmed and past the confirmation deadline."""
        return (
            self.status == ApplicationStatus.ACCEPTED
            and self.will_perform_confirmation_by is not None
            and self.will_perform_confirmation_by < ensure_utc(now)
        )


class Invoice(BaseModel):
    """Invoice raised for a performed application."""

    id: int
    job_application: JobApplication
    external_id: Optional[str] = Field(None, description="ID at the invoicing provider")
    activation_error: Optional[str] = None


class ChatMessage(BaseModel):
    """A message posted to a chat between users."""

    id: int
    chat_id: int
    author: User
    body: str = Field(..., min_length=1)


class Comment(BaseModel):
    """A comment posted on a job."""

    id: int
    job_id: int
    author: User
    body: str = Field(..., min_length=1)


class Contact(BaseModel):
    """A message sent through the public contact form."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    body: str = Field(..., min_length=1)

    @field_validator("name", "body")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


def is_blank(value: Any) -> bool:
    """None, empty and whitespace-only strings are all blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (set, list, tuple, dict)):
        return len(value) == 0
    return False
