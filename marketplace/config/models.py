"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from marketplace.domain.models import PROFILE_ATTRIBUTES, VIRTUAL_ATTRIBUTES

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class MatchingConfig(BaseModel):
    """User-to-job matching rules."""

    radius_km: float = Field(
        50.0, gt=0, le=20000, description="Maximum user-to-job distance in kilometres"
    )


class LocalizationConfig(BaseModel):
    """Locale settings for outgoing messages."""

    default_locale: str = Field("en", min_length=2, description="Fallback locale")
    available_locales: List[str] = Field(
        default_factory=lambda: ["en", "sv"],
        min_length=1,
        description="Locales with a shipped translation catalog",
    )

    @field_validator("default_locale")
    @classmethod
    def normalize_default(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("available_locales")
    @classmethod
    def normalize_available(cls, v: List[str]) -> List[str]:
        normalized = []
        for code in v:
            stripped = code.strip().lower()
            if stripped and stripped not in normalized:
                normalized.append(stripped)
        return normalized

    @model_validator(mode="after")
    def default_must_be_available(self):
        if self.default_locale not in self.available_locales:
            raise ValueError(
                f"default_locale '{self.default_locale}' is not in available_locales "
                f"({', '.join(self.available_locales)})"
            )
        return self


class RemindersConfig(BaseModel):
    """Periodic reminder sweep settings."""

    enabled: bool = Field(True, description="Run the reminder sweep in daemon mode")
    sweep_interval: str = Field("1h", description="Interval between sweeps")
    confirmation_overdue: bool = Field(
        True, description="Notify owners about overdue applicant confirmations"
    )
    data_reminders: bool = Field(
        True, description="Remind applicants to complete missing profile data"
    )
    profile_attributes: List[str] = Field(
        default_factory=lambda: ["phone", "description", "street", "zip", "city"],
        description="Profile attributes an applicant is reminded to fill in",
    )

    # Computed field
    sweep_interval_seconds: Optional[int] = None

    @field_validator("sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v: str) -> str:
        try:
            validate_duration_range(parse_duration(v))
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("profile_attributes")
    @classmethod
    def validate_profile_attributes(cls, v: List[str]) -> List[str]:
        known = set(PROFILE_ATTRIBUTES) | set(VIRTUAL_ATTRIBUTES)
        unknown = [name for name in v if name not in known]
        if unknown:
            raise ValueError(f"Unknown profile attributes: {', '.join(unknown)}")
        return v

    @model_validator(mode="after")
    def compute_interval_seconds(self):
        self.sweep_interval_seconds = parse_duration(self.sweep_interval)
        return self


class EmailConfig(BaseModel):
    """Mail queue and SMTP retry settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    max_retries: int = Field(
        3, ge=0, le=10, description="Number of retry attempts for failed sends"
    )
    retry_backoff_multiplier: float = Field(
        2.0, ge=1.0, le=5.0, description="Exponential backoff multiplier for retries"
    )
    retry_initial_delay: float = Field(
        5, ge=0, le=60, description="Initial retry delay in seconds"
    )
    queue_size: int = Field(
        1000, ge=1, le=100000, description="Maximum number of messages waiting for delivery"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the marketplace notifier."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    localization: LocalizationConfig = Field(default_factory=LocalizationConfig)
    reminders: RemindersConfig = Field(default_factory=RemindersConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
