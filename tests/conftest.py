"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from marketplace.notifications.templates import TemplateRenderer
from marketplace.notifications.translations import Translator
from marketplace.persistence import close_database, init_database
from tests.helpers import RecordingDelivery

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def translator():
    return Translator()


@pytest.fixture
def renderer(translator):
    return TemplateRenderer(translator)


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def database(tmp_path):
    """Initialize a fresh SQLite database file for one test."""
    init_database(f"sqlite:///{tmp_path / 'marketplace.db'}")
    yield
    close_database()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Minimal valid environment for load_environment_config()."""
    env = {
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": "587",
        "SMTP_USER": "mailer@example.com",
        "SMTP_PASS": "secret",
        "MAIL_FROM": "noreply@example.com",
    }
    for name in ("SMTP_SENDER_NAME", "LOG_LEVEL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return env
