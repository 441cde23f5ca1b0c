#!/usr/bin/env python3
"""Sample dispatch harness for end-to-end validation.

Seeds a throwaway SQLite database with a handful of users and one job, then
drives the lifecycle hooks and one reminder sweep through the real
dispatcher, renderer and mail queue. SMTP is patched out: every message
that would have been sent is printed instead.

Usage:
    # Defaults: config.example.yaml, data/sample_dispatch.db
    python scripts/run_sample_dispatch.py

    # Custom config and database path
    python scripts/run_sample_dispatch.py --config config.yaml --database /tmp/sample.db

    # Print the full plain-text bodies
    python scripts/run_sample_dispatch.py --show-bodies
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from marketplace.config.environment import EnvironmentConfig
from marketplace.config.loader import load_app_config
from marketplace.domain.kinds import NotificationKind
from marketplace.domain.mask import NotificationMask
from marketplace.domain.models import (
    ApplicationStatus,
    Contact,
    Job,
    JobApplication,
    Language,
    Location,
    Skill,
    User,
)
from marketplace.logging.config import configure_logging
from marketplace.main import build_services
from marketplace.persistence import (
    JobApplicationRepository,
    JobRepository,
    LanguageRepository,
    SkillRepository,
    UserRepository,
    close_database,
    get_session,
    init_database,
)
from marketplace.utils.timestamps import utc_now

STOCKHOLM = Location(latitude=59.3293, longitude=18.0686)
SODERTALJE = Location(latitude=59.1955, longitude=17.6253)
GOTHENBURG = Location(latitude=57.7089, longitude=11.9746)

ENGLISH = Language(id=1, name="English", lang_code="en")
SWEDISH = Language(id=2, name="Swedish", lang_code="sv")
CLEANING = Skill(id=1, name="Cleaning")
CARPENTRY = Skill(id=2, name="Carpentry")


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def seed_database():
    """Store the sample users, job and applications; return (owner, job, applications)."""
    now = utc_now()
    users = [
        User(id=1, email="olga@example.com", first_name="Olga", last_name="Owner",
             location=STOCKHOLM, system_language=SWEDISH),
        User(id=2, email="adam@example.com", first_name="Adam", last_name="Applicant",
             location=STOCKHOLM, skill_ids={CLEANING.id}, system_language=ENGLISH),
        User(id=3, email="sara@example.com", first_name="Sara", last_name="Svensson",
             location=SODERTALJE, skill_ids={CLEANING.id}, language_ids={SWEDISH.id},
             system_language=SWEDISH),
        User(id=4, email="gustav@example.com", first_name="Gustav",
             location=GOTHENBURG, skill_ids={CLEANING.id}),
        User(id=5, email="mia@example.com", first_name="Mia", location=STOCKHOLM,
             skill_ids={CLEANING.id},
             ignored_notifications_mask=NotificationMask([NotificationKind.USER_JOB_MATCH]).to_int()),
        User(id=9, email="admin@example.com", first_name="Ada", last_name="Admin", admin=True),
    ]
    job = Job(id=100, name="Spring cleaning", owner_user_id=1, skill_ids={CLEANING.id, CARPENTRY.id},
              language_ids={SWEDISH.id}, max_rate=180, location=STOCKHOLM)

    with get_session() as session:
        for skill in (CLEANING, CARPENTRY):
            SkillRepository(session).save(skill)
        for language in (ENGLISH, SWEDISH):
            LanguageRepository(session).save(language)
        for user in users:
            UserRepository(session).save(user)
        job = JobRepository(session).save(job)
        applications = JobApplicationRepository(session)
        accepted = applications.save(
            JobApplication(
                id=500,
                user=users[1],
                job=job,
                status=ApplicationStatus.ACCEPTED,
                accepted_at=now - timedelta(days=2),
                will_perform_confirmation_by=now - timedelta(days=1),
            )
        )
        applied = applications.save(JobApplication(id=501, user=users[2], job=job))

    return users[0], job, [accepted, applied]


def main():
    """Main entry point for the sample dispatch harness."""
    parser = argparse.ArgumentParser(
        description="Run sample notifications for end-to-end validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.example.yaml"),
        help="Path to configuration file (default: config.example.yaml)",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=Path("data/sample_dispatch.db"),
        help="Path to SQLite database (default: data/sample_dispatch.db)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)",
    )
    parser.add_argument("--show-bodies", action="store_true", help="Print plain-text bodies")
    args = parser.parse_args()

    print_header("Job Marketplace Notifier - Sample Dispatch Harness")
    print(f"Configuration file: {args.config}")
    print(f"Database: {args.database}")

    if args.database.exists():
        print(f"\n❌ Error: {args.database} already exists; remove it or pick another path")
        return 1

    sent = []

    def record(email):
        sent.append(email)

    try:
        app_config = load_app_config(args.config)
        configure_logging(
            level=args.log_level, format_type=app_config.logging.format, environment="validation"
        )
        env_config = EnvironmentConfig(
            smtp_host="localhost",
            smtp_port=25,
            mail_from="noreply@example.com",
            database_url=f"sqlite:///{args.database.absolute()}",
        )

        init_database(env_config.database_url)
        owner, job, applications = seed_database()
        services = build_services(app_config, env_config)

        with patch.object(services.mail_queue.smtp_client, "send", side_effect=record):
            services.mail_queue.start()

            print("\n🚀 Dispatching lifecycle events...")
            services.lifecycle.job_created(job, owner)
            services.lifecycle.application_created(applications[1], owner)
            services.lifecycle.password_reset_requested(owner, "SAMPLE-TOKEN")
            services.lifecycle.contact_submitted(
                Contact(name="Vera Visitor", email="vera@example.com", body="Do you hire in Uppsala?")
            )

            print("🔁 Running one reminder sweep...")
            result = services.sweep.run_once()

            services.mail_queue.stop(drain=True)

        print_header(f"Messages ({len(sent)})")
        for email in sent:
            print(f"[{email['Content-Language']}] {email['To']:<22} {email['Subject']}")
            if args.show_bodies:
                print(email.get_body(("plain",)).get_content())
                print("-" * 80)

        print_header("Sweep Summary")
        print(f"Overdue found:          {result.overdue_found}")
        print(f"Overdue notified:       {result.overdue_notified}")
        print(f"Data reminders checked: {result.data_reminders_checked}")
        print(f"Data reminders sent:    {result.data_reminders_sent}")
        print(f"Errors:                 {result.errors}")
        print(f"\nTo clean up: rm {args.database.absolute()}")

        close_database()
        return 1 if result.had_errors else 0

    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
