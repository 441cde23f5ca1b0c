"""SMTP client wrapper for email delivery.

A thin wrapper around smtplib handling implicit TLS (port 465), STARTTLS,
optional authentication and connection cleanup.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from marketplace.config.environment import EnvironmentConfig

from .models import MailDeliveryError

logger = logging.getLogger(__name__)


class SMTPClient:
    """Sends EmailMessages over SMTP, one connection per message.

    The smtplib factories can be injected so tests never open sockets.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        timeout: float = 30.0,
    ):
        self.env_config = env_config
        self.use_tls = use_tls
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        """Deliver ``message``.

        Raises:
            MailDeliveryError: If the attempt fails for any reason
        """
        host = self.env_config.smtp_host
        port = self.env_config.smtp_port
        smtp = None
        try:
            if port == 465:
                logger.debug(f"Connecting to {host}:{port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    host, port, context=ssl.create_default_context(), timeout=self.timeout
                )
            else:
                logger.debug(f"Connecting to {host}:{port}")
                smtp = self.smtp_factory(host, port, timeout=self.timeout)
                if self.use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if self.env_config.smtp_user and self.env_config.smtp_pass:
                smtp.login(self.env_config.smtp_user, self.env_config.smtp_pass)

            smtp.send_message(message)
            logger.debug(f"Message sent to {message['To']}")

        except smtplib.SMTPException as e:
            raise MailDeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise MailDeliveryError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def validate_recipient(address: str) -> str:
    """Normalize a recipient address.

    Raises:
        ValueError: If the address is invalid
    """
    try:
        return validate_email(address, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid recipient address '{address}': {e}") from e


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the From header: MAIL_FROM, else SMTP_USER, else noreply@SMTP_HOST.

    Example:
        "Job Marketplace <noreply@smtp.example.com>"
    """
    sender_email = env_config.mail_from or env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{sender_email}>"
