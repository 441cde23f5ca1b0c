"""Template rendering for notification emails using Jinja2.

Subjects and bodies are Jinja2 strings taken from the locale catalogs
(``mailer.<kind>.subject`` / ``mailer.<kind>.body``). The rendered body is
then wrapped in the packaged layouts under ``email_templates/``. All
templates use ``StrictUndefined`` so a missing variable fails loudly.
"""

import logging
from typing import Any, Dict, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from marketplace.domain.kinds import NotificationKind

from .models import NotificationTemplateError, RenderedMessage
from .translations import Translator, is_missing

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders subject, plain text and HTML bodies for one recipient."""

    def __init__(
        self,
        translator: Translator,
        template_dir: str = "email_templates",
        html_layout: str = "notification.html.j2",
        text_layout: str = "notification.txt.j2",
    ):
        """Initialize template renderer with Jinja2 environments.

        Args:
            translator: Source of subject/body strings and layout labels
            template_dir: Directory name within the marketplace.notifications package
            html_layout: Filename of the HTML layout
            text_layout: Filename of the plain text layout
        """
        self.translator = translator
        self.html_layout_name = html_layout
        self.text_layout_name = text_layout

        self.env = Environment(
            loader=PackageLoader("marketplace.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        # Catalog strings are plain text; escaping happens in the HTML layout.
        self.string_env = Environment(autoescape=False, undefined=StrictUndefined)

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, kind: str, locale: str, context: Dict[str, Any]) -> RenderedMessage:
        """Render the message for ``kind`` in ``locale``.

        Raises:
            NotificationTemplateError: If a catalog string is missing or a
                template fails to render
        """
        subject_src = self._catalog_string(f"mailer.{kind}.subject", locale)
        body_src = self._catalog_string(f"mailer.{kind}.body", locale)

        try:
            subject = self.string_env.from_string(subject_src).render(context)
            subject = " ".join(subject.split())
            body = self.string_env.from_string(body_src).render(context).strip()

            layout_context = {
                "subject": subject,
                "greeting": self.string_env.from_string(
                    self.translator.translate("mailer.greeting", locale)
                ).render(context),
                "paragraphs": [p.strip() for p in body.split("\n\n") if p.strip()],
                "body": body,
                "signature": self.translator.translate("mailer.signature", locale),
                "footer": self._footer(kind, locale),
                "locale": locale,
            }

            text_body = self.env.get_template(self.text_layout_name).render(layout_context)
            html_body = self.env.get_template(self.html_layout_name).render(layout_context)

        except TemplateError as e:
            error_msg = f"Template rendering failed for '{kind}' ({locale}): {e}"
            logger.error(
                error_msg,
                exc_info=True,
                extra={"event": "notification.template.failed", "locale": locale},
            )
            raise NotificationTemplateError(error_msg) from e

        logger.debug(
            f"Rendered '{kind}' in {locale}",
            extra={"event": "notification.template.rendered", "locale": locale},
        )
        return RenderedMessage(subject=subject, text_body=text_body, html_body=html_body)

    def _catalog_string(self, key: str, locale: str) -> str:
        text = self.translator.translate(key, locale)
        if is_missing(text):
            raise NotificationTemplateError(f"No template text for '{key}' in locale '{locale}'")
        return text

    def _footer(self, kind: str, locale: str) -> Optional[str]:
        """Explain why the mail was sent and that it can be turned off.

        Transactional kinds cannot be masked and get no footer.
        """
        try:
            maskable = NotificationKind(kind)
        except ValueError:
            return None

        template = self.translator.translate("mailer.footer", locale)
        return self.string_env.from_string(template).render(
            name=self.translator.translate(f"notifications.{maskable.value}", locale),
            description=self.translator.translate(
                f"notifications.{maskable.value}_description", locale
            ),
        )
