# backend/edu_erp/services/notification/email_service.py

"""
Email service for sending templated emails with retry logic.

When no SMTP host is configured the service runs in dry-run mode: the
message is logged and reported as sent.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """Email configuration container"""

    smtp_server: Optional[str]
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: str = "noreply@edugrownext.com"
    use_tls: bool = True
    use_ssl: bool = False
    timeout: int = 30
    template_folder: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailConfig":
        return cls(
            smtp_server=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            smtp_from=settings.EMAIL_FROM,
            use_tls=settings.SMTP_STARTTLS,
            use_ssl=settings.SMTP_SSL_TLS,
            timeout=settings.SMTP_TIMEOUT,
            template_folder=settings.MAIL_TEMPLATE_FOLDER,
        )

    @property
    def dry_run(self) -> bool:
        return not self.smtp_server


@dataclass
class EmailMessage:
    """Email message container"""

    subject: str
    recipients: List[str]
    html_body: Optional[str] = None
    text_body: Optional[str] = None
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)


class EmailService:
    """Service for sending templated emails with robust error handling."""

    def __init__(self, config: Optional[EmailConfig] = None):
        self.config = config or EmailConfig.from_settings(get_settings())
        self._template_cache: Dict[str, str] = {}

    async def send_email(
        self,
        subject: str,
        recipients: List[str],
        template_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        html_body: Optional[str] = None,
        text_body: Optional[str] = None,
        cc: Optional[List[str]] = None,
        bcc: Optional[List[str]] = None,
        retry_count: int = 3,
    ) -> bool:
        """
        Send email with template rendering or direct content.

        Args:
            subject: Email subject
            recipients: List of recipient email addresses
            template_name: Name of template to render, without ``.html``
            context: Template context variables, HTML-escaped on render
            html_body: Direct HTML content (optional)
            text_body: Direct text content (optional)
            retry_count: Number of send attempts

        Returns:
            True if email sent successfully, False otherwise
        """
        if not recipients:
            logger.error("No recipients provided")
            return False

        if not subject:
            logger.error("No subject provided")
            return False

        if template_name:
            html_body = self._render_template(template_name, context or {})
            if not html_body:
                logger.error(f"Failed to render template: {template_name}")
                return False

        if not html_body and not text_body:
            logger.error("No email content provided")
            return False

        message = EmailMessage(
            subject=subject,
            recipients=list(recipients),
            html_body=html_body,
            text_body=text_body,
            cc=cc or [],
            bcc=bcc or [],
        )

        if self.config.dry_run:
            logger.info(f"Email would be sent to {recipients}: {subject}")
            return True

        for attempt in range(retry_count):
            try:
                await self._send_message(message)
                logger.info(f"Email sent successfully to {recipients}")
                return True
            except (smtplib.SMTPException, OSError) as e:
                logger.warning(f"Email send attempt {attempt + 1} failed: {e}")
                if attempt == retry_count - 1:
                    logger.error(f"Failed to send email after {retry_count} attempts")
                    return False
                await asyncio.sleep(2**attempt)  # Exponential backoff

        return False

    def _render_template(
        self, template_name: str, context: Dict[str, Any]
    ) -> Optional[str]:
        """Substitute ``{{key}}`` placeholders in a cached template."""
        template_content = self._template_cache.get(template_name)
        if template_content is None:
            template_content = self._load_template(template_name)
            if template_content is None:
                return None
            self._template_cache[template_name] = template_content

        rendered = template_content
        for key, value in context.items():
            placeholder = f"{{{{{key}}}}}"
            rendered = rendered.replace(placeholder, html.escape(str(value)))

        return rendered

    def _load_template(self, template_name: str) -> Optional[str]:
        """Load template from the configured folder"""
        template_paths = []
        if self.config.template_folder:
            template_paths.append(
                Path(self.config.template_folder) / f"{template_name}.html"
            )
        template_paths.append(Path(__file__).parent / "templates" / f"{template_name}.html")

        for template_path in template_paths:
            if template_path.exists():
                return template_path.read_text(encoding="utf-8")

        logger.warning(f"Template not found: {template_name}")
        return None

    async def _send_message(self, message: EmailMessage) -> None:
        """Build the MIME message and send it via SMTP"""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.config.smtp_from
        msg["To"] = ", ".join(message.recipients)

        if message.cc:
            msg["Cc"] = ", ".join(message.cc)

        if message.text_body:
            msg.attach(MIMEText(message.text_body, "plain", "utf-8"))

        if message.html_body:
            msg.attach(MIMEText(message.html_body, "html", "utf-8"))

        all_recipients = message.recipients + message.cc + message.bcc
        await self._send_via_smtp(msg, all_recipients)

    async def _send_via_smtp(self, msg: MIMEMultipart, recipients: List[str]) -> None:
        """Send email via SMTP server"""

        def _send_sync():
            if self.config.use_ssl:
                server = smtplib.SMTP_SSL(
                    self.config.smtp_server,
                    self.config.smtp_port,
                    timeout=self.config.timeout,
                )
            else:
                server = smtplib.SMTP(
                    self.config.smtp_server,
                    self.config.smtp_port,
                    timeout=self.config.timeout,
                )

            try:
                if self.config.use_tls and not self.config.use_ssl:
                    server.starttls(context=ssl.create_default_context())

                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)

                server.send_message(msg, to_addrs=recipients)
            finally:
                server.quit()

        # Run in executor to avoid blocking
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _send_sync)
