"""Email integration for transactional mail (password reset)."""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
import logging

from fastapi.concurrency import run_in_threadpool

from core.errors import DependencyFailure
from core.utils.formatting import mask_email

logger = logging.getLogger(__name__)

RESET_EMAIL_FAILED = "Unable to send reset email right now"


class EmailService:
    """Email service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        """
        Initialize email service.

        Args:
            smtp_host: SMTP server host
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_email: Default sender address
            use_tls: Whether to upgrade the connection with STARTTLS
            timeout: Socket timeout in seconds
        """
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_email = from_email or smtp_user
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "EmailService":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_email=settings.email_from,
            use_tls=settings.smtp_use_tls,
        )

    def send_email(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
    ) -> None:
        """
        Send a message synchronously.

        Raises:
            smtplib.SMTPException, OSError: transport failure
        """
        msg = MIMEMultipart("alternative")
        msg['From'] = self.from_email or ""
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))

        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg, from_addr=self.from_email, to_addrs=[to_email])

        logger.info(f"Email sent to {mask_email(to_email)}")

    async def send_password_reset_email(self, to_email: str, reset_link: str) -> None:
        """
        Send the reset link without blocking the event loop.

        Raises:
            DependencyFailure: the SMTP transport failed
        """
        subject = "Reset your password"
        body = f"Reset your password using this link: {reset_link} (expires soon)."
        html_body = (
            "<p>Click to reset your password:</p>"
            f'<p><a href="{reset_link}">{reset_link}</a></p>'
        )
        try:
            await run_in_threadpool(self.send_email, to_email, subject, body, html_body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send reset email to {mask_email(to_email)}: {e}")
            raise DependencyFailure(RESET_EMAIL_FAILED) from e
