"""Close protection enquiry delivery over SMTP."""

import html
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib
from loguru import logger

from ...core.config.settings import BookingSettings, get_settings
from ...core.exceptions import NotificationError
from ...core.retry import get_notification_retry
from ...models.payloads import EnquiryPayload
from ...utils.masking import mask_email

SUBJECT_PREFIX = "Close Protection Enquiry"


def render_enquiry(payload: EnquiryPayload) -> str:
    """Render an enquiry as an HTML email body with escaped user input."""
    rows = [
        ("Name", payload["name"]),
        ("Email", payload["email"]),
        ("Phone", payload["phone"]),
        ("Threat level", payload["threat_level"]),
        ("Requirements", payload["requirements"] or "None provided"),
        ("Booking", payload["booking_context"]),
        ("Submitted", payload["submitted_at"]),
    ]
    table = "".join(
        f"<tr><th align='left'>{html.escape(label)}</th>"
        f"<td>{html.escape(str(value)).replace(chr(10), '<br>')}</td></tr>"
        for label, value in rows
    )
    return f"""
    <html>
        <body>
            <h2>{SUBJECT_PREFIX}</h2>
            <table>{table}</table>
        </body>
    </html>
    """


class SmtpEnquiryDispatcher:
    """Send close protection enquiries to the operations mailbox."""

    def __init__(self, settings: Optional[BookingSettings] = None, attempts: int = 3):
        """
        Initialize dispatcher.

        Args:
            settings: SMTP settings, defaults to ``get_settings()``
            attempts: Delivery attempts for transient transport errors
        """
        self._settings = settings or get_settings()
        self._send_with_retry = get_notification_retry(attempts=attempts)(self._send_message)

    def build_message(self, payload: EnquiryPayload) -> MIMEMultipart:
        settings = self._settings
        message = MIMEMultipart()
        message["From"] = settings.enquiry_sender
        message["To"] = settings.enquiry_recipient
        message["Reply-To"] = payload["email"]
        message["Subject"] = f"{SUBJECT_PREFIX}: {payload['name']} ({payload['threat_level']})"
        message.attach(MIMEText(render_enquiry(payload), "html"))
        return message

    async def _send_message(self, message: MIMEMultipart) -> None:
        settings = self._settings
        async with aiosmtplib.SMTP(
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            start_tls=settings.smtp_use_tls,
        ) as smtp:
            if settings.smtp_username and settings.smtp_password:
                await smtp.login(
                    settings.smtp_username, settings.smtp_password.get_secret_value()
                )
            await smtp.send_message(message)

    async def send_enquiry(self, payload: EnquiryPayload) -> None:
        """
        Deliver one enquiry.

        Raises:
            NotificationError: Delivery failed after all attempts
        """
        message = self.build_message(payload)
        try:
            await self._send_with_retry(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Enquiry email failed: {e}") from e
        logger.info(f"Enquiry email sent for {mask_email(payload['email'])}")
