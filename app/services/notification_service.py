import asyncio
import smtplib
import ssl
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.core.config import Settings
from app.core.exceptions import NotificationFailure
from app.core.logger import logger


class EmailNotifier:
    """Sends HTML email over SMTP. Raises ``NotificationFailure`` on any delivery error."""

    def __init__(self, settings: Settings):
        self.enabled = settings.EMAIL_ENABLED
        self.from_address = settings.EMAIL_FROM_ADDRESS
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.timeout = settings.SMTP_TIMEOUT_SECONDS

    async def send(self, to: str, subject: str, html: str) -> None:
        if not self.enabled:
            logger.info(f"Email disabled, skipping '{subject}' to {to}")
            return
        try:
            await asyncio.to_thread(self._send_smtp, to, subject, html)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(to, str(e)) from e
        logger.info(f"Email '{subject}' sent to {to}")

    def _send_smtp(self, to: str, subject: str, html: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            if self.use_tls:
                server.starttls(context=context)
        try:
            if self.username:
                server.login(self.username, self.password or "")
            server.sendmail(self.from_address.split("<")[-1].rstrip(">"), [to], msg.as_string())
        finally:
            server.quit()


async def deliver(notifier: EmailNotifier, to: str, subject: str, html: str) -> bool:
    """Best-effort send: failures are logged and reported as ``False``."""
    try:
        await notifier.send(to, subject, html)
    except NotificationFailure as e:
        logger.error(f"Notification failure: {e}")
        return False
    return True


def reschedule_email(name: str, appt_date: date, old_time: str, new_time: str) -> tuple[str, str]:
    html = f"""
        <p>Hello {name},</p>
        <p>Your appointment on {appt_date.strftime("%B %d, %Y")} has been rescheduled due to a change in the doctor's schedule.</p>
        <p><strong>Old Time:</strong> {old_time}</p>
        <p><strong>New Time:</strong> {new_time}</p>
        <p>Thank you for understanding.</p>
    """
    return "Appointment Time Updated", html


def confirmation_email(name: str, doctor_name: str, appt_date: date, appt_time: str) -> tuple[str, str]:
    html = f"""
        <h3>Appointment Confirmed</h3>
        <p>Hello {name},</p>
        <p>Your appointment with <strong>Dr. {doctor_name}</strong> has been confirmed.</p>
        <p><strong>Date:</strong> {appt_date.strftime("%B %d, %Y")}</p>
        <p><strong>Time:</strong> {appt_time}</p>
        <p>Thank you for using our service.</p>
    """
    return "Appointment Confirmed", html


def cancellation_email(name: str, doctor_name: str, appt_date: date, appt_time: str) -> tuple[str, str]:
    html = f"""
        <p>Dear {name},</p>
        <p>We regret to inform you that your appointment with Dr. {doctor_name} scheduled for
        {appt_date.strftime("%B %d, %Y")} at {appt_time} has been cancelled.
        Please select another preferred time.</p>
        <p>Regards,<br/>Clinic Admin</p>
    """
    return "Appointment Cancelled", html
