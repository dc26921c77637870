import logging
import pathlib
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings
from app.exceptions import DependencyError

logger = logging.getLogger(__name__)


def send_email(
    to: str,
    subject: str,
    html: str,
    attachments: list[pathlib.Path] | None = None,
) -> bool:
    """Send an HTML email over SMTP.

    Returns False when email is disabled or there is no address, and raises
    DependencyError when the SMTP exchange fails.
    """
    if not settings.ENABLE_EMAIL_NOTIFICATIONS:
        logger.debug("Email disabled, not sending '%s' to %s", subject, to)
        return False
    if not to:
        logger.warning("No email address for '%s'", subject)
        return False

    msg = MIMEMultipart()
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(html, "html"))

    for path in attachments or []:
        with open(path, "rb") as f:
            part = MIMEApplication(f.read(), Name=path.name)
        part["Content-Disposition"] = f'attachment; filename="{path.name}"'
        msg.attach(part)

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=15) as server:
            server.starttls()
            if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", to, e)
        raise DependencyError("Email delivery failed") from e

    logger.info("Email '%s' sent to %s", subject, to)
    return True
