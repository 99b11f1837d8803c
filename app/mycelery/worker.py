import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List

from app.mycelery.app import celery_app
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger("access.notifications")


def _render_changes(changes: List[str]) -> str:
    items = "".join(f"<li>{change}</li>" for change in changes)
    return f"""
    <html>
        <body>
            <h2>Your access was updated</h2>
            <p>An administrator changed your permissions in {settings.APP_NAME}:</p>
            <ul>{items}</ul>
            <p>If you did not expect this change, contact your administrator.</p>
            <hr>
            <p><small>{settings.APP_NAME} - do not reply to this email</small></p>
        </body>
    </html>
    """


@celery_app.task(name="send_access_change_notice", max_retries=3)
def send_access_change_notice(email: str, name: str, changes: List[str]):
    """Email a user that their grants or group memberships changed"""
    if not settings.SMTP_USERNAME or not settings.SMTP_PASSWORD:
        logger.info(f"SMTP not configured, access change for {email}: {'; '.join(changes)}")
        return {"sent": False, "reason": "smtp-not-configured"}

    from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME

    msg = MIMEMultipart()
    msg['From'] = f"{settings.SMTP_FROM_NAME} <{from_email}>"
    msg['To'] = email
    msg['Subject'] = f"{settings.APP_NAME} - access updated"
    msg.attach(MIMEText(_render_changes(changes), 'html'))

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
            server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(from_email, email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send access change notice to {email}: {e}")
        # Retry with exponential backoff: 1s, 2s, 4s
        raise send_access_change_notice.retry(exc=e, countdown=2 ** send_access_change_notice.request.retries)

    logger.info(f"Access change notice sent to {email}")
    return {"sent": True, "email": email}
