import smtplib
from email.message import EmailMessage

from loguru import logger

from app.core.config import settings


def build_manufacturer_verification_email(manufacturer_email: str, manufacturer_id: str) -> EmailMessage:
    verify_link = f"{settings.frontend_url}/admin/verify/{manufacturer_id}"

    message = EmailMessage()
    message["Subject"] = "New Manufacturer Account Verification Required"
    message["From"] = settings.admin_email
    message["To"] = settings.admin_email
    message.set_content(
        f"Manufacturer email: {manufacturer_email}\n"
        f"Manufacturer ID: {manufacturer_id}\n\n"
        f"Verify the account in the admin dashboard: {verify_link}\n"
    )
    message.add_alternative(
        f"""
        <h2>New Manufacturer Account Registration</h2>
        <p><strong>Manufacturer Email:</strong> {manufacturer_email}</p>
        <p><strong>Manufacturer ID:</strong> {manufacturer_id}</p>
        <p>Please verify this manufacturer account in the admin dashboard.</p>
        <a href="{verify_link}">Verify Manufacturer</a>
        """,
        subtype="html"
    )
    return message


def send_manufacturer_verification_email(manufacturer_email: str, manufacturer_id: str) -> bool:
    """
    Background task: tells the admin a manufacturer is waiting for
    verification. Returns False when mail is not configured.
    """
    if not settings.smtp_host or not settings.admin_email:
        logger.info(
            f"SMTP not configured, skipping verification email for {manufacturer_id}")
        return False

    message = build_manufacturer_verification_email(
        manufacturer_email, manufacturer_id)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as smtp:
            smtp.starttls()
            if settings.smtp_user:
                smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError):
        # Registration already succeeded; the admin can still see the pending queue
        logger.exception(
            f"Verification email for manufacturer {manufacturer_id} failed")
        return False

    logger.info(f"Verification email sent for manufacturer {manufacturer_id}")
    return True
