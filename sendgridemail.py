import logging
from dataclasses import dataclass

import sendgrid
from sendgrid.helpers.mail import Mail

from config import Settings

logger = logging.getLogger('uvicorn.error')


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailDeliveryError(Exception):
    pass


def verification_url(key: str, settings: Settings) -> str:
    return f"{settings.public_base_url}/api/v1/users/verifyEmail/{key}"


def reset_password_url(token: str, settings: Settings) -> str:
    return f"{settings.public_base_url}/api/v1/users/resetPassword/{token}"


def verification_email(email: str, key: str, settings: Settings) -> EmailMessage:
    link = verification_url(key, settings)
    return EmailMessage(
        to=email,
        subject="Verify your email address",
        html=f'<p>Please click this <a href="{link}">link</a> to verify your email address!</p>',
    )


def password_reset_email(email: str, reset_url: str, settings: Settings) -> EmailMessage:
    minutes = settings.reset_token_ttl_minutes
    return EmailMessage(
        to=email,
        subject=f"Your password reset token (valid for {minutes} min)",
        html=(
            f"<p>Forgot your password? Submit a PATCH request with your new password to: "
            f'<a href="{reset_url}">{reset_url}</a></p>'
            "<p>If you didn't forget your password, please ignore this email!</p>"
        ),
    )


def send_email(message: EmailMessage, settings: Settings) -> None:
    """Blocking SendGrid call; raises EmailDeliveryError on any failure."""
    mail = Mail(
        from_email=settings.mail_from,
        to_emails=message.to,
        subject=message.subject,
        html_content=message.html,
    )
    try:
        sg = sendgrid.SendGridAPIClient(settings.sendgrid_api_key)
        response = sg.send(mail)
    except Exception as e:
        raise EmailDeliveryError(f"SendGrid send to {message.to} failed: {e}") from e
    if response.status_code >= 300:
        raise EmailDeliveryError(f"SendGrid rejected mail to {message.to}: {response.status_code}")
    logger.info(f"Sent '{message.subject}' to {message.to} (status {response.status_code})")
