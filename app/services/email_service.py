import smtplib
from datetime import datetime
from email.message import EmailMessage

from app.core.config import get_settings, get_smtp_ctx

settings = get_settings()

HOST = settings.smtp_host
PORT = settings.smtp_port
USER = settings.smtp_username
PWD = settings.smtp_password
MAIL_FROM = settings.mail_from
APP_NAME = "Social API"


def build_activation_url(raw_token: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/activate?token={raw_token}"


def send_invitation_via_smtp(
    to_email: str,
    username: str,
    activation_url: str,
    expires_at: datetime,
) -> None:
    expiry = expires_at.strftime("%Y-%m-%d %H:%M UTC")
    msg = EmailMessage()
    msg["Subject"] = "Activate Your Account"
    msg["From"] = MAIL_FROM
    msg["To"] = to_email
    msg.set_content(
        f"Hi {username},\n\nWelcome to {APP_NAME}. Activate your account here: "
        f"{activation_url}\n\nThis link expires on {expiry}.\n"
    )
    msg.add_alternative(
        f"""<p>Hi {username},</p>
            <p>Welcome to <b>{APP_NAME}</b>.</p>
            <p>Follow this link to activate your account: <a href=\"{activation_url}\">{activation_url}</a></p>
            <p>The link expires on {expiry}.</p>
            <p>If you did not sign up, you can safely ignore this email.</p>""",
        subtype="html",
    )
    ctx = get_smtp_ctx()
    with smtplib.SMTP(HOST, PORT, timeout=20) as smtp:
        smtp.ehlo()
        smtp.starttls(context=ctx)
        smtp.ehlo()
        if USER and PWD:
            smtp.login(USER, PWD)
        smtp.send_message(msg)
