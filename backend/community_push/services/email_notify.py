"""
Send speaker reminder emails via SMTP (Gmail or other).
Set SMTP_USER, SMTP_PASSWORD (and optionally NOTIFY_FROM) in .env. Use a Gmail App Password,
not your normal password. Without credentials sends are skipped and reported as not sent.
"""
import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from community_push.config import settings
from community_push.services.push.types import UserProfile

logger = logging.getLogger(__name__)

POSTING_TIPS = (
    "Share a short update on what you're working on.",
    "Ask the community a question to kick off the conversation.",
    "Add a poll so listeners can vote while you speak.",
)


def _from_address() -> str:
    if (settings.notify_from or "").strip():
        return settings.notify_from.strip()
    user = (settings.smtp_user or "").strip()
    if user:
        return f"Community <{user}>"
    return "Community <noreply@localhost>"


def make_unsubscribe_link(user_id: str) -> str:
    return f"{settings.unsubscribe_base_url.rstrip('/')}?user={user_id}"


def make_reminder_email_content(
    time: str,
    speaker_name: str,
    community_name: str,
    include_tips: bool,
    unsubscribe_link: str,
) -> dict[str, str]:
    """
    Reminder for the current speaker to post before their slot ends.
    Returns {"title", "plain_text", "html"}.
    """
    title = f"Your speaking slot in {community_name} ends in {time}"
    lines = [
        f"Hi {speaker_name},",
        "",
        f"You're on the mic in {community_name} and your slot ends in {time}.",
        "Create a post now so the community can hear from you.",
    ]
    if include_tips:
        lines += ["", "Tips for a great post:"]
        lines += [f"- {tip}" for tip in POSTING_TIPS]
    lines += ["", f"Unsubscribe: {unsubscribe_link}"]
    plain_text = "\n".join(lines)

    tips_html = ""
    if include_tips:
        items = "".join(f"<li>{html.escape(tip)}</li>" for tip in POSTING_TIPS)
        tips_html = f"<p>Tips for a great post:</p><ul>{items}</ul>"
    body_html = (
        f"<p>Hi {html.escape(speaker_name)},</p>"
        f"<p>You're on the mic in <b>{html.escape(community_name)}</b> and your slot ends in "
        f"{html.escape(time)}.<br>Create a post now so the community can hear from you.</p>"
        f"{tips_html}"
        f"<p style='font-size:small'><a href='{html.escape(unsubscribe_link, quote=True)}'>Unsubscribe</a></p>"
    )
    return {"title": title, "plain_text": plain_text, "html": body_html}


def send_email(to_email: str, title: str, plain_text: str, body_html: str) -> bool:
    """Blocking SMTP send. Returns True if sent, False if skipped or failed."""
    to_email = (to_email or "").strip()
    if not to_email:
        return False
    user = (settings.smtp_user or "").strip()
    password = (settings.smtp_password or "").strip()
    if not user or not password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email to %s", to_email)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = title
    msg["From"] = _from_address()
    msg["To"] = to_email
    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(body_html, "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(user, [to_email], msg.as_string())
        logger.info("Email sent to %s: %s", to_email, title)
        return True
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        return False


class SmtpEmailSender:
    """EmailSender that runs the blocking SMTP call in a worker thread."""

    async def send_reminder_email(self, user: UserProfile, content: dict[str, str]) -> bool:
        if not user.email:
            return False
        return await asyncio.to_thread(
            send_email,
            user.email,
            content["title"],
            content["plain_text"],
            content["html"],
        )
