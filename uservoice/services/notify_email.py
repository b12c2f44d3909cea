# uservoice/services/notify_email.py

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape

import resend

from uservoice.core.config import settings

logger = logging.getLogger(__name__)


LAYOUT = """
<table width="100%%" cellpadding="0" cellspacing="0" style="background:#f4f4f5;padding:24px;">
  <tr><td align="center">
    <table width="600" cellpadding="0" cellspacing="0"
           style="background:#ffffff;border-radius:10px;padding:24px;
                  font-family:Arial,Helvetica,sans-serif;color:#18181b;border:1px solid #e4e4e7;">
      <tr><td style="padding-bottom:16px;font-size:20px;font-weight:700;">User Voice</td></tr>
      <tr><td style="font-size:14px;line-height:1.6;">%(body)s</td></tr>
      <tr>
        <td style="padding-top:16px;font-size:11px;color:#71717a;border-top:1px solid #e4e4e7;">
          You get this email because you take part in a <strong>User Voice</strong> project.
          <div style="margin-top:4px;">&copy; %(year)s User Voice</div>
        </td>
      </tr>
    </table>
  </td></tr>
</table>
"""


def _sender() -> str:
    return f"{settings.email_from_name or 'User Voice'} <{settings.email_from_address}>"


def _via_smtp(to_email: str, subject: str, html: str):
    if not (settings.smtp_host and settings.smtp_username and settings.smtp_password and settings.email_from_address):
        logger.debug("SMTP not configured, skipping '%s'", subject)
        return
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = _sender()
    msg["To"] = to_email
    msg.set_content(html, subtype="html")

    smtp_cls = smtplib.SMTP_SSL if settings.smtp_use_ssl else smtplib.SMTP
    with smtp_cls(settings.smtp_host, settings.smtp_port, timeout=15) as server:
        if not settings.smtp_use_ssl:
            server.starttls()
        server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(msg)


def _via_resend(to_email: str, subject: str, html: str):
    if not (settings.resend_api_key and settings.email_from_address):
        logger.debug("Resend not configured, skipping '%s'", subject)
        return
    resend.api_key = settings.resend_api_key
    resend.Emails.send({"from": _sender(), "to": [to_email], "subject": subject, "html": html})


TRANSPORTS = {"smtp": _via_smtp, "resend": _via_resend}


def _redirect(to_email: str) -> tuple[str, str]:
    """Mail goes to EMAIL_REDIRECT_TO until the sending domain is verified."""
    target = settings.email_redirect_to
    if settings.email_domain_verified or not target:
        return to_email, ""
    banner = (
        '<div style="background:#fef2f2;color:#b91c1c;padding:8px 10px;border-radius:6px;'
        'font-size:11px;margin-bottom:12px;border:1px solid #fecaca;">'
        f"<strong>Test mode:</strong> meant for {escape(to_email)}, delivered to {escape(target)}."
        "</div>"
    )
    return target, banner


def _send_email(to_email: str, subject: str, body: str):
    recipient, banner = _redirect(to_email)
    html = LAYOUT % {"body": banner + body, "year": datetime.now().year}
    transport = TRANSPORTS.get((settings.email_provider or "smtp").lower(), _via_smtp)
    try:
        transport(recipient, subject, html)
    except Exception:
        logger.exception("Failed to send email '%s' to %s", subject, to_email)


def _build_url(path: str) -> str:
    base = (settings.frontend_base_url or "").strip().rstrip("/")
    path = path.lstrip("/")
    if base:
        if not base.startswith("http://") and not base.startswith("https://"):
            base = f"https://{base}"
        return f"{base}/{path}" if path else base
    return f"/{path}" if path else "/"


def _button(link: str, text: str) -> str:
    return f"""
    <div style="margin:12px 0 8px 0;">
      <a href="{link}" style="display:inline-block;padding:10px 20px;background:#4f46e5;
         color:#ffffff;border-radius:6px;font-weight:600;text-decoration:none;">{text}</a>
    </div>
    <div style="font-size:11px;color:#52525b;word-break:break-all;">{link}</div>
    """


def _code_block(code: str) -> str:
    return f"""
    <p style="margin:6px 0 10px 0;">
      <span style="font-size:24px;font-weight:800;color:#4f46e5;letter-spacing:4px;">{code}</span>
    </p>
    """


def _quote(content: str, limit: int = 200) -> str:
    text = escape(content[:limit]) + ("..." if len(content) > limit else "")
    return (
        '<blockquote style="margin:8px 0;padding:8px 12px;border-left:3px solid #e4e4e7;color:#3f3f46;">'
        f"{text}</blockquote>"
    )


def send_verification_code(to_email: str, code: str):
    body = f"""
    <p>Welcome to <strong>User Voice</strong>.</p>
    <p>Enter this code to verify your email address:</p>
    {_code_block(code)}
    <p style="font-size:12px;color:#71717a;">The code expires in 60 minutes.</p>
    """
    _send_email(to_email, "Your User Voice verification code", body)


def send_reset_password(to_email: str, token: str):
    body = f"""
    <p>We received a request to reset your <strong>User Voice</strong> password.</p>
    {_button(_build_url(f"reset-password?token={token}"), "Reset password")}
    <p style="font-size:12px;color:#71717a;">This link is valid for 60 minutes.
       If you did not ask for it, ignore this email.</p>
    """
    _send_email(to_email, "Reset your password", body)


def send_password_change_code(to_email: str, code: str):
    body = f"""
    <p>Confirm your password change with this code:</p>
    {_code_block(code)}
    <p style="font-size:12px;color:#71717a;">If you did not request a change, your password stays as it is.</p>
    """
    _send_email(to_email, "Confirm your password change", body)


def send_status_update(to_email: str, request_id: int, title: str, status: str):
    readable = status.replace("_", " ").title()
    body = f"""
    <p>The request <strong>#{request_id} {escape(title)}</strong> you follow changed status to:</p>
    <p style="font-size:16px;font-weight:700;color:#4f46e5;">{readable}</p>
    {_button(_build_url(f"requests/{request_id}"), "View request")}
    """
    _send_email(to_email, f"Request #{request_id} is now {readable}", body)


def send_comment_notification(to_email: str, request_id: int, title: str, author: str, content: str):
    snippet = _quote(content)
    body = f"""
    <p><strong>{escape(author)}</strong> commented on <strong>#{request_id} {escape(title)}</strong>:</p>
    {snippet}
    {_button(_build_url(f"requests/{request_id}"), "Reply")}
    """
    _send_email(to_email, f"New comment on request #{request_id}", body)


def send_mention_notification(to_email: str, request_id: int, title: str, author: str, content: str):
    snippet = _quote(content)
    body = f"""
    <p><strong>{escape(author)}</strong> mentioned you on <strong>#{request_id} {escape(title)}</strong>:</p>
    {snippet}
    {_button(_build_url(f"requests/{request_id}"), "Open conversation")}
    """
    _send_email(to_email, f"{author} mentioned you", body)
