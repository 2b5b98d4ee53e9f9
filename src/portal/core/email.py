"""
Email Service using Resend

Transactional emails for the enrollment, verification, password recovery and
student request flows. All user-supplied text is HTML-escaped before it is
placed in a template.
"""

import asyncio
import logging
from html import escape

import resend

from portal.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

SCHOOL_NAME = "Sto. Niño Portal"

_STYLE = """
        body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
        .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
        .header { color: #1a365d; margin-bottom: 24px; }
        .button { display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
        .info-box { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }
        .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _render(heading: str, body: str, footer: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{heading}</h1>
            {body}
            <div class="footer">
                <p>{footer}</p>
                <p>{SCHOOL_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """


def _action_block(url: str, label: str) -> str:
    return f"""
            <a href="{url}" class="button">{label}</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{url}</p>
    """


def _format_ttl(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_email_verification(to_email: str, token: str) -> bool:
    """Send the email verification link to a new applicant."""
    verification_url = f"{settings.frontend_url}/verify-email?token={token}"
    ttl = _format_ttl(settings.verify_email_token_ttl_minutes)
    body = f"""
            <p>Hello,</p>

            <p>Thank you for applying to <strong>{SCHOOL_NAME}</strong>. Please verify your email address to continue your enrollment:</p>
            {_action_block(verification_url, "Verify Email")}
            <p><strong>This link expires in {ttl}.</strong></p>
    """
    return await send_email(
        to_email=to_email,
        subject="Verify your email address",
        html_content=_render(
            "Verify Your Email",
            body,
            "If you didn't apply for enrollment, you can safely ignore this email.",
        ),
    )


async def send_password_reset(to_email: str, token: str) -> bool:
    """Send the password reset link."""
    reset_url = f"{settings.frontend_url}/reset-password?token={token}"
    ttl = _format_ttl(settings.reset_password_token_ttl_minutes)
    body = f"""
            <p>Hello,</p>

            <p>We received a request to reset the password for your portal account.</p>
            {_action_block(reset_url, "Reset Password")}
            <p><strong>This link expires in {ttl} and can be used once.</strong></p>
    """
    return await send_email(
        to_email=to_email,
        subject="Reset your portal password",
        html_content=_render(
            "Reset Your Password",
            body,
            "If you didn't request a password reset, you can ignore this email. Your password will not change.",
        ),
    )


async def send_application_approved(to_email: str, applicant_name: str) -> bool:
    safe_name = escape(applicant_name)
    login_url = f"{settings.frontend_url}/login"
    body = f"""
            <p>Dear {safe_name},</p>

            <p>Your enrollment application has been <strong>approved</strong>. You can now sign in to the student portal.</p>
            {_action_block(login_url, "Sign In")}
    """
    return await send_email(
        to_email=to_email,
        subject="Your enrollment application has been approved",
        html_content=_render(
            "Welcome!",
            body,
            "If you have questions, please contact the registrar's office.",
        ),
    )


async def send_application_rejected(to_email: str, applicant_name: str, reason: str) -> bool:
    safe_name = escape(applicant_name)
    safe_reason = escape(reason)
    body = f"""
            <p>Dear {safe_name},</p>

            <p>After review, we are unable to approve your enrollment application at this time.</p>

            <div class="info-box">
                <p><strong>Reason:</strong></p>
                <p>{safe_reason}</p>
            </div>
    """
    return await send_email(
        to_email=to_email,
        subject="Update on your enrollment application",
        html_content=_render(
            "Application Update",
            body,
            "If you believe this was a mistake, please contact the registrar's office.",
        ),
    )


async def send_request_decision(
    to_email: str,
    request_label: str,
    outcome: str,
    note: str | None = None,
) -> bool:
    """Notify a student that one of their requests was resolved."""
    safe_label = escape(request_label)
    safe_outcome = escape(outcome)
    note_block = ""
    if note:
        note_block = f"""
            <div class="info-box">
                <p><strong>Note from the registrar:</strong></p>
                <p>{escape(note)}</p>
            </div>
        """
    body = f"""
            <p>Hello,</p>

            <p>Your <strong>{safe_label}</strong> request has been marked <strong>{safe_outcome}</strong>.</p>
            {note_block}
    """
    return await send_email(
        to_email=to_email,
        subject=f"Your {safe_label} request: {safe_outcome}",
        html_content=_render(
            "Request Update",
            body,
            "You can view the full history of your requests in the student portal.",
        ),
    )
