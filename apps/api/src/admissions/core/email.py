"""
Email Service using Resend

Templates and transport for applicant-facing emails: registration
confirmation, status updates and draft reminders.

Whether the channel is used at all is decided once at startup by the
notification configuration; these functions only deliver.
"""

import asyncio
import logging
from html import escape

import resend

from admissions.core.config import settings

logger = logging.getLogger(__name__)

# Applicant-facing explanation of each status
STATUS_MESSAGES = {
    "Submitted": "Your registration has been submitted and is waiting to be reviewed.",
    "Under Review": "Your registration is currently being reviewed by our admissions team.",
    "Approved": "Congratulations! Your registration has been approved.",
    "Rejected": "We are sorry, your registration could not be approved.",
    "Waitlisted": "Your registration has been placed on the waiting list.",
}

STATUS_COLORS = {
    "Submitted": "#17a2b8",
    "Under Review": "#ffc107",
    "Approved": "#28a745",
    "Rejected": "#dc3545",
    "Waitlisted": "#6c757d",
}

_BASE_STYLE = """
        <style>
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1a365d; margin-bottom: 24px; }
            .box { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 24px 0; }
            .button { display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
        </style>
"""


def _tracking_url(registration_number: str) -> str:
    return f"{settings.frontend_url}/tracking/{registration_number}"


def _registration_url(registration_number: str) -> str:
    return f"{settings.frontend_url}/registration/{registration_number}"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Returns:
        True if the email was accepted by Resend
    """
    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        resend.api_key = settings.resend_api_key
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_registration_confirmation(
    to_email: str,
    full_name: str,
    registration_number: str,
) -> bool:
    """Send the confirmation email after a registration is created."""
    safe_name = escape(full_name)
    safe_school = escape(settings.school_name)
    registration_url = _registration_url(registration_number)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>{_BASE_STYLE}</head>
    <body>
        <div class="container">
            <h1 class="header">Registration Received</h1>

            <p>Hello {safe_name},</p>

            <p>Thank you for registering at <strong>{safe_school}</strong>.</p>

            <div class="box">
                <p><strong>Registration number:</strong> {registration_number}</p>
                <p><strong>Email:</strong> {escape(to_email)}</p>
            </div>

            <p>Next steps:</p>
            <ol>
                <li>Complete your parent and academic data</li>
                <li>Upload the required documents</li>
                <li>Submit your registration</li>
            </ol>

            <a href="{registration_url}" class="button">Continue Registration</a>

            <div class="footer">
                <p>Keep your registration number; you will need it to track your status.</p>
                <p>{safe_school} Admissions</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Registration confirmation - {registration_number}",
        html_content=html_content,
    )


async def send_status_update(
    to_email: str,
    full_name: str,
    registration_number: str,
    status_label: str,
    notes: str | None = None,
) -> bool:
    """Notify the applicant of a status change."""
    safe_name = escape(full_name)
    safe_school = escape(settings.school_name)
    color = STATUS_COLORS.get(status_label, "#1a365d")
    message = STATUS_MESSAGES.get(status_label, "")

    notes_html = ""
    if notes:
        notes_html = f"<p><strong>Notes:</strong> {escape(notes)}</p>"

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>{_BASE_STYLE}</head>
    <body>
        <div class="container">
            <h1 class="header">Registration Status Update</h1>

            <p>Hello {safe_name},</p>

            <div class="box">
                <p><strong>Registration number:</strong> {registration_number}</p>
                <p><strong>Status:</strong> <span style="color: {color};">{escape(status_label)}</span></p>
                <p>{message}</p>
                {notes_html}
            </div>

            <a href="{_tracking_url(registration_number)}" class="button">View Status</a>

            <div class="footer">
                <p>{safe_school} Admissions</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Registration status: {status_label} - {registration_number}",
        html_content=html_content,
    )


async def send_draft_reminder(
    to_email: str,
    full_name: str,
    registration_number: str,
) -> bool:
    """Remind an applicant that their registration is still a draft."""
    safe_name = escape(full_name)
    safe_school = escape(settings.school_name)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>{_BASE_STYLE}</head>
    <body>
        <div class="container">
            <h1 class="header">Your Registration Is Not Complete</h1>

            <p>Hello {safe_name},</p>

            <p>Your registration <strong>{registration_number}</strong> at {safe_school}
            has not been submitted yet. Please complete any missing data, upload
            the required documents and submit your registration.</p>

            <a href="{_registration_url(registration_number)}" class="button">Continue Registration</a>

            <div class="footer">
                <p>{safe_school} Admissions</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Reminder: complete your registration {registration_number}",
        html_content=html_content,
    )
