"""
SMS Service using the Twilio REST API

Messages are posted to Twilio's Messages endpoint with httpx. Like the
email service, these functions only deliver; channel enablement is decided
by the notification configuration at startup.
"""

import logging

import httpx

from admissions.core.config import settings

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "Submitted": "Registration submitted and waiting for review",
    "Under Review": "Registration is being reviewed",
    "Approved": "Congratulations! Your registration has been approved",
    "Rejected": "Sorry, your registration could not be approved",
    "Waitlisted": "Registration placed on the waiting list",
}


async def send_sms(to_number: str, body: str) -> bool:
    """
    Send a text message through Twilio.

    Returns:
        True if Twilio accepted the message
    """
    url = (
        f"{settings.twilio_api_base_url}/Accounts/"
        f"{settings.twilio_account_sid}/Messages.json"
    )
    data = {
        "From": settings.twilio_from_number,
        "To": to_number,
        "Body": body,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.sms_timeout_seconds) as client:
            response = await client.post(
                url,
                data=data,
                auth=(settings.twilio_account_sid or "", settings.twilio_auth_token or ""),
            )

        if response.status_code in (200, 201):
            logger.info(f"SMS sent successfully to {to_number}, sid: {response.json().get('sid')}")
            return True

        logger.error(f"SMS to {to_number} rejected with status {response.status_code}: {response.text}")
        return False
    except httpx.HTTPError as e:
        logger.error(f"Failed to send SMS to {to_number}: {e}")
        return False


async def send_registration_confirmation(
    to_number: str,
    full_name: str,
    registration_number: str,
) -> bool:
    body = (
        f"Thank you for registering at {settings.school_name}.\n\n"
        f"Registration number: {registration_number}\n"
        f"Name: {full_name}\n\n"
        "Next: complete your data, upload the required documents and submit.\n"
        f"Track your status: {settings.frontend_url}/tracking/{registration_number}"
    )
    return await send_sms(to_number, body)


async def send_status_update(
    to_number: str,
    full_name: str,
    registration_number: str,
    status_label: str,
    notes: str | None = None,
) -> bool:
    body = (
        f"{settings.school_name} registration update.\n\n"
        f"Number: {registration_number}\n"
        f"Name: {full_name}\n"
        f"Status: {status_label}\n"
        f"Message: {STATUS_MESSAGES.get(status_label, '')}"
    )
    if notes:
        body += f"\nNotes: {notes}"
    body += f"\n\nDetails: {settings.frontend_url}/tracking/{registration_number}"
    return await send_sms(to_number, body)


async def send_draft_reminder(
    to_number: str,
    full_name: str,
    registration_number: str,
) -> bool:
    body = (
        f"{settings.school_name} registration reminder.\n\n"
        f"Number: {registration_number}\n"
        f"Name: {full_name}\n\n"
        "Your registration is not complete yet. Please fill in the remaining data, "
        "upload the required documents and submit.\n"
        f"Continue at: {settings.frontend_url}/registration/{registration_number}"
    )
    return await send_sms(to_number, body)
