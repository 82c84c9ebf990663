"""
Registrations Background Jobs

Scheduled task reminding applicants to finish their Draft registrations.

Design Principles:
- The job is idempotent: a Draft is reminded at most once (reminder_sent_at)
- The job handles its own database sessions
- One failing registration does not stop the sweep

Schedule:
- Runs every 24 hours
- Can also be triggered manually via POST /admin/send-reminders
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from admissions.core.config import settings
from admissions.core.database import async_session_maker
from admissions.core.scheduler import register_job
from admissions.modules.registrations import repository
from admissions.modules.registrations.events import EventKind, NotificationEvent
from admissions.modules.registrations.models import Registration
from admissions.modules.registrations.notifications import get_dispatcher

logger = logging.getLogger(__name__)

JOB_ID_SEND_DRAFT_REMINDERS = "registrations_send_draft_reminders"


async def _remind(registration: Registration) -> str:
    """
    Claim the registration, then send its reminder.

    Returns:
        "sent", "failed" (stays claimed so it is not retried every run)
        or "skipped" (no channel enabled, or another run claimed it first)
    """
    dispatcher = get_dispatcher()
    config = dispatcher.config
    if not (config.email.enabled or config.sms.enabled):
        return "skipped"

    async with async_session_maker() as db:
        claimed = await repository.claim_reminder(db, registration.id)

    if not claimed:
        logger.info(f"Draft reminder for {registration.registration_number} already claimed")
        return "skipped"

    event = NotificationEvent.for_registration(EventKind.DRAFT_REMINDER, registration)
    result = await dispatcher.deliver(event)

    if result.email_sent or result.sms_sent:
        return "sent"

    logger.error(f"Draft reminder could not be delivered for {registration.registration_number}")
    return "failed"


async def send_draft_reminders() -> dict[str, Any]:
    """
    Remind applicants whose Draft is older than `draft_reminder_after_days`.

    Returns:
        Dict with total, success, errors and skipped counts
    """
    threshold = datetime.now(UTC) - timedelta(days=settings.draft_reminder_after_days)
    logger.info(f"Starting draft reminder job. Drafts created before {threshold.isoformat()}")

    async with async_session_maker() as db:
        drafts = await repository.get_drafts_needing_reminder(db, created_before=threshold)

    results = {"total": len(drafts), "success": 0, "errors": 0, "skipped": 0}

    for registration in drafts:
        try:
            outcome = await _remind(registration)
        except Exception as e:
            logger.error(
                f"Error sending draft reminder for {registration.registration_number}: {e}",
                exc_info=True,
            )
            results["errors"] += 1
            continue

        if outcome == "sent":
            results["success"] += 1
        elif outcome == "failed":
            results["errors"] += 1
        else:
            results["skipped"] += 1

    logger.info(
        f"Draft reminder job completed. Total: {results['total']}, "
        f"sent: {results['success']}, errors: {results['errors']}, "
        f"skipped: {results['skipped']}"
    )
    return results


def register_registration_jobs() -> None:
    """Register registration background jobs. Call before starting the scheduler."""
    register_job(
        job_id=JOB_ID_SEND_DRAFT_REMINDERS,
        func=send_draft_reminders,
        trigger=IntervalTrigger(hours=24),
    )
    logger.info(f"Registered job: {JOB_ID_SEND_DRAFT_REMINDERS} (interval: 24 hours)")
