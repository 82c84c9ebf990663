"""
Registration Notifications

Post-commit, best-effort delivery of workflow events over email and SMS.

NotificationConfig is built once at startup from settings and decides which
channels exist; a disabled channel is never called. The dispatcher runs
each delivery as a background asyncio task so the request that caused the
event never waits on, or fails because of, a slow or broken gateway.
After delivery the bookkeeping flags are written with a plain UPDATE that
leaves the optimistic-lock version untouched.

Email and SMS transports live in admissions.core.email and admissions.core.sms.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from admissions.core import email as email_channel
from admissions.core import sms as sms_channel
from admissions.core.config import Settings
from admissions.modules.registrations.events import EventKind, NotificationEvent
from admissions.modules.registrations.models import Registration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelConfig:
    enabled: bool = False


@dataclass(frozen=True)
class NotificationConfig:
    email: ChannelConfig = field(default_factory=ChannelConfig)
    sms: ChannelConfig = field(default_factory=ChannelConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationConfig":
        """
        Build the channel configuration.

        Raises:
            ValueError: If a channel is enabled without its credentials
        """
        if settings.email_enabled and not settings.resend_api_key:
            raise ValueError("EMAIL_ENABLED is set but RESEND_API_KEY is missing")
        if settings.sms_enabled and not (
            settings.twilio_account_sid
            and settings.twilio_auth_token
            and settings.twilio_from_number
        ):
            raise ValueError(
                "SMS_ENABLED is set but TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN "
                "or TWILIO_FROM_NUMBER is missing"
            )
        return cls(
            email=ChannelConfig(enabled=settings.email_enabled),
            sms=ChannelConfig(enabled=settings.sms_enabled),
        )


@dataclass(frozen=True)
class DeliveryResult:
    email_sent: bool | None = None  # None: channel disabled
    sms_sent: bool | None = None


Sender = Callable[[NotificationEvent], Awaitable[bool]]


async def _email_for(event: NotificationEvent) -> bool:
    if event.kind == EventKind.REGISTRATION_CREATED:
        return await email_channel.send_registration_confirmation(
            event.email, event.full_name, event.registration_number
        )
    if event.kind == EventKind.STATUS_CHANGED:
        return await email_channel.send_status_update(
            event.email,
            event.full_name,
            event.registration_number,
            event.status_label or "",
            event.notes,
        )
    return await email_channel.send_draft_reminder(
        event.email, event.full_name, event.registration_number
    )


async def _sms_for(event: NotificationEvent) -> bool:
    if event.kind == EventKind.REGISTRATION_CREATED:
        return await sms_channel.send_registration_confirmation(
            event.phone, event.full_name, event.registration_number
        )
    if event.kind == EventKind.STATUS_CHANGED:
        return await sms_channel.send_status_update(
            event.phone,
            event.full_name,
            event.registration_number,
            event.status_label or "",
            event.notes,
        )
    return await sms_channel.send_draft_reminder(
        event.phone, event.full_name, event.registration_number
    )


async def _attempt(channel: str, sender: Sender, event: NotificationEvent) -> bool:
    try:
        return await sender(event)
    except Exception as e:
        logger.error(
            f"{channel} delivery failed for {event.registration_number} ({event.kind.value}): {e}",
            exc_info=True,
        )
        return False


class NotificationDispatcher:
    """
    Delivers NotificationEvents in the background.

    Args:
        config: Enabled channels
        session_factory: Session maker used for the bookkeeping write
        email_sender / sms_sender: Channel senders, replaceable in tests
    """

    def __init__(
        self,
        config: NotificationConfig,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        email_sender: Sender = _email_for,
        sms_sender: Sender = _sms_for,
    ):
        self.config = config
        self._session_factory = session_factory
        self._email_sender = email_sender
        self._sms_sender = sms_sender
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, event: NotificationEvent) -> asyncio.Task | None:
        """
        Schedule delivery of an event and return immediately.

        Returns:
            The background task, or None when every channel is disabled
        """
        if not (self.config.email.enabled or self.config.sms.enabled):
            logger.debug(f"No notification channels enabled, dropping {event.kind.value}")
            return None

        task = asyncio.create_task(self._run(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver(self, event: NotificationEvent) -> DeliveryResult:
        """Send an event on every enabled channel. Never raises."""
        email_sent = None
        sms_sent = None

        if self.config.email.enabled:
            email_sent = await _attempt("Email", self._email_sender, event)
        if self.config.sms.enabled:
            sms_sent = await _attempt("SMS", self._sms_sender, event)

        return DeliveryResult(email_sent=email_sent, sms_sent=sms_sent)

    async def _run(self, event: NotificationEvent) -> None:
        try:
            result = await self.deliver(event)
            await self._record(event, result)
        except Exception as e:
            logger.error(
                f"Notification task failed for {event.registration_number}: {e}",
                exc_info=True,
            )

    async def _record(self, event: NotificationEvent, result: DeliveryResult) -> None:
        """Write delivery flags without touching the row version or last-updated time."""
        if self._session_factory is None:
            return

        values: dict = {"updated_at": Registration.updated_at}
        if result.email_sent is not None:
            values["email_sent"] = result.email_sent
        if result.sms_sent is not None:
            values["sms_sent"] = result.sms_sent
        if result.email_sent or result.sms_sent:
            values["last_notification_sent_at"] = datetime.now(UTC)

        async with self._session_factory() as db:
            await db.execute(
                update(Registration)
                .where(Registration.id == event.registration_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight deliveries, e.g. on shutdown."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} pending notification(s)")
        _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()


# Set during application startup
_dispatcher: NotificationDispatcher | None = None


def init_dispatcher(
    config: NotificationConfig,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> NotificationDispatcher:
    global _dispatcher
    _dispatcher = NotificationDispatcher(config, session_factory)
    logger.info(
        f"Notification channels: email={'on' if config.email.enabled else 'off'}, "
        f"sms={'on' if config.sms.enabled else 'off'}"
    )
    return _dispatcher


def get_dispatcher() -> NotificationDispatcher:
    """Return the startup dispatcher; falls back to one with every channel disabled."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(NotificationConfig())
    return _dispatcher
