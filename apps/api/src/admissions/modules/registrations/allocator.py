"""
Registration Number Allocator

Registration numbers have the form MTS-{year}-{seq:04d}. The sequence is a
per-year counter row incremented with a single INSERT ... ON CONFLICT DO
UPDATE ... RETURNING statement, so concurrent callers can never read the
same value. The counter is committed on its own: a number, once handed
out, is never reused even if the registration insert that follows fails.
"""

import logging
import re
from datetime import UTC, datetime

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.modules.registrations.models import RegistrationCounter

logger = logging.getLogger(__name__)

REGISTRATION_NUMBER_PREFIX = "MTS"

REGISTRATION_NUMBER_PATTERN = re.compile(rf"^{REGISTRATION_NUMBER_PREFIX}-(\d{{4}})-(\d{{4,}})$")


def format_registration_number(year: int, sequence: int) -> str:
    """Compose the number; sequences past 9999 simply widen."""
    return f"{REGISTRATION_NUMBER_PREFIX}-{year}-{sequence:04d}"


async def next_sequence(db: AsyncSession, year: int) -> int:
    """Atomically increment and return the counter for `year`."""
    stmt = (
        pg_insert(RegistrationCounter)
        .values(year=year, last_value=1)
        .on_conflict_do_update(
            index_elements=[RegistrationCounter.year],
            set_={"last_value": RegistrationCounter.last_value + 1},
        )
        .returning(RegistrationCounter.last_value)
    )
    result = await db.execute(stmt)
    sequence = result.scalar_one()
    await db.commit()
    return sequence


async def next_registration_number(db: AsyncSession, year: int | None = None) -> str:
    """
    Allocate the next registration number.

    Args:
        db: Database session
        year: Allocation year, defaults to the current UTC year

    Returns:
        A registration number no other caller has received
    """
    year = year or datetime.now(UTC).year
    sequence = await next_sequence(db, year)
    registration_number = format_registration_number(year, sequence)
    logger.info(f"Allocated registration number {registration_number}")
    return registration_number
