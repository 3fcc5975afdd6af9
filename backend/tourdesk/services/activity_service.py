"""
Booking activity log: append-only history of booking changes.

Records are written by the booking service inside the same transaction as
the change they describe. There is no update or delete path.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.exceptions import NotFoundError
from tourdesk.models.activity import ActivityRecord
from tourdesk.models.booking import Booking


async def record_activity(
    db: AsyncSession,
    booking_id: int,
    action: str,
    old_status: Optional[str],
    new_status: Optional[str],
    description: str,
) -> ActivityRecord:
    record = ActivityRecord(
        booking_id=booking_id,
        action=action,
        old_status=old_status,
        new_status=new_status,
        description=description,
    )
    db.add(record)
    await db.flush()
    await db.refresh(record)
    return record


async def list_for_booking(db: AsyncSession, booking_id: int) -> list[ActivityRecord]:
    """Oldest first; id breaks ties between records written in the same instant."""
    if await db.get(Booking, booking_id) is None:
        raise NotFoundError("Booking", booking_id)

    result = await db.execute(
        select(ActivityRecord)
        .where(ActivityRecord.booking_id == booking_id)
        .order_by(ActivityRecord.created_at.asc(), ActivityRecord.id.asc())
    )
    return list(result.scalars().all())
