# file: app/services/subscribers.py

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models import Subscriber

logger = logging.getLogger(__name__)


async def get_subscriber(db: AsyncSession, email: str) -> Optional[Subscriber]:
    result = await db.execute(select(Subscriber).where(Subscriber.email == email))
    return result.scalars().first()


async def get_or_create_subscriber(
        db: AsyncSession,
        email: str,
        name: Optional[str] = None,
        user_id: Optional[str] = None,
) -> Tuple[Subscriber, bool]:
    """
    Returns (subscriber, created). Safe to call concurrently for the same
    address: the unique email column decides which request creates the row.
    """
    subscriber = await get_subscriber(db, email)
    if subscriber:
        return subscriber, False

    subscriber = Subscriber(email=email, name=name, user_id=user_id)
    db.add(subscriber)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(f"Subscriber {email} was created by a concurrent signup")
        return await get_subscriber(db, email), False

    await db.refresh(subscriber)
    logger.info(f"New subscriber: {email}")
    return subscriber, True
