# file: app/services/token_store.py

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import select, delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database.models import PushToken

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Registry of device push tokens. Membership has set semantics."""

    @abstractmethod
    async def add(self, token: str, user_id: Optional[str] = None) -> int:
        """Adds (or refreshes) a token and returns the new registry size."""

    @abstractmethod
    async def remove(self, token: str) -> bool:
        ...

    @abstractmethod
    async def remove_many(self, tokens: Iterable[str]) -> int:
        ...

    @abstractmethod
    async def list(self) -> List[str]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class InMemoryTokenStore(TokenStore):
    """Process-lifetime registry. Everything is lost on restart."""

    def __init__(self):
        self._tokens = set()

    async def add(self, token: str, user_id: Optional[str] = None) -> int:
        self._tokens.add(token)
        return len(self._tokens)

    async def remove(self, token: str) -> bool:
        if token in self._tokens:
            self._tokens.discard(token)
            return True
        return False

    async def remove_many(self, tokens: Iterable[str]) -> int:
        removed = 0
        for token in tokens:
            if await self.remove(token):
                removed += 1
        return removed

    async def list(self) -> List[str]:
        return list(self._tokens)

    async def count(self) -> int:
        return len(self._tokens)


class SqlAlchemyTokenStore(TokenStore):
    """
    Registry backed by the `push_tokens` table.
    When `ttl` is set, tokens not seen within it are hidden from list()/count().
    """

    def __init__(self, session_factory: async_sessionmaker, ttl: Optional[timedelta] = None):
        self.session_factory = session_factory
        self.ttl = ttl

    def _cutoff(self) -> Optional[datetime]:
        if not self.ttl:
            return None
        return datetime.now() - self.ttl

    async def add(self, token: str, user_id: Optional[str] = None) -> int:
        async with self.session_factory() as db:
            result = await db.execute(select(PushToken.id).where(PushToken.token == token))
            if result.first() is None:
                now = datetime.now()
                db.add(PushToken(token=token, user_id=user_id, created_at=now, last_seen_at=now))
                try:
                    await db.commit()
                    return await self._count(db)
                except IntegrityError:
                    # registered concurrently by another request
                    await db.rollback()

            values = {"last_seen_at": datetime.now()}
            if user_id:
                values["user_id"] = user_id
            await db.execute(update(PushToken).where(PushToken.token == token).values(**values))
            await db.commit()
            return await self._count(db)

    async def remove(self, token: str) -> bool:
        return await self.remove_many([token]) > 0

    async def remove_many(self, tokens: Iterable[str]) -> int:
        tokens = list(tokens)
        if not tokens:
            return 0
        async with self.session_factory() as db:
            result = await db.execute(delete(PushToken).where(PushToken.token.in_(tokens)))
            await db.commit()
            return result.rowcount or 0

    async def list(self) -> List[str]:
        async with self.session_factory() as db:
            stmt = select(PushToken.token).order_by(PushToken.id)
            cutoff = self._cutoff()
            if cutoff is not None:
                stmt = stmt.where(PushToken.last_seen_at >= cutoff)
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self.session_factory() as db:
            return await self._count(db)

    async def _count(self, db: AsyncSession) -> int:
        stmt = select(func.count(PushToken.id))
        cutoff = self._cutoff()
        if cutoff is not None:
            stmt = stmt.where(PushToken.last_seen_at >= cutoff)
        result = await db.execute(stmt)
        return result.scalar_one()


def create_token_store(kind: str, session_factory: async_sessionmaker, ttl_days: int = 0) -> TokenStore:
    if kind == "memory":
        logger.warning("Using in-memory token store; registered tokens are lost on restart.")
        return InMemoryTokenStore()
    if kind != "database":
        raise ValueError(f"Unknown TOKEN_STORE '{kind}'. Expected 'database' or 'memory'.")
    ttl = timedelta(days=ttl_days) if ttl_days > 0 else None
    return SqlAlchemyTokenStore(session_factory, ttl=ttl)
