import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from redis.asyncio import Redis

from models import Deposit, DepositStatus
from adapters.exceptions import DuplicateSessionError

logger = logging.getLogger(__name__)


class DepositStore:
    """Durable deposit records backed by SQLAlchemy with optional Redis caching.

    Only ``get_status`` reads through the cache. Reconciliation always reads the
    database so a stale cache entry can never hide a pending deposit. Only
    completed deposits are cached; that state never changes.
    """

    _CACHE_TTL = 300

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        redis: Optional[Redis] = None,
    ):
        self._sessionmaker = sessionmaker
        self._redis = redis

    @staticmethod
    def _cache_key(session_id: str) -> str:
        return f"deposit:{session_id}"

    async def create(
        self,
        amount: Decimal,
        session_id: str,
        currency: str,
        product_name: str,
    ) -> int:
        """Insert a pending deposit and return its id."""
        now = datetime.now(timezone.utc)
        deposit = Deposit(
            amount=amount,
            session_id=session_id,
            currency=currency,
            product_name=product_name,
            status=DepositStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        async with self._sessionmaker() as session:
            session.add(deposit)
            try:
                await session.flush()
                deposit_id = deposit.id
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateSessionError(
                    f"Deposit already exists for session {session_id}"
                ) from exc

        logger.info("Created pending deposit %s for session %s", deposit_id, session_id)
        return deposit_id

    async def find_by_session_id(self, session_id: str) -> Optional[Deposit]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(Deposit).where(Deposit.session_id == session_id)
            )
            return result.scalar_one_or_none()

    async def mark_completed(self, deposit_id: int) -> bool:
        """Move a deposit from Pending to Completed.

        The update only matches pending rows, so concurrent duplicate
        deliveries write at most once. Returns ``True`` when this call made the
        transition and ``False`` when the deposit was already completed.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(Deposit)
            .where(
                Deposit.id == deposit_id,
                Deposit.status == DepositStatus.PENDING.value,
            )
            .values(
                status=DepositStatus.COMPLETED.value,
                completed_at=now,
                updated_at=now,
            )
        )

        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            await session.commit()
            transitioned = result.rowcount > 0

            deposit = None
            if self._redis is not None:
                deposit = await session.get(Deposit, deposit_id)

        if deposit is not None:
            await self._cache_deposit(deposit.session_id, deposit.to_dict())

        return transitioned

    async def get_status(self, session_id: str) -> Optional[dict]:
        """Return a deposit summary by session id, or None if unknown."""
        if self._redis is not None:
            try:
                cached = await self._redis.get(self._cache_key(session_id))
                if cached:
                    return json.loads(cached)
            except Exception as exc:  # pragma: no cover - cache failure
                logger.warning("Redis lookup failed for %s: %s", session_id, exc)

        deposit = await self.find_by_session_id(session_id)
        if deposit is None:
            return None

        data = deposit.to_dict()
        # A pending entry could overwrite a concurrent completion.
        if data["status"] == DepositStatus.COMPLETED.value:
            await self._cache_deposit(session_id, data)
        return data

    async def _cache_deposit(self, session_id: str, data: dict) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.setex(
                self._cache_key(session_id), self._CACHE_TTL, json.dumps(data)
            )
        except Exception as exc:  # pragma: no cover - cache failure
            logger.warning("Failed to cache deposit %s: %s", session_id, exc)
