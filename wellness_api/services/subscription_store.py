"""
Subscription Store
==================

Reads and single-row updates of the ``subscriptions`` table.

Each write touches exactly one row (matched by ``user_id``) and is
committed on its own, so Postgres row atomicity is all the isolation
the webhook needs.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_api.models import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)


class SubscriptionStoreError(Exception):
    """A subscription write could not be persisted."""


class SubscriptionStore(Protocol):
    async def get_by_user_id(self, user_id: uuid.UUID) -> Optional[Subscription]:
        ...

    async def has_active_transaction(self, transaction_id: str) -> bool:
        ...

    async def activate(
        self, user_id: uuid.UUID, transaction_id: str, now: datetime
    ) -> bool:
        ...

    async def deactivate(self, user_id: uuid.UUID, now: datetime) -> bool:
        ...


class SQLSubscriptionStore:
    """Subscription store backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user_id(self, user_id: uuid.UUID) -> Optional[Subscription]:
        stmt = select(Subscription).where(Subscription.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def has_active_transaction(self, transaction_id: str) -> bool:
        """Check whether any active subscription already carries this transaction."""
        stmt = (
            select(Subscription.subscription_id)
            .where(
                Subscription.hotmart_transaction_id == transaction_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def activate(
        self,
        user_id: uuid.UUID,
        transaction_id: str,
        now: datetime,
    ) -> bool:
        """
        Grant the entitlement for ``transaction_id``.

        The update is conditional: a row that is already active with the
        same transaction id is left untouched, so two concurrent replays
        cannot both apply.

        Returns:
            True if a row was updated.

        Raises:
            SubscriptionStoreError: If the update or commit fails.
        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                or_(
                    Subscription.status != SubscriptionStatus.ACTIVE,
                    Subscription.hotmart_transaction_id.is_(None),
                    Subscription.hotmart_transaction_id != transaction_id,
                ),
            )
            .values(
                status=SubscriptionStatus.ACTIVE,
                activated_at=now,
                hotmart_transaction_id=transaction_id,
                expires_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def deactivate(self, user_id: uuid.UUID, now: datetime) -> bool:
        """
        Revoke the entitlement, stamping ``expires_at`` with ``now``.

        Returns:
            True if a row was updated.

        Raises:
            SubscriptionStoreError: If the update or commit fails.
        """
        stmt = (
            update(Subscription)
            .where(Subscription.user_id == user_id)
            .values(
                status=SubscriptionStatus.INACTIVE,
                expires_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(stmt)

    async def _execute_write(self, stmt) -> bool:
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            try:
                await self.db.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.error("Rollback after failed write also failed: %s", rollback_exc)
            raise SubscriptionStoreError(type(exc).__name__) from exc
        return result.rowcount > 0
