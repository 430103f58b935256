"""
Identity Directory
==================

Direct lookup of user accounts by verified email.

Lookups read the application's ``public.users`` table, not Supabase's
``auth.users``. Signup is responsible for keeping the two in step: every
confirmed account must have a ``public.users`` row with the same email
(and a ``subscriptions`` row), typically written by an ``AFTER INSERT``
trigger on ``auth.users`` or by the signup backend. A buyer whose
account was never copied over is answered 404.
"""

from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_api.models import User


class IdentityDirectory(Protocol):
    async def find_user_by_email(self, email: str) -> Optional[User]:
        ...


class SQLIdentityDirectory:
    """Identity directory backed by the ``users`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_email(self, email: str) -> Optional[User]:
        """
        Find a user by normalized (lower-cased, trimmed) email.

        Stored emails may carry their original casing, so the comparison
        is done on ``lower(email)``.
        """
        stmt = select(User).where(func.lower(User.email) == email).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
