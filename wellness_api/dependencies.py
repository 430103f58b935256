"""
Common Dependencies
===================

Collaborator wiring for the webhook endpoint. Tests override
``get_identity_directory`` and ``get_subscription_store`` through
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_api.db.session import get_db
from wellness_api.services.hotmart import HotmartService
from wellness_api.services.identity import IdentityDirectory, SQLIdentityDirectory
from wellness_api.services.subscription_store import (
    SQLSubscriptionStore,
    SubscriptionStore,
)

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_identity_directory(db: DBSession) -> IdentityDirectory:
    return SQLIdentityDirectory(db)


def get_subscription_store(db: DBSession) -> SubscriptionStore:
    return SQLSubscriptionStore(db)


def get_hotmart_service(
    identity: Annotated[IdentityDirectory, Depends(get_identity_directory)],
    store: Annotated[SubscriptionStore, Depends(get_subscription_store)],
) -> HotmartService:
    return HotmartService(identity, store)


HotmartServiceDep = Annotated[HotmartService, Depends(get_hotmart_service)]
