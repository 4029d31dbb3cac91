"""
Profile documents keyed by user id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError

from account_portal.clients.sqlite_store import DocumentStore
from account_portal.models.profile import AuthUser, UserProfile

logger = logging.getLogger(__name__)


class ProfileRepository:
    """Read and write ``UserProfile`` documents in one collection."""

    def __init__(self, store: DocumentStore, collection: str = "users") -> None:
        self._store = store
        self.collection = collection

    async def get(self, uid: str) -> Optional[UserProfile]:
        document = await self._store.get_document(self.collection, uid)
        if document is None:
            return None
        try:
            return UserProfile.model_validate({"uid": uid, **document})
        except ValidationError as exc:
            logger.warning("Ignoring malformed profile document %s: %s", uid, exc)
            return None

    async def exists(self, uid: str) -> bool:
        return await self._store.get_document(self.collection, uid) is not None

    async def save(self, profile: UserProfile) -> UserProfile:
        await self._store.set_document(self.collection, profile.uid, profile.to_document())
        return profile

    async def get_or_create(self, user: AuthUser) -> UserProfile:
        profile = await self.get(user.uid)
        if profile is not None:
            return profile
        logger.info("Creating profile for %s", user.uid)
        return await self.save(UserProfile.for_user(user))

    async def update_fields(self, uid: str, fields: Dict[str, Any]) -> None:
        """Patch an existing document, stamping ``updatedAt``."""
        stamped = {**fields, "updatedAt": datetime.now(timezone.utc)}
        await self._store.update_document(self.collection, uid, stamped)

    async def update_if_exists(self, uid: str, fields: Dict[str, Any]) -> bool:
        """Mirror ``fields`` into the document only when it already exists."""
        if not await self.exists(uid):
            return False
        await self.update_fields(uid, fields)
        return True

    async def delete_if_exists(self, uid: str) -> bool:
        if not await self.exists(uid):
            return False
        await self._store.delete_document(self.collection, uid)
        return True

    async def list_profiles(self) -> list[UserProfile]:
        profiles = []
        for document in await self._store.list_documents(self.collection):
            try:
                profiles.append(UserProfile.model_validate(document))
            except ValidationError as exc:
                logger.warning("Skipping malformed profile document: %s", exc)
        return profiles


__all__ = ["ProfileRepository"]
