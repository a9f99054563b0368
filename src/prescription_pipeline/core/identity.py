# ============================================================================
# src/prescription_pipeline/core/identity.py
# ============================================================================
"""
Current-user identity used to own persisted prescriptions.

- StaticIdentityProvider: fixed (or absent) user, e.g. from an auth header
- AnonymousIdentityProvider: falls back to an anonymous uid minted once;
  with a document store the uid is saved and reused after a restart, so
  prescriptions it owns can still be resumed
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import asyncio
import logging
import uuid
from typing import Optional

from ..constants.layout import ANONYMOUS_USER_DOCUMENT, IDENTITY_COLLECTION
from .document_store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    uid: str
    is_anonymous: bool = False


class IdentityProvider(ABC):

    @abstractmethod
    async def current_user(self) -> Optional[UserIdentity]:
        """Signed-in identity, or None when nobody is signed in."""
        pass


class StaticIdentityProvider(IdentityProvider):

    def __init__(self, user: Optional[UserIdentity] = None):
        self.user = user

    async def current_user(self) -> Optional[UserIdentity]:
        return self.user


class AnonymousIdentityProvider(IdentityProvider):
    """Wraps another provider and signs in anonymously when it has no user."""

    def __init__(self, inner: Optional[IdentityProvider] = None, store: Optional[DocumentStore] = None):
        self.inner = inner
        self.store = store
        self._anonymous: Optional[UserIdentity] = None
        self._lock = asyncio.Lock()

    async def current_user(self) -> Optional[UserIdentity]:
        if self.inner is not None:
            user = await self.inner.current_user()
            if user is not None:
                return user

        async with self._lock:
            if self._anonymous is None:
                self._anonymous = UserIdentity(uid=await self._load_or_mint_uid(), is_anonymous=True)
                logger.info(f"Signed in anonymously as {self._anonymous.uid}")
            return self._anonymous

    async def _load_or_mint_uid(self) -> str:
        if self.store is not None:
            saved = await self.store.get(IDENTITY_COLLECTION, ANONYMOUS_USER_DOCUMENT)
            if saved and saved.get("uid"):
                return saved["uid"]

        uid = f"anon-{uuid.uuid4().hex}"
        if self.store is not None:
            await self.store.save(IDENTITY_COLLECTION, ANONYMOUS_USER_DOCUMENT, {"uid": uid})
        return uid
