"""
Tenant scope resolution.

Every ledger read and write is filtered by (user_id, tenant_id). The tenant
id lives on the user's profile record, which the identity provider creates
asynchronously after sign-up; right after account creation it may not exist
yet.
"""

from typing import Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from fintrack.config import get_settings
from fintrack.models.ledger import Identity, TenantScope
from fintrack.services.storage import RemoteLedgerStore, StorageError


class ScopeUnresolvedError(Exception):
    """No tenant scope could be found for an identity."""

    def __init__(self, user_id: str, message: str):
        self.user_id = user_id
        super().__init__(message)


class TenantResolver:
    """
    Looks up the tenant bound to an authenticated identity.

    Purely a lookup; it never creates profiles.
    """

    def __init__(
        self,
        store: RemoteLedgerStore,
        attempts: Optional[int] = None,
        wait_seconds: Optional[float] = None,
    ):
        settings = get_settings().ledger
        self._store = store
        self._attempts = attempts or settings.profile_lookup_attempts
        self._wait_seconds = (
            wait_seconds if wait_seconds is not None else settings.profile_lookup_wait_seconds
        )

    async def resolve(self, identity: Identity) -> TenantScope:
        """
        Resolve the scope for an identity.

        Raises:
            ScopeUnresolvedError: No profile, an empty tenant id,
                or the profile lookup itself failed
        """
        try:
            tenant_id = await self._store.find_tenant_id(identity.user_id)
        except StorageError as e:
            raise ScopeUnresolvedError(
                identity.user_id,
                f"Profile lookup failed: {e}",
            ) from e

        if not tenant_id:
            raise ScopeUnresolvedError(
                identity.user_id,
                f"No profile with a tenant id exists for user {identity.user_id}",
            )
        return TenantScope(user_id=identity.user_id, tenant_id=tenant_id)

    async def resolve_with_retry(self, identity: Identity) -> TenantScope:
        """
        Resolve, retrying only while the profile is missing.

        Covers the window between sign-up and profile creation.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            wait=wait_fixed(self._wait_seconds),
            retry=retry_if_exception_type(ScopeUnresolvedError),
            reraise=True,
        ):
            with attempt:
                return await self.resolve(identity)
