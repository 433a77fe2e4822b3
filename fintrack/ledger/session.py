"""
Session Lifecycle Bridge

Translates identity-provider events into ledger lifecycle:
- sign-in  → resolve tenant scope → fresh LedgerState → load
- sign-out → unload and drop the ledger

DESIGN DECISION: Events are applied strictly in delivery order. A single
asyncio.Lock serialises them, so a sign-out that arrives while a sign-in is
still loading waits for the load and then tears it down.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Protocol

import structlog

from fintrack.audit import AuditLogger
from fintrack.config import get_settings
from fintrack.config.settings import LedgerSettings
from fintrack.ledger.state import LedgerState
from fintrack.ledger.tenant import ScopeUnresolvedError, TenantResolver
from fintrack.models.ledger import Identity
from fintrack.notifications import NotificationCenter
from fintrack.services.storage import RemoteLedgerStore


logger = structlog.get_logger(__name__)

SessionCallback = Callable[[Optional[Identity]], Awaitable[None]]


class IdentityProvider(Protocol):
    """What the bridge needs from an external identity provider."""

    def current_identity(self) -> Optional[Identity]:
        ...

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        """Register for session changes. Returns an unsubscribe function."""
        ...


class StaticIdentityProvider:
    """
    In-process identity provider.

    Holds the current identity and awaits each subscriber, in subscription
    order, whenever it changes.
    """

    def __init__(self, identity: Optional[Identity] = None):
        self._identity = identity
        self._subscribers: list[SessionCallback] = []

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def sign_in(self, identity: Identity) -> None:
        self._identity = identity
        await self._publish()

    async def sign_out(self) -> None:
        self._identity = None
        await self._publish()

    async def _publish(self) -> None:
        for callback in list(self._subscribers):
            await callback(self._identity)


class SessionLifecycleBridge:
    """
    Owns the ledger for whoever is currently signed in.

    Usage:
        bridge = SessionLifecycleBridge(provider, resolver, store)
        await bridge.start()
        if bridge.ledger:
            print(bridge.ledger.summary())
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        resolver: TenantResolver,
        store: RemoteLedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationCenter] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._provider = identity_provider
        self._resolver = resolver
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._notifications = notifications or NotificationCenter(
            history=self._settings.notification_history
        )

        self._lock = asyncio.Lock()
        self._identity: Optional[Identity] = None
        self._ledger: Optional[LedgerState] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def ledger(self) -> Optional[LedgerState]:
        """The active ledger, or None when signed out or unscoped."""
        return self._ledger

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    async def start(self) -> None:
        """Apply the provider's current session, then follow its changes."""
        await self.on_session_change(self._provider.current_identity())
        if self._unsubscribe is None:
            self._unsubscribe = self._provider.subscribe(self.on_session_change)

    async def stop(self) -> None:
        """Stop following the provider and release the ledger."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        async with self._lock:
            await self._sign_out()

    async def on_session_change(self, identity: Optional[Identity]) -> None:
        async with self._lock:
            if identity is None:
                await self._sign_out()
                return

            if self._identity is not None and self._identity.user_id == identity.user_id:
                if self._ledger is not None:
                    return
                # Same user, scope never resolved: try again
            elif self._identity is not None:
                await self._sign_out()

            await self._sign_in(identity)

    async def _sign_in(self, identity: Identity) -> None:
        self._identity = identity
        try:
            scope = await self._resolver.resolve_with_retry(identity)
        except ScopeUnresolvedError as e:
            logger.warning("scope_unresolved", user_id=identity.user_id, error=str(e))
            self._notifications.warning(
                "Account setup incomplete",
                "No tenant found for this account; data was not loaded.",
            )
            if self._audit_logger:
                await self._audit_logger.log_scope_unresolved(identity.user_id, str(e))
            return

        ledger = LedgerState(
            scope,
            self._store,
            audit_logger=self._audit_logger,
            notifications=self._notifications,
            settings=self._settings,
        )
        self._ledger = ledger
        if self._audit_logger:
            await self._audit_logger.log_session_started(scope)
        await ledger.load()

    async def _sign_out(self) -> None:
        identity, ledger = self._identity, self._ledger
        self._identity = None
        self._ledger = None
        if ledger is not None:
            ledger.unload()
        if identity is not None:
            logger.info("session_ended", user_id=identity.user_id)
            if self._audit_logger:
                await self._audit_logger.log_session_ended(
                    identity.user_id,
                    ledger.scope.tenant_id if ledger else None,
                )
