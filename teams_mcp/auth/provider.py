"""Credential provider: the only source of access tokens for API callers."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from datetime import timedelta
from enum import Enum

from teams_mcp.auth.exceptions import (
    CredentialsError,
    NotAuthenticatedError,
    RefreshFailure,
    RefreshTransportError,
)
from teams_mcp.auth.models import AuthStatus, CredentialRecord, UserIdentity
from teams_mcp.auth.oauth.refresh import TokenRefresher
from teams_mcp.auth.storage.base import TokenStorage
from teams_mcp.core.logging import get_logger
from teams_mcp.utils.clock import Clock, utc_now


logger = get_logger(__name__)

IdentityCheck = Callable[[str], Awaitable[UserIdentity]]

DEFAULT_REFRESH_MARGIN = timedelta(minutes=5)


class ProviderState(str, Enum):
    """Lifecycle state of a :class:`CredentialProvider`."""

    UNINITIALIZED = "uninitialized"
    UNAUTHENTICATED = "unauthenticated"
    READY = "ready"


class CredentialProvider:
    """Hand out access tokens that are valid for at least the refresh margin.

    The record is loaded from storage on first use. Expiring tokens are
    refreshed before being returned, and concurrent callers that find the
    token stale share one in-flight refresh instead of each spending the
    single-use refresh token. No lock is held while a request is in flight.

    One instance is created per process and passed to every consumer.
    """

    def __init__(
        self,
        storage: TokenStorage,
        refresher: TokenRefresher,
        identity_check: IdentityCheck | None = None,
        refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN,
        clock: Clock = utc_now,
    ):
        """Initialize the provider.

        Args:
            storage: Credential store holding the persisted record
            refresher: Refresh engine used when the token is stale
            identity_check: Live check used by :meth:`get_status`; receives an
                access token and returns the signed-in user
            refresh_margin: Refresh when the token expires within this window
            clock: Source of the current time
        """
        self.storage = storage
        self.refresher = refresher
        self.identity_check = identity_check
        self.refresh_margin = refresh_margin
        self.clock = clock

        self._state = ProviderState.UNINITIALIZED
        self._record: CredentialRecord | None = None
        self._init_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[CredentialRecord] | None = None
        # Bumped on reload/logout so a refresh started earlier cannot resurrect state
        self._generation = 0

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def record(self) -> CredentialRecord | None:
        """The in-memory record, if the provider is ready."""
        return self._record

    # ==================== Initialization ====================

    async def _ensure_initialized(self) -> None:
        if self._state is not ProviderState.UNINITIALIZED:
            return

        async with self._init_lock:
            if self._state is not ProviderState.UNINITIALIZED:
                return

            try:
                record = await self.storage.load()
            except CredentialsError as e:
                logger.error(
                    "credentials_unreadable",
                    location=self.storage.get_location(),
                    error=str(e),
                    category="auth",
                )
                record = None

            if record is None or not record.authenticated:
                self._record = None
                self._state = ProviderState.UNAUTHENTICATED
                logger.info(
                    "provider_unauthenticated",
                    location=self.storage.get_location(),
                    category="auth",
                )
            else:
                self._record = record
                self._state = ProviderState.READY
                logger.info(
                    "provider_ready",
                    expires_at=record.expires_at.isoformat(),
                    category="auth",
                )

    async def _wait_for_refresh(self) -> None:
        """Let an in-flight refresh finish, including its store write."""
        task = self._refresh_task
        if task is None:
            return
        logger.debug("waiting_for_inflight_refresh", category="auth")
        with contextlib.suppress(RefreshFailure):
            await asyncio.shield(task)

    async def reload(self) -> None:
        """Forget in-memory state so the next access re-reads storage.

        An in-flight refresh completes first, so the record read afterwards
        carries the rotated refresh token.
        """
        await self._wait_for_refresh()
        self._generation += 1
        self._record = None
        self._state = ProviderState.UNINITIALIZED
        logger.debug("provider_reload", category="auth")

    async def logout(self) -> bool:
        """Remove the stored record and stop serving tokens.

        Callers are refused immediately. The store is cleared after any
        in-flight refresh has written its result, so that write cannot bring
        the record back.

        Returns:
            True if a stored record was removed
        """
        self._generation += 1
        self._record = None
        self._state = ProviderState.UNAUTHENTICATED
        await self._wait_for_refresh()
        return await self.storage.clear()

    # ==================== Token access ====================

    def needs_refresh(self, record: CredentialRecord) -> bool:
        return record.needs_refresh(self.clock(), self.refresh_margin)

    async def get_access_token(self) -> str:
        """Return a bearer token valid beyond the refresh margin.

        Raises:
            NotAuthenticatedError: No record exists, or refreshing failed
        """
        await self._ensure_initialized()

        record = self._record
        if self._state is not ProviderState.READY or record is None:
            raise NotAuthenticatedError()

        if self.needs_refresh(record):
            logger.debug(
                "access_token_stale",
                expires_at=record.expires_at.isoformat(),
                category="auth",
            )
            record = await self._refresh(record)

        return record.access_token.get_secret_value()

    async def _refresh(self, stale: CredentialRecord) -> CredentialRecord:
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._run_refresh(stale, self._generation))
            self._refresh_task = task
        else:
            logger.debug("token_refresh_joined", category="auth")

        try:
            # Shielded so one cancelled waiter does not abort the shared refresh
            return await asyncio.shield(task)
        except RefreshTransportError as e:
            raise NotAuthenticatedError(
                "Unable to refresh the access token because the authorization "
                "server could not be reached. Try again, or if it keeps failing:"
            ) from e
        except RefreshFailure as e:
            raise NotAuthenticatedError(
                "Stored credentials can no longer be refreshed."
            ) from e

    async def _run_refresh(
        self, stale: CredentialRecord, generation: int
    ) -> CredentialRecord:
        try:
            refreshed = await self.refresher.refresh(stale)
        except RefreshTransportError:
            # Transient; stay ready so a later call retries
            raise
        except RefreshFailure as e:
            if generation == self._generation:
                self._record = None
                self._state = ProviderState.UNAUTHENTICATED
            logger.warning(
                "provider_refresh_failed",
                reason=e.reason.value,
                error=str(e),
                category="auth",
            )
            raise
        else:
            if generation == self._generation:
                self._record = refreshed
            return refreshed
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

    # ==================== Status ====================

    async def get_status(self) -> AuthStatus:
        """Report whether the stored credentials work against the API.

        A failed identity check triggers one refresh and one retry before the
        user is reported as unauthenticated.
        """
        await self._ensure_initialized()
        if self._state is not ProviderState.READY:
            return AuthStatus(is_authenticated=False)

        try:
            token = await self.get_access_token()
        except NotAuthenticatedError:
            return AuthStatus(is_authenticated=False)

        if self.identity_check is None:
            return self._status_for(None)

        try:
            identity = await self.identity_check(token)
        except Exception as e:
            logger.warning("identity_check_failed", error=str(e), category="auth")
        else:
            return self._status_for(identity)

        record = self._record
        if record is None:
            return AuthStatus(is_authenticated=False)

        try:
            refreshed = await self._refresh(record)
            identity = await self.identity_check(
                refreshed.access_token.get_secret_value()
            )
        except NotAuthenticatedError:
            return AuthStatus(is_authenticated=False)
        except Exception as e:
            logger.error(
                "identity_check_failed_after_refresh", error=str(e), category="auth"
            )
            return AuthStatus(is_authenticated=False)

        return self._status_for(identity)

    def _status_for(self, identity: UserIdentity | None) -> AuthStatus:
        return AuthStatus(
            is_authenticated=True,
            user_principal_name=identity.user_principal_name if identity else None,
            display_name=identity.display_name if identity else None,
            expires_at=self._record.expires_at if self._record else None,
        )
