"""Token acquisition engine: silent first, interactive when needed."""

import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from ..config import AppConfig
from ..models.credential import Credential
from ..models.result import AcquisitionStatus, TokenResult
from ..utils.exceptions import AuthenticationError
from .account_resolver import AccountResolver
from .base import IdentityClient
from .msal_client import MsalIdentityClient
from .request_auth import RequestAuthenticator
from .session import SessionState, StateListener
from .single_flight import SingleFlight
from .token_cache import TokenCacheManager

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Unexpected exception occurred while authenticating the request."

ClientFactory = Callable[[], IdentityClient]


class AuthState(str, Enum):
    """Externally visible sign-in state."""

    UNKNOWN = "unknown"
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class AuthenticationService:
    """Obtains bearer credentials for a single interactive user.

    The identity client is built lazily on first use, exactly once, even
    when several coroutines hit the service concurrently. Silent acquisition
    is always tried first; "no session" outcomes from it are not errors and
    only lead to the interactive flow where the operation allows one. System
    faults and interactive failures raise :class:`AuthenticationError`.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        scopes: Sequence[str],
        authenticator: Optional[RequestAuthenticator] = None,
    ):
        """
        Initialize the authentication service.

        Args:
            client_factory: Builds the identity client; blocking, called once
            scopes: Scopes requested for every token
            authenticator: Applies credentials to requests
        """
        self.scopes = tuple(scopes)
        self.session = SessionState()
        self.authenticator = authenticator or RequestAuthenticator()
        self._client_factory = client_factory
        self._client = SingleFlight(self._create_client, name="identity client")
        self._settled = False
        # Bumped by every completed sign-out; results begun earlier are dropped
        self._sign_outs = 0

    @classmethod
    def from_config(cls, config: AppConfig) -> "AuthenticationService":
        """Build a service backed by MSAL and the persisted token cache."""

        def factory() -> IdentityClient:
            return MsalIdentityClient(config.auth, TokenCacheManager(config.storage))

        return cls(factory, config.auth.graph_scopes)

    @property
    def is_signed_in(self) -> bool:
        return self.session.is_signed_in

    @property
    def remembered_identifier(self) -> str:
        return self.session.remembered_identifier

    @property
    def state(self) -> AuthState:
        if not self._settled:
            return AuthState.UNKNOWN
        return AuthState.SIGNED_IN if self.is_signed_in else AuthState.SIGNED_OUT

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Observe sign-in changes; returns an unsubscribe function."""
        return self.session.subscribe(listener)

    async def is_authenticated(self) -> bool:
        """
        Check for a usable cached session without prompting the user.

        Returns:
            True if a token was acquired silently

        Raises:
            AuthenticationError: On system faults (storage, corrupted cache)
        """
        generation = self._sign_outs
        client = await self._get_client()
        result, identifier = await self._acquire_silent(client, generation)
        self._commit(result.ok, identifier, generation)
        return result.ok

    async def sign_in(self) -> bool:
        """
        Sign in silently if possible, interactively otherwise.

        Returns:
            The new sign-in state

        Raises:
            AuthenticationError: If interactive sign-in fails or on system faults
        """
        generation = self._sign_outs
        client = await self._get_client()
        result, identifier = await self._acquire_silent(client, generation)
        if not result.ok:
            result = await self._acquire_interactive(client)
            if result.ok:
                identifier = result.credential.account.identifier

        self._commit(result.ok, identifier, generation)
        return result.ok

    async def sign_out(self) -> None:
        """
        Remove every cached account and forget the remembered user.

        Calling it with nobody signed in is a no-op.

        Raises:
            AuthenticationError: If the token cache cannot be updated
        """
        client = await self._get_client()

        # There should only be one account, but remove all of them
        try:
            accounts = await asyncio.to_thread(client.list_accounts)
            for account in accounts:
                await asyncio.to_thread(client.remove_account, account)
        except Exception as e:
            raise AuthenticationError(
                f"Failed to remove cached accounts: {e}"
            ) from e

        self._sign_outs += 1
        self._commit(False, "", self._sign_outs)

    async def authenticate_request(self, request: Any) -> None:
        """
        Set the request's Authorization header to a current bearer token.

        Args:
            request: Envelope with a mutable ``headers`` mapping

        Raises:
            AuthenticationError: If no credential could be obtained; the
                request is left unmodified
        """
        generation = self._sign_outs
        credential, identifier = await self._acquire_credential(generation)
        self.authenticator.apply(request, credential)
        self._commit(True, identifier, generation)

    async def get_access_token(self) -> str:
        """
        Get a current access token (silent first, then interactive).

        Raises:
            AuthenticationError: If no credential could be obtained
        """
        generation = self._sign_outs
        credential, identifier = await self._acquire_credential(generation)
        self._commit(True, identifier, generation)
        return credential.access_token

    async def _create_client(self) -> IdentityClient:
        return await asyncio.to_thread(self._client_factory)

    async def _get_client(self) -> IdentityClient:
        try:
            return await self._client.get()
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(
                f"Failed to initialize identity client: {e}"
            ) from e

    async def _acquire_credential(self, generation: int) -> tuple[Credential, str]:
        client = await self._get_client()
        result, identifier = await self._acquire_silent(client, generation)
        if not result.ok:
            result = await self._acquire_interactive(client)
            if not result.ok:
                raise AuthenticationError(
                    "No credential available after interactive sign-in",
                    code=result.reason,
                )
            identifier = result.credential.account.identifier
        return result.credential, identifier

    async def _acquire_silent(
        self, client: IdentityClient, generation: int
    ) -> tuple[TokenResult, str]:
        """
        Try to get a token without user interaction.

        Returns:
            The result and the remembered identifier to commit with it
        """
        remembered = self.session.remembered_identifier
        account = await asyncio.to_thread(AccountResolver(client).resolve, remembered)
        if account is None:
            return TokenResult.no_session("no cached account"), remembered

        # First account found without a remembered id becomes the remembered one,
        # even if the silent call below faults
        identifier = remembered or account.identifier
        if identifier != remembered and not self._is_stale(generation):
            self.session.update(remembered_identifier=identifier)

        try:
            result = await asyncio.to_thread(client.acquire_silent, self.scopes, account)
        except Exception as e:
            raise AuthenticationError(UNEXPECTED_ERROR_MESSAGE) from e

        if result.status is AcquisitionStatus.FAULT:
            raise AuthenticationError(UNEXPECTED_ERROR_MESSAGE) from result.error
        if result.ok and result.credential.is_expired(skew=timedelta(0)):
            return TokenResult.no_session("expired credential"), identifier
        return result, identifier

    async def _acquire_interactive(self, client: IdentityClient) -> TokenResult:
        logger.debug("Silent acquisition failed, starting interactive sign-in")
        try:
            result = await asyncio.to_thread(client.acquire_interactive, self.scopes)
        except Exception as e:
            raise AuthenticationError(UNEXPECTED_ERROR_MESSAGE) from e

        if result.status is AcquisitionStatus.FAULT:
            error = result.error or AuthenticationError(UNEXPECTED_ERROR_MESSAGE)
            raise AuthenticationError(error.message, code=error.code) from error
        return result

    def _is_stale(self, generation: int) -> bool:
        return generation != self._sign_outs

    def _commit(
        self, is_signed_in: bool, remembered_identifier: str, generation: int
    ) -> None:
        if self._is_stale(generation):
            logger.debug("Discarding sign-in result that predates a sign-out")
            return

        before = self.state
        self._settled = True
        self.session.update(
            is_signed_in=is_signed_in, remembered_identifier=remembered_identifier
        )
        if self.state is not before:
            logger.debug(f"Authentication state {before.value} -> {self.state.value}")
