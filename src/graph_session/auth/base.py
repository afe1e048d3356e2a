"""Abstract base class for identity provider clients."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..models.account import Account
from ..models.result import TokenResult


class IdentityClient(ABC):
    """Performs token exchanges against the identity provider.

    Implementations are synchronous and may block on network or secure
    storage; the authentication service runs them off the event loop.
    """

    @abstractmethod
    def acquire_silent(self, scopes: Sequence[str], account: Account) -> TokenResult:
        """
        Acquire a token for ``account`` from cache or refresh material only.

        Args:
            scopes: Requested scopes
            account: Cached account to acquire for

        Returns:
            SUCCESS with a credential, NO_SESSION when the provider requires
            interaction, or FAULT for any other provider error
        """

    @abstractmethod
    def acquire_interactive(self, scopes: Sequence[str]) -> TokenResult:
        """
        Acquire a token through a user-facing sign-in flow.

        Args:
            scopes: Requested scopes

        Returns:
            SUCCESS with a credential, or FAULT describing why sign-in failed
        """

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List accounts in the token cache, in provider enumeration order."""

    @abstractmethod
    def get_account(self, identifier: str) -> Optional[Account]:
        """Look up a cached account by identifier."""

    @abstractmethod
    def remove_account(self, account: Account) -> None:
        """Remove an account and its tokens from the cache."""
