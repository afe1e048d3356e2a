"""Shared fixtures: a scriptable identity client and service wiring."""

from datetime import timedelta
from typing import Optional, Sequence

import pytest

from graph_session.auth.base import IdentityClient
from graph_session.auth.engine import AuthenticationService
from graph_session.models.account import Account
from graph_session.models.credential import Credential
from graph_session.models.result import TokenResult
from graph_session.utils.date_utils import utc_now

SCOPES = ["https://graph.microsoft.com/User.Read"]


def make_account(identifier: str, username: Optional[str] = None) -> Account:
    return Account(identifier=identifier, username=username or f"{identifier}@contoso.com")


def make_credential(
    account: Account,
    token: str = "token-abc",
    lifetime: timedelta = timedelta(hours=1),
) -> Credential:
    return Credential(
        access_token=token,
        expires_on=utc_now() + lifetime,
        account=account,
        scopes=tuple(SCOPES),
    )


class FakeIdentityClient(IdentityClient):
    """In-memory identity client recording every call.

    ``silent`` and ``interactive`` hold the outcome to return: a TokenResult,
    an exception to raise, or None for the defaults (silent needs
    interaction; interactive signs in ``interactive_account``).
    """

    def __init__(self, accounts: Optional[list[Account]] = None):
        self.accounts: list[Account] = list(accounts or [])
        self.silent = None
        self.interactive = None
        self.list_error: Optional[Exception] = None
        self.interactive_account = make_account("interactive-user")
        self.silent_calls: list[Account] = []
        self.interactive_calls = 0
        self.removed: list[Account] = []

    def acquire_silent(self, scopes: Sequence[str], account: Account) -> TokenResult:
        self.silent_calls.append(account)
        if isinstance(self.silent, Exception):
            raise self.silent
        return self.silent or TokenResult.no_session("interaction_required")

    def acquire_interactive(self, scopes: Sequence[str]) -> TokenResult:
        self.interactive_calls += 1
        if isinstance(self.interactive, Exception):
            raise self.interactive
        if self.interactive is not None:
            return self.interactive
        account = self.interactive_account
        if account not in self.accounts:
            self.accounts.append(account)
        return TokenResult.success(make_credential(account, token="interactive-token"))

    def list_accounts(self) -> list[Account]:
        if self.list_error:
            raise self.list_error
        return list(self.accounts)

    def get_account(self, identifier: str) -> Optional[Account]:
        if self.list_error:
            raise self.list_error
        return next((a for a in self.accounts if a.identifier == identifier), None)

    def remove_account(self, account: Account) -> None:
        self.removed.append(account)
        self.accounts = [a for a in self.accounts if a.identifier != account.identifier]


class FakeRequest:
    """Minimal request envelope with a headers mapping."""

    def __init__(self):
        self.headers: dict[str, str] = {}


@pytest.fixture
def fake_client():
    return FakeIdentityClient()


@pytest.fixture
def service(fake_client):
    return AuthenticationService(lambda: fake_client, SCOPES)


@pytest.fixture
def account_factory():
    return make_account


@pytest.fixture
def credential_factory():
    return make_credential


@pytest.fixture
def request_envelope():
    return FakeRequest()


@pytest.fixture
def client_class():
    return FakeIdentityClient
