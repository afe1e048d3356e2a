"""
Tests for the authentication service.

Tests cover:
- Silent-only status checks
- Sign-in fallback from silent to interactive
- Idempotent sign-out
- Request authentication and untouched requests on failure
- Single-flight identity client construction
- Overlapping operations and sign-out ordering
"""

import asyncio
import threading
from datetime import timedelta

import pytest

from graph_session.auth.engine import AuthenticationService, AuthState
from graph_session.models.result import TokenResult
from graph_session.utils.exceptions import AuthenticationError

SCOPES = ["https://graph.microsoft.com/User.Read"]


class TestIsAuthenticated:
    """Silent-only session checks."""

    @pytest.mark.asyncio
    async def test_initial_state_unknown(self, service):
        assert service.state is AuthState.UNKNOWN
        assert service.is_signed_in is False
        assert service.remembered_identifier == ""

    @pytest.mark.asyncio
    async def test_no_cached_account(self, service, fake_client):
        assert await service.is_authenticated() is False
        assert fake_client.silent_calls == []
        assert fake_client.interactive_calls == 0
        assert service.state is AuthState.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_interaction_required_never_prompts(
        self, service, fake_client, account_factory
    ):
        fake_client.accounts = [account_factory("user-1")]
        fake_client.silent = TokenResult.no_session("interaction_required")

        assert await service.is_authenticated() is False
        assert len(fake_client.silent_calls) == 1
        assert fake_client.interactive_calls == 0
        assert service.is_signed_in is False

    @pytest.mark.asyncio
    async def test_silent_success_remembers_first_account(
        self, service, fake_client, account_factory, credential_factory
    ):
        first, second = account_factory("user-1"), account_factory("user-2")
        fake_client.accounts = [first, second]
        fake_client.silent = TokenResult.success(credential_factory(first))

        assert await service.is_authenticated() is True
        assert service.is_signed_in is True
        assert service.remembered_identifier == "user-1"
        assert fake_client.silent_calls == [first]
        assert service.state is AuthState.SIGNED_IN

    @pytest.mark.asyncio
    async def test_storage_fault_raises(self, service, fake_client, account_factory):
        fake_client.accounts = [account_factory("user-1")]
        fault = OSError("cache file unreadable")
        fake_client.silent = fault

        with pytest.raises(AuthenticationError) as exc_info:
            await service.is_authenticated()

        assert exc_info.value.code == "generalException"
        assert exc_info.value.__cause__ is fault
        assert service.state is AuthState.UNKNOWN

    @pytest.mark.asyncio
    async def test_provider_fault_result_raises(self, service, fake_client, account_factory):
        fake_client.accounts = [account_factory("user-1")]
        fake_client.silent = TokenResult.fault(
            AuthenticationError("server unavailable", code="temporarily_unavailable")
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await service.is_authenticated()

        assert exc_info.value.code == "generalException"
        assert exc_info.value.__cause__.code == "temporarily_unavailable"

    @pytest.mark.asyncio
    async def test_stale_remembered_identifier_is_no_session(
        self, service, fake_client, account_factory
    ):
        fake_client.accounts = [account_factory("user-1")]
        service.session.update(remembered_identifier="X")

        assert await service.is_authenticated() is False
        assert fake_client.silent_calls == []
        assert service.remembered_identifier == "X"


class TestSignIn:
    """Silent-then-interactive sign-in."""

    @pytest.mark.asyncio
    async def test_silent_success_skips_interactive(
        self, service, fake_client, account_factory, credential_factory
    ):
        account = account_factory("user-1")
        fake_client.accounts = [account]
        fake_client.silent = TokenResult.success(credential_factory(account))

        assert await service.sign_in() is True
        assert fake_client.interactive_calls == 0

    @pytest.mark.asyncio
    async def test_interactive_records_account(self, service, fake_client):
        assert await service.sign_in() is True
        assert fake_client.interactive_calls == 1
        assert service.remembered_identifier == "interactive-user"
        assert service.is_signed_in is True

    @pytest.mark.asyncio
    async def test_interactive_after_interaction_required(
        self, service, fake_client, account_factory
    ):
        fake_client.accounts = [account_factory("user-1")]

        assert await service.sign_in() is True
        assert len(fake_client.silent_calls) == 1
        assert service.remembered_identifier == "interactive-user"

    @pytest.mark.asyncio
    async def test_both_without_session_returns_false(self, service, fake_client):
        fake_client.interactive = TokenResult.no_session("no account selected")

        assert await service.sign_in() is False
        assert service.is_signed_in is False
        assert service.state is AuthState.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_interactive_failure_raises_with_code(self, service, fake_client):
        fake_client.interactive = TokenResult.fault(
            AuthenticationError("User cancelled", code="access_denied")
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await service.sign_in()

        assert exc_info.value.code == "access_denied"
        assert service.is_signed_in is False

    @pytest.mark.asyncio
    async def test_interactive_exception_wrapped(self, service, fake_client):
        fake_client.interactive = ConnectionError("network unreachable")

        with pytest.raises(AuthenticationError) as exc_info:
            await service.sign_in()

        assert exc_info.value.code == "generalException"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_silent_system_fault_does_not_prompt(
        self, service, fake_client, account_factory
    ):
        fake_client.accounts = [account_factory("user-1")]
        fake_client.silent = ValueError("malformed cache")

        with pytest.raises(AuthenticationError):
            await service.sign_in()
        assert fake_client.interactive_calls == 0

    @pytest.mark.asyncio
    async def test_resolution_failure_still_allows_interactive(self, service, fake_client):
        fake_client.list_error = OSError("keyring locked")

        assert await service.sign_in() is True
        assert fake_client.interactive_calls == 1

    @pytest.mark.asyncio
    async def test_expired_silent_credential_triggers_interactive(
        self, service, fake_client, account_factory, credential_factory
    ):
        account = account_factory("user-1")
        fake_client.accounts = [account]
        fake_client.silent = TokenResult.success(
            credential_factory(account, lifetime=timedelta(minutes=-1))
        )

        assert await service.sign_in() is True
        assert fake_client.interactive_calls == 1


class TestSignOut:
    """Sign-out clears cache and state."""

    @pytest.mark.asyncio
    async def test_removes_accounts_and_clears_state(self, service, fake_client):
        await service.sign_in()
        assert service.is_signed_in is True

        await service.sign_out()

        assert [a.identifier for a in fake_client.removed] == ["interactive-user"]
        assert fake_client.accounts == []
        assert service.is_signed_in is False
        assert service.remembered_identifier == ""

    @pytest.mark.asyncio
    async def test_twice_is_idempotent(self, service, fake_client):
        await service.sign_in()
        await service.sign_out()
        await service.sign_out()

        assert len(fake_client.removed) == 1
        assert service.is_signed_in is False
        assert service.remembered_identifier == ""

    @pytest.mark.asyncio
    async def test_with_nothing_signed_in(self, service, fake_client):
        await service.sign_out()
        assert fake_client.removed == []
        assert service.state is AuthState.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_notifies_once_with_both_fields(self, service):
        await service.sign_in()
        events = []
        service.subscribe(lambda signed_in, identifier: events.append((signed_in, identifier)))

        await service.sign_out()
        await service.sign_out()

        assert events == [(False, "")]

    @pytest.mark.asyncio
    async def test_signed_out_session_not_reused(self, service, fake_client):
        await service.sign_in()
        await service.sign_out()

        assert await service.is_authenticated() is False


class TestAuthenticateRequest:
    """Bearer header application."""

    @pytest.mark.asyncio
    async def test_sets_bearer_header(
        self, service, fake_client, account_factory, credential_factory, request_envelope
    ):
        account = account_factory("user-1")
        fake_client.accounts = [account]
        fake_client.silent = TokenResult.success(credential_factory(account, token="abc123"))

        await service.authenticate_request(request_envelope)

        assert request_envelope.headers["Authorization"] == "Bearer abc123"
        assert fake_client.interactive_calls == 0
        assert service.is_signed_in is True

    @pytest.mark.asyncio
    async def test_interactive_fallback(self, service, fake_client, request_envelope):
        await service.authenticate_request(request_envelope)

        assert request_envelope.headers["Authorization"] == "Bearer interactive-token"
        assert service.remembered_identifier == "interactive-user"

    @pytest.mark.asyncio
    async def test_total_failure_leaves_request_untouched(
        self, service, fake_client, request_envelope
    ):
        fake_client.interactive = TokenResult.fault(
            AuthenticationError("Consent denied", code="access_denied")
        )

        with pytest.raises(AuthenticationError):
            await service.authenticate_request(request_envelope)

        assert "Authorization" not in request_envelope.headers

    @pytest.mark.asyncio
    async def test_no_session_after_interactive_raises(
        self, service, fake_client, request_envelope
    ):
        fake_client.interactive = TokenResult.no_session()

        with pytest.raises(AuthenticationError):
            await service.authenticate_request(request_envelope)

        assert request_envelope.headers == {}

    @pytest.mark.asyncio
    async def test_failure_does_not_flip_signed_in(
        self, service, fake_client, request_envelope
    ):
        await service.sign_in()
        fake_client.interactive = ConnectionError("offline")

        with pytest.raises(AuthenticationError):
            await service.authenticate_request(request_envelope)

        assert service.is_signed_in is True

    @pytest.mark.asyncio
    async def test_get_access_token(
        self, service, fake_client, account_factory, credential_factory
    ):
        account = account_factory("user-1")
        fake_client.accounts = [account]
        fake_client.silent = TokenResult.success(credential_factory(account, token="xyz"))

        assert await service.get_access_token() == "xyz"


class TestClientInitialization:
    """Lazy, single-flight identity client construction."""

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_construct_once(self, client_class):
        constructed = []
        lock = threading.Lock()

        def factory():
            with lock:
                constructed.append(1)
            return client_class()

        service = AuthenticationService(factory, SCOPES)

        results = await asyncio.gather(*(service.is_authenticated() for _ in range(10)))

        assert results == [False] * 10
        assert len(constructed) == 1

    @pytest.mark.asyncio
    async def test_not_constructed_until_first_use(self, client_class):
        constructed = []
        service = AuthenticationService(lambda: constructed.append(1) or client_class(), SCOPES)

        assert constructed == []
        await service.sign_out()
        await service.sign_out()
        assert constructed == [1]

    @pytest.mark.asyncio
    async def test_construction_failure_is_memoized(self):
        attempts = []

        def factory():
            attempts.append(1)
            raise OSError("keyring unavailable")

        service = AuthenticationService(factory, SCOPES)

        for _ in range(2):
            with pytest.raises(AuthenticationError) as exc_info:
                await service.is_authenticated()
            assert isinstance(exc_info.value.__cause__, OSError)

        assert len(attempts) == 1


class TestConcurrentOperations:
    """Overlapping operations on one service."""

    @staticmethod
    def blocking_client(client_class, account):
        """Client whose silent call parks until the test releases it."""
        entered, release = threading.Event(), threading.Event()

        class BlockingClient(client_class):
            def acquire_silent(self, scopes, account):
                entered.set()
                release.wait(timeout=5)
                return super().acquire_silent(scopes, account)

        client = BlockingClient([account])
        return client, entered, release

    @pytest.mark.asyncio
    async def test_sign_out_wins_over_earlier_status_check(
        self, client_class, account_factory, credential_factory
    ):
        account = account_factory("user-1")
        client, entered, release = self.blocking_client(client_class, account)
        client.silent = TokenResult.success(credential_factory(account))
        service = AuthenticationService(lambda: client, SCOPES)

        check = asyncio.create_task(service.is_authenticated())
        assert await asyncio.to_thread(entered.wait, 5)

        await service.sign_out()
        release.set()
        await check

        assert service.is_signed_in is False
        assert service.remembered_identifier == ""
        assert client.accounts == []

    @pytest.mark.asyncio
    async def test_sign_out_wins_over_earlier_request(
        self, client_class, account_factory, credential_factory, request_envelope
    ):
        account = account_factory("user-1")
        client, entered, release = self.blocking_client(client_class, account)
        client.silent = TokenResult.success(credential_factory(account))
        service = AuthenticationService(lambda: client, SCOPES)

        pending = asyncio.create_task(service.authenticate_request(request_envelope))
        assert await asyncio.to_thread(entered.wait, 5)

        await service.sign_out()
        release.set()
        await pending

        assert service.is_signed_in is False
        assert service.remembered_identifier == ""

    @pytest.mark.asyncio
    async def test_operations_after_sign_out_still_commit(
        self, service, fake_client
    ):
        await service.sign_in()
        await service.sign_out()

        assert await service.sign_in() is True
        assert service.is_signed_in is True
        assert service.remembered_identifier == "interactive-user"

    @pytest.mark.asyncio
    async def test_concurrent_sign_ins_leave_consistent_state(self, service, fake_client):
        results = await asyncio.gather(*(service.sign_in() for _ in range(5)))

        assert results == [True] * 5
        assert service.is_signed_in is True
        assert service.remembered_identifier == "interactive-user"
        assert {a.identifier for a in fake_client.accounts} == {"interactive-user"}

    @pytest.mark.asyncio
    async def test_resolved_account_remembered_before_silent_fault(
        self, service, fake_client, account_factory
    ):
        fake_client.accounts = [account_factory("user-1")]
        fake_client.silent = OSError("cache file unreadable")

        with pytest.raises(AuthenticationError):
            await service.is_authenticated()

        assert service.remembered_identifier == "user-1"
        assert service.is_signed_in is False
        assert service.state is AuthState.UNKNOWN
