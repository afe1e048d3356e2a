"""MSAL-based identity client for Microsoft Graph."""

import base64
import json
import logging
from typing import Any, Callable, Optional, Sequence

import msal

from ..config import AuthSettings
from ..models.account import Account
from ..models.credential import Credential
from ..models.result import TokenResult
from ..utils.date_utils import expiry_from_result
from ..utils.exceptions import AuthenticationError
from .base import IdentityClient
from .token_cache import TokenCacheManager

logger = logging.getLogger(__name__)

# Microsoft Graph PowerShell public client, usable without an app registration
DEFAULT_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

# Errors meaning "the user has to sign in again", not "something is broken"
INTERACTION_REQUIRED_ERRORS = {
    "interaction_required",
    "login_required",
    "consent_required",
    "invalid_grant",
}
INTERACTION_REQUIRED_SUBERRORS = {
    "basic_action",
    "additional_action",
    "message_only",
    "consent_required",
    "user_password_expired",
    "bad_token",
}


def _print_prompt(message: str) -> None:
    print("\n" + "=" * 70)
    print("AUTHENTICATION REQUIRED")
    print("=" * 70)
    print(f"\n{message}\n")
    print("=" * 70 + "\n")


def _home_account_id(result: dict[str, Any]) -> str:
    """
    Derive MSAL's home account id (``uid.utid``) from ``client_info``.

    Returns an empty string when the response carries no usable client info.
    """
    raw = result.get("client_info")
    if not raw:
        return ""
    try:
        padded = raw + "=" * (-len(raw) % 4)
        info = json.loads(base64.urlsafe_b64decode(padded))
    except ValueError:
        logger.debug("Ignoring undecodable client_info in token response")
        return ""
    if not isinstance(info, dict) or not info.get("uid") or not info.get("utid"):
        return ""
    return f"{info['uid']}.{info['utid']}"


class MsalIdentityClient(IdentityClient):
    """Identity client backed by an MSAL PublicClientApplication."""

    def __init__(
        self,
        settings: AuthSettings,
        cache_manager: TokenCacheManager,
        prompt_callback: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the MSAL public client with a persisted token cache.

        Args:
            settings: Identity provider settings
            cache_manager: Token cache manager providing the persisted cache
            prompt_callback: Receives device code instructions (defaults to stdout)

        Raises:
            TokenCacheError: If the persisted cache cannot be opened
        """
        self.settings = settings
        self.cache_manager = cache_manager
        self.prompt_callback = prompt_callback or _print_prompt

        logger.info(
            f"Initializing MSAL public client, client_id="
            f"{'<default>' if not settings.client_id else '<custom>'}, "
            f"mode={settings.interactive_mode}"
        )
        self.app = msal.PublicClientApplication(
            client_id=settings.client_id or DEFAULT_CLIENT_ID,
            authority=settings.resolved_authority,
            token_cache=cache_manager.get_cache(),
        )

    def list_accounts(self) -> list[Account]:
        return [Account.from_msal(record) for record in self.app.get_accounts()]

    def get_account(self, identifier: str) -> Optional[Account]:
        for record in self.app.get_accounts():
            if record.get("home_account_id") == identifier:
                return Account.from_msal(record)
        return None

    def remove_account(self, account: Account) -> None:
        record = account.raw or self._find_record(account.identifier)
        if record is None:
            logger.debug("Account already absent from token cache")
            return
        self.app.remove_account(record)
        logger.info(f"Removed account {account.username or account.identifier} from cache")

    def acquire_silent(self, scopes: Sequence[str], account: Account) -> TokenResult:
        """
        Attempt to acquire a token from cache or via refresh token.

        Returns:
            TokenResult, NO_SESSION when MSAL has nothing usable or wants interaction
        """
        record = account.raw or self._find_record(account.identifier)
        if record is None:
            return TokenResult.no_session("account not in cache")

        result = self.app.acquire_token_silent_with_error(list(scopes), account=record)
        if result is None:
            return TokenResult.no_session("no cached token")
        if "access_token" in result:
            logger.debug("Token acquired from cache")
            return TokenResult.success(self._to_credential(result, account, scopes))

        error = result.get("error", "unknown_error")
        if error in INTERACTION_REQUIRED_ERRORS or (
            result.get("suberror") in INTERACTION_REQUIRED_SUBERRORS
        ):
            logger.debug(f"Silent acquisition needs interaction: {error}")
            return TokenResult.no_session(error)

        return TokenResult.fault(
            AuthenticationError(
                result.get("error_description", "Silent token acquisition failed"),
                code=error,
            )
        )

    def acquire_interactive(self, scopes: Sequence[str]) -> TokenResult:
        """
        Acquire a token through the configured user-facing flow.

        - Browser flow on desktops (loopback redirect)
        - Device code flow for WSL and headless environments
        """
        if self.settings.interactive_mode == "device_code":
            result = self._acquire_token_device_code(scopes)
        else:
            result = self._acquire_token_browser(scopes)

        if "access_token" not in result:
            return TokenResult.fault(
                AuthenticationError(
                    result.get("error_description", "Interactive authentication failed"),
                    code=result.get("error"),
                )
            )

        account = self._account_from_result(result)
        logger.info(f"Token acquired interactively for {account.username or '<unknown>'}")
        return TokenResult.success(self._to_credential(result, account, scopes))

    def _acquire_token_browser(self, scopes: Sequence[str]) -> dict[str, Any]:
        logger.info("Starting browser authentication flow")
        return self.app.acquire_token_interactive(
            scopes=list(scopes),
            port=self.settings.redirect_port,
            prompt=msal.Prompt.SELECT_ACCOUNT,
        )

    def _acquire_token_device_code(self, scopes: Sequence[str]) -> dict[str, Any]:
        logger.info("Starting device code authentication flow")
        flow = self.app.initiate_device_flow(scopes=list(scopes))

        if "user_code" not in flow:
            return {
                "error": flow.get("error", "device_flow_failed"),
                "error_description": (
                    "Failed to create device flow: "
                    f"{flow.get('error_description', 'Unknown error')}"
                ),
            }

        self.prompt_callback(flow["message"])
        return self.app.acquire_token_by_device_flow(flow)

    def _find_record(self, identifier: str) -> Optional[dict[str, Any]]:
        for record in self.app.get_accounts():
            if record.get("home_account_id") == identifier:
                return record
        return None

    def _account_from_result(self, result: dict[str, Any]) -> Account:
        """Match an interactive result to the account MSAL just cached."""
        claims = result.get("id_token_claims", {})
        username = claims.get("preferred_username")
        tenant_id = claims.get("tid")

        records = self.app.get_accounts(username=username) if username else []
        for record in records:
            if tenant_id is None or record.get("realm") == tenant_id:
                return Account.from_msal(record)

        # Cache not written (e.g. no refresh token issued)
        return Account(
            identifier=_home_account_id(result), username=username, tenant_id=tenant_id
        )

    @staticmethod
    def _to_credential(
        result: dict[str, Any], account: Account, scopes: Sequence[str]
    ) -> Credential:
        granted = result.get("scope")
        return Credential(
            access_token=result["access_token"],
            expires_on=expiry_from_result(result),
            account=account,
            scopes=tuple(granted.split() if granted else scopes),
        )
