"""Resolve the remembered user to a cached account."""

import logging
from typing import Optional

from ..models.account import Account
from .base import IdentityClient

logger = logging.getLogger(__name__)


class AccountResolver:
    """Maps the remembered user identifier to an account in the token cache."""

    def __init__(self, client: IdentityClient):
        self.client = client

    def resolve(self, remembered: str) -> Optional[Account]:
        """
        Find the account to acquire tokens for.

        With no remembered identifier, the first cached account is used;
        there should only be one. Failures reading the cache count as "no
        cached identity" so that interactive sign-in can still proceed.

        Args:
            remembered: Remembered identifier, empty if none

        Returns:
            The matching account, or None
        """
        try:
            if not remembered:
                accounts = self.client.list_accounts()
                return accounts[0] if accounts else None
            return self.client.get_account(remembered)
        except Exception as e:
            logger.debug(f"Account resolution failed, treating as no session: {e}")
            return None
