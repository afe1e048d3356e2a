"""Issued credential model."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_validator

from ..utils.date_utils import ensure_utc, utc_now
from .account import Account


class Credential(BaseModel):
    """Bearer credential issued by the identity provider."""

    access_token: str = Field(repr=False)
    expires_on: datetime
    account: Account
    scopes: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator("expires_on")
    @classmethod
    def expiry_in_utc(cls, value: datetime) -> datetime:
        # Naive values are taken as UTC
        return ensure_utc(value)

    def is_expired(self, skew: timedelta = timedelta(minutes=5)) -> bool:
        """
        Check whether the token expires within ``skew`` from now.

        Args:
            skew: Safety margin before the real expiry

        Returns:
            True if the token should no longer be sent
        """
        return utc_now() + skew >= self.expires_on
