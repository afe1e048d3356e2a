"""Cached account model."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class Account(BaseModel):
    """An account known to the identity provider's token cache."""

    identifier: str  # home_account_id, stable across sessions
    username: Optional[str] = None
    environment: Optional[str] = None
    tenant_id: Optional[str] = None

    # Provider record handed back on silent acquisition and removal
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    model_config = {"frozen": True}

    @classmethod
    def from_msal(cls, record: dict[str, Any]) -> "Account":
        """Build an Account from an MSAL ``get_accounts()`` entry."""
        return cls(
            identifier=record["home_account_id"],
            username=record.get("username"),
            environment=record.get("environment"),
            tenant_id=record.get("realm"),
            raw=record,
        )
