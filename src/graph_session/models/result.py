"""Token acquisition outcome."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils.exceptions import AuthenticationError
from .credential import Credential


class AcquisitionStatus(str, Enum):
    """Outcome kinds of a token acquisition attempt."""

    SUCCESS = "success"
    NO_SESSION = "no_session"  # nothing cached, or the provider wants interaction
    FAULT = "fault"


@dataclass(frozen=True)
class TokenResult:
    """Result of a silent or interactive acquisition attempt."""

    status: AcquisitionStatus
    credential: Optional[Credential] = None
    error: Optional[AuthenticationError] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, credential: Credential) -> "TokenResult":
        return cls(AcquisitionStatus.SUCCESS, credential=credential)

    @classmethod
    def no_session(cls, reason: Optional[str] = None) -> "TokenResult":
        return cls(AcquisitionStatus.NO_SESSION, reason=reason)

    @classmethod
    def fault(cls, error: AuthenticationError) -> "TokenResult":
        return cls(AcquisitionStatus.FAULT, error=error)

    @property
    def ok(self) -> bool:
        return self.status is AcquisitionStatus.SUCCESS
