"""Apply bearer credentials to outgoing requests."""

from typing import Any

from ..models.credential import Credential
from ..utils.exceptions import AuthenticationError

AUTHORIZATION_HEADER = "Authorization"
BEARER_SCHEME = "Bearer"


class RequestAuthenticator:
    """Sets the Authorization header of a request envelope.

    Any object with a mutable ``headers`` mapping works, e.g.
    ``requests.Request`` or ``requests.PreparedRequest``.
    """

    def apply(self, request: Any, credential: Credential) -> None:
        if not credential.access_token:
            raise AuthenticationError("Credential has no access token")
        request.headers[AUTHORIZATION_HEADER] = f"{BEARER_SCHEME} {credential.access_token}"
