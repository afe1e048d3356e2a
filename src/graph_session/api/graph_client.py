"""Microsoft Graph client authenticated per request."""

import asyncio
import logging
from typing import Any, Optional

import requests

from ..auth.engine import AuthenticationService
from ..utils.exceptions import GraphRequestError

logger = logging.getLogger(__name__)

GRAPH_BASE = "https://graph.microsoft.com/v1.0"


class GraphApiClient:
    """Calls Graph with a bearer token from the authentication service."""

    def __init__(
        self,
        auth_service: AuthenticationService,
        base_url: str = GRAPH_BASE,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.auth_service = auth_service
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        GET a Graph resource.

        Args:
            path: Path relative to the base URL, e.g. "me"
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            AuthenticationError: If no credential could be obtained (nothing is sent)
            GraphRequestError: If the request fails
        """
        return await self._send("GET", path, params=params)

    async def get_me(self) -> dict[str, Any]:
        """Get the signed-in user's profile."""
        return await self.get("me")

    async def _send(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        prepared = self.session.prepare_request(
            requests.Request(method, url, headers={"Accept": "application/json"}, **kwargs)
        )
        await self.auth_service.authenticate_request(prepared)

        try:
            resp = await asyncio.to_thread(self.session.send, prepared, timeout=self.timeout)
        except requests.RequestException as e:
            raise GraphRequestError(f"{method} {path} failed: {e}") from e

        if not resp.ok:
            raise GraphRequestError(
                f"{method} {path} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        logger.debug(f"{method} {path} -> {resp.status_code}")
        return resp.json() if resp.content else {}
