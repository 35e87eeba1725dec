"""
StudyShare Backend - Caller Identity Resolver
==============================================

What:  Maps an optional `Authorization: Bearer <jwt>` header to a user id.
How:   Asks the platform auth API (GET {SUPABASE_URL}/auth/v1/user) who the
       token belongs to, authenticating with the service key as `apikey`.
Who:   RecommendationService, to find the caller's school affinity.

A missing header, a rejected token or an unreachable auth API all resolve to
None. The recommendation flow then takes the no-affinity path; identity is
never a reason to fail the request.
"""

import logging
from typing import Optional

import httpx

from studyshare.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Strip the `Bearer ` prefix; None for an empty or missing header."""
    if not authorization:
        return None
    value = authorization.strip()
    scheme, _, credentials = value.partition(" ")
    token = credentials.strip() if scheme.lower() == "bearer" else value
    return token or None


class AuthService:
    """Thin client over the platform auth API."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or default_settings
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.auth_timeout)
        return self._client

    async def resolve_user_id(self, authorization: Optional[str]) -> Optional[str]:
        """
        Return the id of the user the bearer token belongs to, or None.

        Never raises for auth problems; they are logged and treated as an
        anonymous caller.
        """
        token = extract_bearer_token(authorization)
        if token is None:
            return None

        try:
            response = await self._get_client().get(
                f"{self.config.supabase_url}/auth/v1/user",
                headers={
                    "apikey": self.config.supabase_service_role_key,
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.HTTPError as e:
            logger.warning("Auth lookup failed, continuing anonymously: %s", str(e))
            return None

        if response.status_code != 200:
            logger.debug("Auth API rejected the token (%d)", response.status_code)
            return None

        try:
            user = response.json()
        except ValueError:
            logger.warning("Auth API returned a non-JSON body")
            return None

        user_id = user.get("id") if isinstance(user, dict) else None
        return user_id if isinstance(user_id, str) and user_id else None

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


auth_service = AuthService()
