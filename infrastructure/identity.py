# ============================================================================
# CLAUDE CONTEXT - IDENTITY PROVIDER CLIENT
# ============================================================================
# STATUS: Core Infrastructure - Bearer token resolution
# PURPOSE: Exchange a bearer token for the live user it belongs to
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: IdentityProviderClient, UserIdentity, extract_bearer_token
# DEPENDENCIES: httpx (sync), config, util_logger
# PATTERNS: Adapter pattern, lazily created HTTP client
# ============================================================================
"""
Identity Provider Client (SYNC VERSION).

The hosted auth service owns sessions; this module only asks it who a token
belongs to:

    GET {IDENTITY_URL}/auth/v1/user
    Authorization: Bearer <token>
    apikey: <IDENTITY_API_KEY>

A 200 response with a user `id` is a live identity. Every other outcome
(401/403, other statuses, timeouts, network errors, malformed bodies) is
"no identity" and get_user() returns None. Callers decide what that means.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional

import httpx

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.ADAPTER, "IdentityProviderClient")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Return the token from an `Authorization: Bearer <token>` header value.

    The scheme prefix is matched exactly; anything else counts as no token.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


@dataclass
class UserIdentity:
    """Identity resolved from a bearer token."""
    id: str
    email: Optional[str] = None
    role: str = "authenticated"
    app_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_user_payload(cls, data: Dict[str, Any]) -> Optional["UserIdentity"]:
        user_id = data.get("id")
        if not user_id:
            return None
        return cls(
            id=str(user_id),
            email=data.get("email"),
            role=data.get("role") or "authenticated",
            app_metadata=data.get("app_metadata") or {}
        )

    def to_claims(self) -> Dict[str, Any]:
        """Claims published to the Store for row-level security."""
        claims: Dict[str, Any] = {"sub": self.id, "role": self.role}
        if self.email:
            claims["email"] = self.email
        if self.app_metadata:
            claims["app_metadata"] = self.app_metadata
        return claims


class IdentityProviderClient:
    """
    Identity Provider client.

    Usage:
        client = IdentityProviderClient()          # from config
        identity = client.get_user(token)
        if identity is None:
            ...  # not a live session
        client.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize client.

        Args:
            base_url: Identity Provider base URL. Defaults to IDENTITY_URL from config.
            api_key: Public API key. Defaults to IDENTITY_API_KEY from config.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        if base_url is None or api_key is None or timeout is None:
            from config import get_app_config
            config = get_app_config()
            base_url = base_url or config.identity_url
            api_key = api_key or config.identity_api_key
            timeout = timeout or config.identity_timeout_seconds

        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={"apikey": self.api_key}
            )
        return self._client

    def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()

    def get_user(self, token: str) -> Optional[UserIdentity]:
        """
        Resolve a bearer token to a user identity.

        Args:
            token: Raw bearer token (without the "Bearer " prefix)

        Returns:
            UserIdentity for a live session, None otherwise
        """
        if not token:
            return None

        url = f"{self.base_url}/auth/v1/user"

        try:
            response = self._get_client().get(
                url,
                headers={"Authorization": f"{BEARER_PREFIX}{token}"}
            )
        except httpx.TimeoutException:
            logger.warning(f"Identity Provider timeout after {self.timeout}s")
            return None
        except httpx.RequestError as e:
            logger.warning(f"Identity Provider request error: {type(e).__name__}: {e}")
            return None

        if response.status_code in (401, 403):
            logger.info(f"Token rejected by Identity Provider ({response.status_code})")
            return None

        if response.status_code != 200:
            logger.warning(f"Identity Provider returned {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Identity Provider returned a non-JSON body")
            return None

        if not isinstance(data, dict):
            return None

        return UserIdentity.from_user_payload(data)

    def ping(self) -> bool:
        """
        Check the Identity Provider health endpoint.

        Returns:
            True if GET /auth/v1/health answered 200
        """
        try:
            response = self._get_client().get(f"{self.base_url}/auth/v1/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Identity Provider health check failed: {e}")
            return False
