# ============================================================================
# CLAUDE CONTEXT - OBSERVER API CLIENT
# ============================================================================
# STATUS: Service Layer - HTTP client for the observations API
# PURPOSE: Map/form callers: list and create observations, list species
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObserverClient, ObserverClientError, SessionState, Session, AuthEvent
# DEPENDENCIES: httpx (sync)
# PORTABLE: Yes - no config imports
# ============================================================================
"""
Observer API Client (SYNC VERSION).

Client-side counterpart of the observations endpoints:

- SessionState holds the signed-in session and tells subscribers when it
  changes. It decides what the caller *shows* (a sign-in prompt or the
  report form); it is never an authorization decision. The server checks
  every token again.
- ObserverClient sends requests, attaching the bearer token and asking for
  the caller's private rows (include=mine) whenever a session is present.

Usage:
    state = SessionState()
    unsubscribe = state.subscribe(lambda event, session: print(event, session))

    client = ObserverClient("https://observer.example/api", session_state=state)
    state.set_session(Session(access_token=token, user_id=user_id))

    collection = client.list_observations(min_lon=-71, min_lat=-21, max_lon=-70, max_lat=-20)
    new_id = client.create_observation({"activity": "diving", "lat": -20.2, "lng": -70.1})

    unsubscribe()
    client.close()
"""

import os
import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


# ============================================================================
# SESSION STATE
# ============================================================================

class AuthEvent(str, Enum):
    """Session change events."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class Session:
    """A signed-in session as issued by the Identity Provider."""
    access_token: str
    user_id: Optional[str] = None
    email: Optional[str] = None


SessionListener = Callable[[AuthEvent, Optional[Session]], None]


class SessionState:
    """
    Single holder of the current session, with change subscriptions.

    subscribe() returns a callable that removes the listener again; calling
    it twice is harmless. Listeners run synchronously, outside the lock, in
    subscription order.
    """

    def __init__(self, session: Optional[Session] = None):
        self._session = session
        self._listeners: List[SessionListener] = []
        self._lock = Lock()

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_signed_in(self) -> bool:
        return self._session is not None

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_session(self, session: Session) -> None:
        """Store a new session and notify SIGNED_IN."""
        with self._lock:
            self._session = session
        self._notify(AuthEvent.SIGNED_IN, session)

    def clear(self) -> None:
        """Drop the session and notify SIGNED_OUT."""
        with self._lock:
            self._session = None
        self._notify(AuthEvent.SIGNED_OUT, None)

    def _notify(self, event: AuthEvent, session: Optional[Session]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event, session)


# ============================================================================
# HTTP CLIENT
# ============================================================================

class ObserverClientError(Exception):
    """Non-2xx response or transport failure."""

    def __init__(self, status_code: int, error_code: str):
        super().__init__(f"{status_code}: {error_code}")
        self.status_code = status_code
        self.error_code = error_code


class ObserverClient:
    """
    Observations API client (SYNC VERSION).

    Does not import from config - uses constructor params or the
    OBSERVER_API_BASE_URL environment variable.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session_state: Optional[SessionState] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize client.

        Args:
            base_url: API base URL including the /api prefix.
            session_state: Session holder (a fresh, signed-out one if omitted).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).

        Raises:
            ValueError: If no base_url provided and OBSERVER_API_BASE_URL not set.
        """
        self.base_url = (base_url or os.getenv("OBSERVER_API_BASE_URL", "")).rstrip('/')
        if not self.base_url:
            raise ValueError(
                "ObserverClient requires base_url parameter or OBSERVER_API_BASE_URL environment variable"
            )
        self.session_state = session_state or SessionState()
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport
            )
        return self._client

    def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()

    def _auth_headers(self) -> Dict[str, str]:
        token = self.session_state.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            response = self._get_client().request(method, url, headers=self._auth_headers(), **kwargs)
        except httpx.TimeoutException as e:
            raise ObserverClientError(504, "timeout") from e
        except httpx.RequestError as e:
            logger.warning(f"Observer API request error: {type(e).__name__}: {e}")
            raise ObserverClientError(502, "request_error") from e

        if response.is_success:
            return response.json()

        try:
            error_code = response.json().get("error") or f"http_{response.status_code}"
        except (ValueError, AttributeError):
            error_code = f"http_{response.status_code}"
        raise ObserverClientError(response.status_code, error_code)

    def list_observations(
        self,
        min_lon: Optional[float] = None,
        min_lat: Optional[float] = None,
        max_lon: Optional[float] = None,
        max_lat: Optional[float] = None,
        species_id: Optional[int] = None,
        from_ts: Optional[str] = None,
        to_ts: Optional[str] = None,
        min_depth: Optional[float] = None,
        max_depth: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Fetch the FeatureCollection for a viewport and filters.

        Unset filters are left out of the query string. When signed in, the
        request carries the token and include=mine.
        """
        params = {
            "min_lon": min_lon,
            "min_lat": min_lat,
            "max_lon": max_lon,
            "max_lat": max_lat,
            "species_id": species_id,
            "from": from_ts,
            "to": to_ts,
            "min_depth": min_depth,
            "max_depth": max_depth
        }
        params = {key: value for key, value in params.items() if value is not None}
        if self.session_state.is_signed_in:
            params["include"] = "mine"

        return self._request("GET", "observations", params=params)

    def create_observation(self, payload: Dict[str, Any]) -> Any:
        """
        Submit an observation.

        Returns:
            The new observation id
        """
        return self._request("POST", "observations", json=payload)["id"]

    def list_species(self) -> List[Dict[str, Any]]:
        return self._request("GET", "species")
