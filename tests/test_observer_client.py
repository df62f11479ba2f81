import json

import httpx
import pytest

from services.observer_client import (
    AuthEvent,
    ObserverClient,
    ObserverClientError,
    Session,
    SessionState,
)

BASE_URL = "https://observer.example.org/api"


class TestSessionState:

    def test_subscribers_see_sign_in_and_out(self):
        state = SessionState()
        events = []
        state.subscribe(lambda event, session: events.append((event, session)))

        session = Session(access_token="tok", user_id="u-1")
        state.set_session(session)
        state.clear()

        assert events == [(AuthEvent.SIGNED_IN, session), (AuthEvent.SIGNED_OUT, None)]
        assert state.is_signed_in is False

    def test_unsubscribe_stops_notifications(self):
        state = SessionState()
        events = []
        unsubscribe = state.subscribe(lambda event, session: events.append(event))

        state.set_session(Session(access_token="tok"))
        unsubscribe()
        unsubscribe()
        state.clear()

        assert events == [AuthEvent.SIGNED_IN]

    def test_listener_may_unsubscribe_itself(self):
        state = SessionState()
        events = []

        def once(event, session):
            events.append(event)
            unsubscribe()

        unsubscribe = state.subscribe(once)
        state.set_session(Session(access_token="tok"))
        state.clear()

        assert events == [AuthEvent.SIGNED_IN]


def make_client(handler, session_state=None):
    return ObserverClient(BASE_URL, session_state=session_state, transport=httpx.MockTransport(handler))


class TestObserverClient:

    def test_signed_out_list_has_no_token_or_include(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

        result = make_client(handler).list_observations(min_lon=-71.0, species_id=3)

        assert result == {"type": "FeatureCollection", "features": []}
        assert seen == {"params": {"min_lon": "-71.0", "species_id": "3"}, "auth": None}

    def test_signed_in_list_asks_for_own_rows(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

        state = SessionState(Session(access_token="tok"))
        make_client(handler, state).list_observations(from_ts="2024-01-01")

        assert seen == {"params": {"from": "2024-01-01", "include": "mine"}, "auth": "Bearer tok"}

    def test_create_returns_id(self):
        def handler(request):
            assert request.method == "POST"
            assert json.loads(request.content) == {"activity": "diving", "lat": 1.0, "lng": 2.0}
            return httpx.Response(201, json={"id": 17})

        state = SessionState(Session(access_token="tok"))

        assert make_client(handler, state).create_observation({"activity": "diving", "lat": 1.0, "lng": 2.0}) == 17

    def test_error_code_surfaces(self):
        client = make_client(lambda request: httpx.Response(401, json={"error": "missing_bearer_token"}))

        with pytest.raises(ObserverClientError) as exc:
            client.create_observation({"activity": "diving", "lat": 1.0, "lng": 2.0})

        assert exc.value.status_code == 401
        assert exc.value.error_code == "missing_bearer_token"

    def test_non_json_error(self):
        client = make_client(lambda request: httpx.Response(502, content=b"bad gateway"))

        with pytest.raises(ObserverClientError) as exc:
            client.list_species()

        assert exc.value.error_code == "http_502"

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ObserverClientError) as exc:
            make_client(handler).list_species()

        assert exc.value.status_code == 502

    def test_requires_base_url(self, monkeypatch):
        monkeypatch.delenv("OBSERVER_API_BASE_URL", raising=False)

        with pytest.raises(ValueError):
            ObserverClient()
