"""
Shared fixtures: in-memory stand-ins for the Store repository and the
Identity Provider, plus a builder for Azure Functions HTTP requests.
"""

import json
from typing import Any, Dict, List, Optional

import azure.functions as func
import pytest

from infrastructure.identity import UserIdentity
from observations.config import ObservationsConfig
from observations.service import ObservationsService

USER_TOKEN = "token-alice"
USER_ID = "7d3f0f4e-1f1a-4a55-9a61-5b0c0d2d7a01"


class FakeRepository:
    """Records every call; species and observations live in dicts."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.species: Dict[int, str] = {}
        self.observations: Dict[int, Dict[str, Any]] = {}
        self.geojson: Optional[Dict[str, Any]] = {"type": "FeatureCollection", "features": []}
        self.fail: set = set()
        self._next_species_id = 1
        self._next_observation_id = 1

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail:
            raise RuntimeError(f"{name} failed: relation detail that must not leak")

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def query_geojson(self, args, identity=None):
        self._record("query_geojson", args, identity)
        return self.geojson

    def list_species(self):
        self._record("list_species")
        return [
            {"id": species_id, "common_name": name}
            for species_id, name in sorted(self.species.items(), key=lambda item: item[1])
        ]

    def find_species_id(self, common_name, identity):
        self._record("find_species_id", common_name, identity)
        for species_id, name in sorted(self.species.items()):
            if name.lower() == common_name.lower():
                return species_id
        return None

    def insert_species(self, common_name, identity):
        self._record("insert_species", common_name, identity)
        species_id = self._next_species_id
        self._next_species_id += 1
        self.species[species_id] = common_name
        return species_id

    def upsert_species(self, common_name, identity):
        self._record("upsert_species", common_name, identity)
        for species_id, name in self.species.items():
            if name.lower() == common_name.lower():
                return species_id
        species_id = self._next_species_id
        self._next_species_id += 1
        self.species[species_id] = common_name
        return species_id

    def insert_observation(self, identity, **fields):
        self._record("insert_observation", identity, fields)
        observation_id = self._next_observation_id
        self._next_observation_id += 1
        self.observations[observation_id] = {"user_id": identity.id, **fields}
        return observation_id


class FakeIdentityClient:
    """Maps known tokens to identities; anything else resolves to None."""

    def __init__(self, users: Optional[Dict[str, UserIdentity]] = None):
        self.users = users or {}
        self.calls: List[str] = []

    def get_user(self, token):
        self.calls.append(token)
        return self.users.get(token)


@pytest.fixture
def user():
    return UserIdentity(id=USER_ID, email="alice@example.org")


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def identity_client(user):
    return FakeIdentityClient({USER_TOKEN: user})


@pytest.fixture
def observations_config():
    return ObservationsConfig(
        schema_name="public",
        geojson_function="observations_geojson",
        authenticated_role="authenticated",
        anon_role="anon",
        query_timeout_seconds=30,
        species_atomic_upsert=False
    )


@pytest.fixture
def service(observations_config, repository, identity_client):
    return ObservationsService(
        config=observations_config,
        repository=repository,
        identity_client=identity_client
    )


def make_request(
    method: str = "GET",
    params: Optional[Dict[str, str]] = None,
    body: Any = None,
    token: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    route: str = "observations"
) -> func.HttpRequest:
    """Build an Azure Functions request. Non-bytes bodies are JSON-encoded."""
    all_headers = dict(headers or {})
    if token is not None:
        all_headers["Authorization"] = f"Bearer {token}"

    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    else:
        raw = json.dumps(body).encode("utf-8")
        all_headers.setdefault("Content-Type", "application/json")

    return func.HttpRequest(
        method=method,
        url=f"http://localhost/api/{route}",
        headers=all_headers,
        params=params or {},
        body=raw
    )
