from datetime import datetime, timezone

import pytest

from observations.exceptions import (
    AuthMissingError,
    AuthInvalidError,
    ValidationFailureError,
    UpstreamFailureError,
)
from observations.models import ObservationQueryParameters
from observations.service import ObservationsService
from util_logger import LogContext

from conftest import USER_TOKEN, USER_ID

VALID_BODY = {"activity": "diving", "lat": -20.2, "lng": -70.1}


class TestQueryObservations:

    def test_anonymous_read_without_include(self, service, repository, identity_client):
        params = ObservationQueryParameters.from_query({})

        result = service.query_observations(params, token=USER_TOKEN)

        assert result == {"type": "FeatureCollection", "features": []}
        args, identity = repository.calls[0][1], repository.calls[0][2]
        assert args["include_private_for_user"] is None
        assert identity is None
        # Token is not looked at without include=mine
        assert identity_client.calls == []

    def test_include_mine_forwards_caller_id(self, service, repository, user):
        params = ObservationQueryParameters.from_query({"include": "mine", "species_id": "9"})

        service.query_observations(params, token=USER_TOKEN)

        _, args, identity = repository.calls[0]
        assert args["include_private_for_user"] == USER_ID
        assert args["species_id_in"] == 9
        assert identity == user

    def test_include_mine_with_dead_token_is_still_public(self, service, repository):
        params = ObservationQueryParameters.from_query({"include": "mine"})

        result = service.query_observations(params, token="expired")

        assert result["type"] == "FeatureCollection"
        assert repository.calls[0][1]["include_private_for_user"] is None

    def test_include_mine_without_token(self, service, repository, identity_client):
        params = ObservationQueryParameters.from_query({"include": "mine"})

        service.query_observations(params, token=None)

        assert identity_client.calls == []
        assert repository.calls[0][1]["include_private_for_user"] is None

    def test_null_result_becomes_empty_collection(self, service, repository):
        repository.geojson = None

        result = service.query_observations(ObservationQueryParameters())

        assert result == {"type": "FeatureCollection", "features": []}

    def test_null_features_become_empty_list(self, service, repository):
        repository.geojson = {"type": "FeatureCollection", "features": None}

        result = service.query_observations(ObservationQueryParameters())

        assert result["features"] == []

    def test_store_result_passed_through(self, service, repository):
        feature = {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [-70.1, -20.2]},
            "properties": {"id": 1, "activity": "diving"},
        }
        repository.geojson = {"type": "FeatureCollection", "features": [feature]}

        result = service.query_observations(ObservationQueryParameters())

        assert result["features"] == [feature]

    def test_store_failure_is_failed_fetch(self, service, repository):
        repository.fail.add("query_geojson")

        with pytest.raises(UpstreamFailureError) as exc:
            service.query_observations(ObservationQueryParameters())

        assert exc.value.error_code == "failed_fetch"
        assert exc.value.to_body() == {"error": "failed_fetch"}

    def test_parse_query_maps_validation_errors(self, service):
        with pytest.raises(ValidationFailureError) as exc:
            service.parse_query({"min_lat": "north"})

        assert exc.value.error_code == "invalid_query"
        assert exc.value.status_code == 400


class TestCreateObservation:

    def test_missing_token_checked_before_payload(self, service, repository):
        with pytest.raises(AuthMissingError):
            service.create_observation(None, {"garbage": True})

        assert repository.calls == []

    def test_invalid_payload_before_identity(self, service, identity_client, repository):
        with pytest.raises(ValidationFailureError) as exc:
            service.create_observation(USER_TOKEN, {"activity": "diving", "lat": "1", "lng": 2})

        assert exc.value.error_code == "invalid_payload"
        assert identity_client.calls == []
        assert repository.calls == []

    def test_non_object_body_is_invalid_payload(self, service):
        with pytest.raises(ValidationFailureError):
            service.create_observation(USER_TOKEN, ["diving", 1, 2])

    def test_unresolved_token_is_unauthenticated(self, service, repository):
        with pytest.raises(AuthInvalidError) as exc:
            service.create_observation("forged", VALID_BODY)

        assert exc.value.status_code == 401
        assert exc.value.error_code == "unauthenticated"
        assert repository.calls == []

    def test_creates_owned_observation(self, service, repository):
        created = service.create_observation(USER_TOKEN, {**VALID_BODY, "depth_max_m": 12.5})

        assert created.id == 1
        stored = repository.observations[1]
        assert stored["user_id"] == USER_ID
        assert stored["geom_ewkt"] == "SRID=4326;POINT(-70.1 -20.2)"
        assert stored["depth_max_m"] == 12.5
        assert stored["species_id"] is None
        assert stored["is_private"] is False

    def test_resolved_user_put_on_log_context(self, service):
        ctx = LogContext(request_id="req-7", operation="observations.create")

        service.create_observation(USER_TOKEN, VALID_BODY, log_context=ctx)

        assert ctx.user_id == USER_ID
        assert ctx.to_dict()["request_id"] == "req-7"

    def test_unresolved_token_leaves_context_anonymous(self, service):
        ctx = LogContext(request_id="req-8")

        with pytest.raises(AuthInvalidError):
            service.create_observation("forged", VALID_BODY, log_context=ctx)

        assert ctx.user_id is None

    def test_defaults_observed_at_to_now(self, service, repository):
        before = datetime.now(timezone.utc)
        service.create_observation(USER_TOKEN, VALID_BODY)

        observed_at = repository.observations[1]["observed_at"]
        assert observed_at.tzinfo is not None
        assert observed_at >= before

    def test_keeps_supplied_observed_at(self, service, repository):
        service.create_observation(USER_TOKEN, {**VALID_BODY, "observed_at": "2024-03-01T10:00:00Z"})

        assert repository.observations[1]["observed_at"] == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_species_id_used_without_lookup(self, service, repository):
        service.create_observation(USER_TOKEN, {**VALID_BODY, "species_id": 42, "species_common": "Orca"})

        assert repository.observations[1]["species_id"] == 42
        assert "find_species_id" not in repository.call_names()
        assert "insert_species" not in repository.call_names()

    def test_new_species_name_inserted_once(self, service, repository):
        service.create_observation(USER_TOKEN, {**VALID_BODY, "species_common": "Humboldt squid"})

        assert repository.call_names().count("insert_species") == 1
        assert repository.species == {1: "Humboldt squid"}
        assert repository.observations[1]["species_id"] == 1

    def test_existing_species_matched_case_insensitively(self, service, repository):
        repository.species[7] = "Orca"

        service.create_observation(USER_TOKEN, {**VALID_BODY, "species_common": "ORCA"})

        assert "insert_species" not in repository.call_names()
        assert repository.observations[1]["species_id"] == 7

    def test_species_failure_stops_before_insert(self, service, repository):
        repository.fail.add("insert_species")

        with pytest.raises(UpstreamFailureError) as exc:
            service.create_observation(USER_TOKEN, {**VALID_BODY, "species_common": "Sunfish"})

        assert exc.value.error_code == "insert_failed"
        assert "insert_observation" not in repository.call_names()

    def test_insert_failure_is_insert_failed(self, service, repository):
        repository.fail.add("insert_observation")

        with pytest.raises(UpstreamFailureError) as exc:
            service.create_observation(USER_TOKEN, VALID_BODY)

        assert exc.value.error_code == "insert_failed"

    def test_atomic_upsert_mode(self, observations_config, repository, identity_client):
        config = observations_config.model_copy(update={"species_atomic_upsert": True})
        service = ObservationsService(config, repository, identity_client)
        repository.species[3] = "Blue whale"

        service.create_observation(USER_TOKEN, {**VALID_BODY, "species_common": "blue WHALE"})

        assert repository.call_names()[:2] == ["upsert_species", "insert_observation"]
        assert repository.observations[1]["species_id"] == 3


def test_list_species_ordered(service, repository):
    repository.species.update({1: "Sea lion", 2: "Albatross"})

    assert service.list_species() == [
        {"id": 2, "common_name": "Albatross"},
        {"id": 1, "common_name": "Sea lion"},
    ]


def test_list_species_failure(service, repository):
    repository.fail.add("list_species")

    with pytest.raises(UpstreamFailureError):
        service.list_species()
