# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS SERVICE
# ============================================================================
# STATUS: Module Service - Observation Access Layer business logic
# PURPOSE: Read (procedure delegation) and write (authenticate, species, insert) sequences
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationsService
# DEPENDENCIES: pydantic, infrastructure, util_logger
# SOURCE: Repository layer (ObservationsRepository), IdentityProviderClient
# PATTERNS: Service Layer, Facade Pattern
# ENTRY_POINTS: service = ObservationsService(); service.create_observation(token, body)
# ============================================================================

"""
Observations Service - Business Logic Layer

Orchestrates the two operations of the API between the HTTP triggers, the
Identity Provider and the Store:

Read:
    resolve identity only for include=mine -> call the GeoJSON procedure ->
    never return null

Write:
    require token -> validate payload -> resolve identity -> resolve species
    -> insert observation

Every step in the write sequence is gated on the previous one. Nothing is
retried. Failures surface as ObservationError subclasses carrying a fixed
client-facing code; the underlying error is logged here and kept out of the
response.

The service holds no per-request state and is safe to share across requests.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Mapping

from pydantic import ValidationError

from infrastructure.identity import IdentityProviderClient, UserIdentity
from util_logger import LoggerFactory, ComponentType, LogContext
from .config import ObservationsConfig, get_observations_config
from .exceptions import (
    AuthMissingError,
    AuthInvalidError,
    ValidationFailureError,
    UpstreamFailureError
)
from .models import (
    ObservationQueryParameters,
    ObservationCreate,
    FeatureCollection,
    ObservationCreated,
    SpeciesRecord
)
from .repository import ObservationsRepository

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ObservationsService")


class ObservationsService:
    """
    Business logic service for the Observation Access Layer.

    Responsibilities:
    - Parse and default read parameters, resolve include=mine identity
    - Validate write payloads and reject callers without a usable identity
    - Resolve species by id or by name before inserting the observation
    - Map every failure to a fixed client-facing error
    """

    def __init__(
        self,
        config: Optional[ObservationsConfig] = None,
        repository: Optional[ObservationsRepository] = None,
        identity_client: Optional[IdentityProviderClient] = None
    ):
        """
        Initialize service with configuration.

        Args:
            config: Observations configuration (uses singleton if not provided)
            repository: Store repository (created from config if not provided)
            identity_client: Identity Provider client (created from app config if not provided)
        """
        self.config = config or get_observations_config()
        self.repository = repository or ObservationsRepository(self.config)
        self.identity_client = identity_client or IdentityProviderClient()

    # ========================================================================
    # READ
    # ========================================================================

    def parse_query(self, params: Mapping[str, str]) -> ObservationQueryParameters:
        """
        Parse query-string values into read parameters.

        Raises:
            ValidationFailureError: invalid_query for unparseable numbers
        """
        try:
            return ObservationQueryParameters.from_query(params)
        except ValidationError as e:
            logger.info(f"Rejected query parameters: {e.error_count()} error(s)")
            raise ValidationFailureError(str(e), error_code="invalid_query") from e

    def query_observations(
        self,
        params: ObservationQueryParameters,
        token: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch observations as a GeoJSON FeatureCollection.

        The token is only looked at when params.include_mine is set. If it
        resolves, the caller's id is passed as include_private_for_user and
        the procedure runs under the caller's identity; otherwise both are
        null/anonymous and the request still succeeds.

        Args:
            params: Parsed read parameters
            token: Raw bearer token, if the request carried one

        Returns:
            FeatureCollection dict, never None

        Raises:
            UpstreamFailureError: failed_fetch when the Store call fails
        """
        identity: Optional[UserIdentity] = None
        if params.include_mine and token:
            identity = self.identity_client.get_user(token)
            if identity is None:
                logger.info("include=mine requested but token did not resolve; serving public rows only")

        args = params.to_procedure_args(identity.id if identity else None)

        try:
            data = self.repository.query_geojson(args, identity)
        except Exception as e:
            logger.error(f"GeoJSON procedure failed: {type(e).__name__}: {e}")
            raise UpstreamFailureError(str(e), error_code="failed_fetch") from e

        if data is None:
            return FeatureCollection.empty().model_dump()

        # json_agg over zero rows yields null features
        if isinstance(data, dict) and data.get("features") is None:
            data = {**data, "features": []}

        return data

    def list_species(self) -> List[Dict[str, Any]]:
        """
        List species for filter pickers.

        Raises:
            UpstreamFailureError: failed_fetch when the Store call fails
        """
        try:
            rows = self.repository.list_species()
        except Exception as e:
            logger.error(f"Species listing failed: {type(e).__name__}: {e}")
            raise UpstreamFailureError(str(e), error_code="failed_fetch") from e

        return [SpeciesRecord.model_validate(row).model_dump() for row in rows]

    # ========================================================================
    # WRITE
    # ========================================================================

    def parse_payload(self, body: Any) -> ObservationCreate:
        """
        Validate a decoded JSON body.

        Raises:
            ValidationFailureError: invalid_payload
        """
        if not isinstance(body, dict):
            raise ValidationFailureError("body is not a JSON object")
        try:
            return ObservationCreate.model_validate(body)
        except ValidationError as e:
            logger.info(
                "Rejected observation payload",
                extra={'custom_dimensions': {
                    'invalid_fields': [".".join(str(p) for p in err["loc"]) for err in e.errors()]
                }}
            )
            raise ValidationFailureError(str(e)) from e

    def authenticate(self, token: Optional[str]) -> UserIdentity:
        """
        Exchange a bearer token for an identity.

        Raises:
            AuthMissingError: no token
            AuthInvalidError: token does not resolve to a live session
        """
        if not token:
            raise AuthMissingError("no bearer token")

        identity = self.identity_client.get_user(token)
        if identity is None:
            raise AuthInvalidError("token did not resolve to a user")
        return identity

    def resolve_species_id(self, payload: ObservationCreate, identity: UserIdentity) -> Optional[int]:
        """
        Species id for a new observation.

        - species_id supplied: used as-is, no existence check
        - else species_common supplied: case-insensitive exact match, or a
          newly created species
        - else None

        Raises:
            UpstreamFailureError: insert_failed when a Store step fails
        """
        if payload.species_id:
            return payload.species_id

        name = payload.species_common
        if not name:
            return None

        try:
            if self.config.species_atomic_upsert:
                return self.repository.upsert_species(name, identity)

            # Check-then-insert: concurrent writers may both create the name
            found = self.repository.find_species_id(name, identity)
            if found is not None:
                logger.debug(f"Species matched existing id {found}")
                return found
            return self.repository.insert_species(name, identity)

        except Exception as e:
            logger.error(f"Species resolution failed: {type(e).__name__}: {e}")
            raise UpstreamFailureError(str(e), error_code="insert_failed") from e

    def create_observation(
        self,
        token: Optional[str],
        body: Any,
        log_context: Optional[LogContext] = None
    ) -> ObservationCreated:
        """
        Create an observation owned by the caller.

        Order: token presence, payload, identity, species, insert.

        Args:
            token: Raw bearer token from the Authorization header
            body: Decoded JSON body
            log_context: Request log context; gets user_id once the caller is known

        Returns:
            ObservationCreated with the new id

        Raises:
            AuthMissingError, ValidationFailureError, AuthInvalidError,
            UpstreamFailureError
        """
        if not token:
            raise AuthMissingError("no bearer token")

        payload = self.parse_payload(body)
        identity = self.authenticate(token)
        if log_context is None:
            log_context = LogContext()
        log_context.user_id = identity.id

        species_id = self.resolve_species_id(payload, identity)
        observed_at = payload.observed_at or datetime.now(timezone.utc)

        try:
            observation_id = self.repository.insert_observation(
                identity=identity,
                species_id=species_id,
                activity=payload.activity,
                depth_min_m=payload.depth_min_m,
                depth_max_m=payload.depth_max_m,
                temperature_c=payload.temperature_c,
                notes=payload.notes,
                observed_at=observed_at,
                is_private=payload.is_private,
                geom_ewkt=payload.geometry_ewkt
            )
        except Exception as e:
            logger.error(f"Observation insert failed: {type(e).__name__}: {e}")
            raise UpstreamFailureError(str(e), error_code="insert_failed") from e

        logger.info(
            f"Created observation {observation_id}",
            extra={'custom_dimensions': {**log_context.to_dict(), 'species_id': species_id}}
        )
        # uuid primary keys come back as uuid.UUID
        if not isinstance(observation_id, int):
            observation_id = str(observation_id)
        return ObservationCreated(id=observation_id)
