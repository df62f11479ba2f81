# ============================================================================
# CLAUDE CONTEXT - OBSERVATION ACCESS LAYER MODULE
# ============================================================================
# STATUS: Module - Observation read/write API
# PURPOSE: GeoJSON reads and authenticated writes over observations
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationsService, ObservationsConfig, get_observation_triggers, get_observations_config
# PYDANTIC_MODELS: ObservationQueryParameters, ObservationCreate, FeatureCollection
# DEPENDENCIES: psycopg, pydantic, httpx, azure-functions
# ENTRY_POINTS: from observations import get_observation_triggers
# ============================================================================

"""
Observation Access Layer

A thin layer between HTTP callers and the hosted Store:

- Read: bbox + filter parameters are forwarded verbatim to the Store's
  `observations_geojson` procedure. The Store filters, including deciding
  which private rows the caller may see.
- Write: the caller's bearer token is exchanged for an identity, the species
  is resolved by id or name, and the observation is inserted. Every Store
  statement runs as the caller, so row-level security is the authorization
  boundary.

Architecture:
    observations/
    ├── config.py      # Environment-based configuration
    ├── exceptions.py  # Error taxonomy with fixed client codes
    ├── models.py      # Pydantic models (parameters, payload, responses)
    ├── repository.py  # Store access (psycopg) under caller identity
    ├── service.py     # Read/write sequences
    └── triggers.py    # Azure Functions HTTP handlers

Integration:
    from observations import get_observation_triggers

    for trigger in get_observation_triggers():
        app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(trigger['handler'])
"""

from .config import ObservationsConfig, get_observations_config
from .service import ObservationsService
from .triggers import get_observation_triggers

__version__ = "1.0.0"
__all__ = [
    "ObservationsConfig",
    "ObservationsService",
    "get_observation_triggers",
    "get_observations_config"
]
