# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS CONFIGURATION
# ============================================================================
# STATUS: Module Configuration - Observation Access Layer
# PURPOSE: Store object names, database roles and behaviour switches
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationsConfig, get_observations_config
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, os, util_logger
# SOURCE: Environment variables
# PATTERNS: Settings Pattern, Singleton via cached function
# ============================================================================

"""
Observations Configuration

Environment Variables (all optional):
    - OBSERVATIONS_SCHEMA: Schema holding species/observations (default: "public")
    - OBSERVATIONS_GEOJSON_FUNCTION: Read procedure name (default: "observations_geojson")
    - OBSERVATIONS_AUTHENTICATED_ROLE: Role for callers with an identity (default: "authenticated")
    - OBSERVATIONS_ANON_ROLE: Role for anonymous callers (default: "anon")
    - OBSERVATIONS_QUERY_TIMEOUT: Statement timeout in seconds (default: 30)
    - SPECIES_ATOMIC_UPSERT: Use INSERT ... ON CONFLICT for species creation (default: false)

Connection settings live in the application config (config.py).

Date: 19 OCT 2026
"""

import os
from typing import Optional
from pydantic import BaseModel, Field

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SCHEMA, "ObservationsConfig")


class ObservationsConfig(BaseModel):
    """Configuration for the Observation Access Layer."""

    schema_name: str = Field(
        default_factory=lambda: os.getenv("OBSERVATIONS_SCHEMA", "public"),
        description="PostgreSQL schema containing species and observations"
    )
    geojson_function: str = Field(
        default_factory=lambda: os.getenv("OBSERVATIONS_GEOJSON_FUNCTION", "observations_geojson"),
        description="Stored procedure returning the filtered FeatureCollection"
    )
    authenticated_role: str = Field(
        default_factory=lambda: os.getenv("OBSERVATIONS_AUTHENTICATED_ROLE", "authenticated"),
        description="Database role assumed for callers with a resolved identity"
    )
    anon_role: str = Field(
        default_factory=lambda: os.getenv("OBSERVATIONS_ANON_ROLE", "anon"),
        description="Database role assumed for anonymous callers"
    )
    query_timeout_seconds: int = Field(
        default_factory=lambda: int(os.getenv("OBSERVATIONS_QUERY_TIMEOUT", "30")),
        ge=1,
        le=300,
        description="Maximum statement execution time in seconds"
    )
    species_atomic_upsert: bool = Field(
        default_factory=lambda: os.getenv("SPECIES_ATOMIC_UPSERT", "false").lower() == "true",
        description="Create species with a conflict-aware insert (needs a unique index on lower(common_name))"
    )


_config_cache: Optional[ObservationsConfig] = None


def get_observations_config() -> ObservationsConfig:
    """
    Get singleton observations configuration instance.

    Returns:
        Cached configuration instance
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = ObservationsConfig()
        logger.info(
            f"Observations config loaded (schema: {_config_cache.schema_name})",
            extra={'custom_dimensions': {
                'geojson_function': _config_cache.geojson_function,
                'species_atomic_upsert': _config_cache.species_atomic_upsert
            }}
        )

    return _config_cache
