# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS MODELS
# ============================================================================
# STATUS: Module Models - Observation Access Layer Pydantic models
# PURPOSE: Query parameters, write payload and response shapes
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationQueryParameters, ObservationCreate, FeatureCollection, ObservationCreated, SpeciesRecord
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, typing, datetime
# VALIDATION: Pydantic v2 validation
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Observation Access Layer Pydantic Models

Query parameters are coerced from query-string text; the write payload is
validated from the decoded JSON body, where `lat`/`lng` must already be JSON
numbers.

References:
- GeoJSON RFC 7946: https://tools.ietf.org/html/rfc7946
- PostGIS EWKT: https://postgis.net/docs/using_postgis_dbmanagement.html#EWKB_EWKT

Date: 19 OCT 2026
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# World extent, used per field when a bound is absent
WORLD_MIN_LON = -180.0
WORLD_MIN_LAT = -90.0
WORLD_MAX_LON = 180.0
WORLD_MAX_LAT = 90.0

POINT_SRID = 4326


class ObservationQueryParameters(BaseModel):
    """
    Filter parameters for GET /api/observations.

    None of these are interpreted here: bbox intersection, species, time and
    depth filtering all happen inside the Store's procedure.
    """
    model_config = ConfigDict(allow_inf_nan=False)

    min_lon: float = Field(default=WORLD_MIN_LON, description="West bound")
    min_lat: float = Field(default=WORLD_MIN_LAT, description="South bound")
    max_lon: float = Field(default=WORLD_MAX_LON, description="East bound")
    max_lat: float = Field(default=WORLD_MAX_LAT, description="North bound")

    species_id: Optional[int] = Field(default=None, description="Species filter")

    # Free-form, forwarded unvalidated
    from_ts: Optional[str] = Field(default=None, description="Lower observed_at bound")
    to_ts: Optional[str] = Field(default=None, description="Upper observed_at bound")

    min_depth: Optional[float] = Field(default=None, description="Lower depth bound (m)")
    max_depth: Optional[float] = Field(default=None, description="Upper depth bound (m)")

    include_mine: bool = Field(
        default=False,
        description="include=mine: ask the Store to add the caller's private rows"
    )

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ObservationQueryParameters":
        """
        Build from raw query-string values.

        Absent and empty values fall back to the field default.

        Raises:
            pydantic.ValidationError: if a numeric value does not parse
        """
        renamed = {"from": "from_ts", "to": "to_ts"}
        known = {
            "min_lon", "min_lat", "max_lon", "max_lat",
            "species_id", "from_ts", "to_ts", "min_depth", "max_depth"
        }

        raw: Dict[str, Any] = {}
        for key, value in params.items():
            field_name = renamed.get(key, key)
            if field_name in known and value is not None and value.strip() != "":
                raw[field_name] = value.strip()

        raw["include_mine"] = params.get("include") == "mine"
        return cls.model_validate(raw)

    def to_procedure_args(self, include_private_for_user: Optional[str]) -> Dict[str, Any]:
        """Named arguments for the Store's GeoJSON procedure, verbatim."""
        return {
            "min_lon": self.min_lon,
            "min_lat": self.min_lat,
            "max_lon": self.max_lon,
            "max_lat": self.max_lat,
            "species_id_in": self.species_id,
            "from_ts": self.from_ts,
            "to_ts": self.to_ts,
            "min_depth": self.min_depth,
            "max_depth": self.max_depth,
            "include_private_for_user": include_private_for_user
        }


class ObservationCreate(BaseModel):
    """
    Body of POST /api/observations.

    Required: activity (non-empty string), lat and lng (JSON numbers).
    Everything else is optional; unknown keys are ignored.
    """
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    activity: str
    lat: float
    lng: float

    species_common: Optional[str] = None
    species_id: Optional[int] = None

    depth_min_m: Optional[float] = None
    depth_max_m: Optional[float] = None
    temperature_c: Optional[float] = None
    notes: Optional[str] = None
    observed_at: Optional[datetime] = None
    is_private: bool = False

    @field_validator("activity", mode="before")
    @classmethod
    def require_activity(cls, v: Any) -> Any:
        if not isinstance(v, str) or not v:
            raise ValueError("activity is required")
        return v

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def require_number(cls, v: Any) -> Any:
        # Numeric strings are rejected; bool is an int subclass and rejected too
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("must be a number")
        return v

    @field_validator("is_private", mode="before")
    @classmethod
    def default_private(cls, v: Any) -> Any:
        return False if v is None else v

    @property
    def geometry_ewkt(self) -> str:
        """Point as EWKT. Longitude first."""
        return f"SRID={POINT_SRID};POINT({self.lng} {self.lat})"


class FeatureCollection(BaseModel):
    """GeoJSON FeatureCollection as returned by the Store's procedure."""
    model_config = ConfigDict(extra="allow")

    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "FeatureCollection":
        return cls(features=[])


class ObservationCreated(BaseModel):
    """201 body for a created observation."""
    id: Union[int, str]


class SpeciesRecord(BaseModel):
    """One row of the species list."""
    id: int
    common_name: Optional[str] = None
