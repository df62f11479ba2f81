# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS REPOSITORY
# ============================================================================
# STATUS: Module Repository - Store access for observations and species
# PURPOSE: Procedure call, species lookup/insert and observation insert under caller identity
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: ObservationsRepository
# DEPENDENCIES: psycopg, psycopg.sql, infrastructure.postgresql, util_logger
# SOURCE: PostgreSQL/PostGIS Store (configurable schema)
# VALIDATION: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, SQL Composition
# ============================================================================

"""
Observations Repository - Store Access

Every statement runs inside an identity-bound session (see
PostgreSQLRepository._get_session): the anonymous role for callers without an
identity, the authenticated role with the caller's claims otherwise. The
Store's row-level security decides what each caller may read or write.

Each public method is its own transaction. Species creation and the
observation insert are therefore separate commits, matching the non-atomic
write sequence of the API.

Safety:
- All queries use psycopg.sql.SQL() composition (NO string concatenation)
- Dynamic identifiers via sql.Identifier()
- Values via parameterized queries (%s placeholders)

Date: 19 OCT 2026
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg import sql

from infrastructure.postgresql import PostgreSQLRepository
from infrastructure.identity import UserIdentity
from util_logger import LoggerFactory, ComponentType, log_exceptions
from .config import ObservationsConfig, get_observations_config

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "ObservationsRepository")


class ObservationsRepository(PostgreSQLRepository):
    """
    Store repository for observations and species.

    Thread Safety:
    - Each method creates its own connection
    - Safe for concurrent requests in Azure Functions
    """

    def __init__(self, config: Optional[ObservationsConfig] = None,
                 connection_string: Optional[str] = None):
        """
        Initialize repository with configuration.

        Args:
            config: Observations configuration (uses singleton if not provided)
            connection_string: Explicit connection string (defaults to app config)
        """
        self.config = config or get_observations_config()
        super().__init__(
            connection_string=connection_string,
            schema_name=self.config.schema_name,
            statement_timeout_seconds=self.config.query_timeout_seconds
        )

    def _session_for(self, identity: Optional[UserIdentity]):
        """Session bound to the caller, or to the anonymous role."""
        if identity is None:
            return self._get_session(self.config.anon_role, {"role": self.config.anon_role})
        return self._get_session(self.config.authenticated_role, identity.to_claims())

    # ========================================================================
    # READ PATH
    # ========================================================================

    @log_exceptions(logger=logger)
    def query_geojson(
        self,
        args: Dict[str, Any],
        identity: Optional[UserIdentity] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Call the GeoJSON procedure with named arguments.

        Args:
            args: The ten procedure arguments, forwarded verbatim
            identity: Caller identity for the session, None for anonymous

        Returns:
            The procedure result (a FeatureCollection dict) or None
        """
        query = sql.SQL("""
            SELECT {function}(
                min_lon => %(min_lon)s::double precision,
                min_lat => %(min_lat)s::double precision,
                max_lon => %(max_lon)s::double precision,
                max_lat => %(max_lat)s::double precision,
                species_id_in => %(species_id_in)s::integer,
                from_ts => %(from_ts)s::timestamptz,
                to_ts => %(to_ts)s::timestamptz,
                min_depth => %(min_depth)s::double precision,
                max_depth => %(max_depth)s::double precision,
                include_private_for_user => %(include_private_for_user)s::uuid
            ) AS geojson
        """).format(function=self._qualified(self.config.geojson_function))

        with self._session_for(identity) as conn:
            with conn.cursor() as cur:
                cur.execute(query, args)
                row = cur.fetchone()

        return row['geojson'] if row else None

    @log_exceptions(logger=logger)
    def list_species(self) -> List[Dict[str, Any]]:
        """
        List species ordered by common name.

        Returns:
            List of dicts with keys: id, common_name
        """
        query = sql.SQL("""
            SELECT id, common_name
            FROM {table}
            ORDER BY common_name ASC
        """).format(table=self._qualified("species"))

        with self._session_for(None) as conn:
            with conn.cursor() as cur:
                cur.execute(query)
                return cur.fetchall()

    # ========================================================================
    # WRITE PATH
    # ========================================================================

    @log_exceptions(logger=logger)
    def find_species_id(self, common_name: str, identity: UserIdentity) -> Optional[int]:
        """
        Case-insensitive exact match on common_name.

        Returns:
            Id of the first matching species, None if there is no match
        """
        query = sql.SQL("""
            SELECT id
            FROM {table}
            WHERE lower(common_name) = lower(%s)
            ORDER BY id
            LIMIT 1
        """).format(table=self._qualified("species"))

        with self._session_for(identity) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (common_name,))
                row = cur.fetchone()

        return row['id'] if row else None

    @log_exceptions(logger=logger)
    def insert_species(self, common_name: str, identity: UserIdentity) -> int:
        """
        Insert a species row.

        Returns:
            The new species id

        Raises:
            RuntimeError: if the Store returned no id
        """
        query = sql.SQL("""
            INSERT INTO {table} (common_name)
            VALUES (%s)
            RETURNING id
        """).format(table=self._qualified("species"))

        with self._session_for(identity) as conn:
            with conn.cursor() as cur:
                cur.execute(query, (common_name,))
                row = cur.fetchone()

        if not row:
            raise RuntimeError("species insert returned no id")

        logger.info(f"Created species {row['id']}")
        return row['id']

    @log_exceptions(logger=logger)
    def upsert_species(self, common_name: str, identity: UserIdentity) -> int:
        """
        Insert a species unless one with the same lower(common_name) exists.

        Needs a unique index on lower(common_name) in the Store. Concurrent
        writers with the same name all get the same id.

        Returns:
            Id of the new or existing species
        """
        insert = sql.SQL("""
            INSERT INTO {table} (common_name)
            VALUES (%s)
            ON CONFLICT ((lower(common_name))) DO NOTHING
            RETURNING id
        """).format(table=self._qualified("species"))
        select = sql.SQL("""
            SELECT id
            FROM {table}
            WHERE lower(common_name) = lower(%s)
            LIMIT 1
        """).format(table=self._qualified("species"))

        with self._session_for(identity) as conn:
            with conn.cursor() as cur:
                cur.execute(insert, (common_name,))
                row = cur.fetchone()
                if not row:
                    cur.execute(select, (common_name,))
                    row = cur.fetchone()

        if not row:
            raise RuntimeError("species upsert returned no id")

        return row['id']

    @log_exceptions(logger=logger)
    def insert_observation(
        self,
        identity: UserIdentity,
        species_id: Optional[int],
        activity: str,
        depth_min_m: Optional[float],
        depth_max_m: Optional[float],
        temperature_c: Optional[float],
        notes: Optional[str],
        observed_at: datetime,
        is_private: bool,
        geom_ewkt: str
    ) -> Any:
        """
        Insert one observation owned by the caller.

        Returns:
            The store-assigned observation id

        Raises:
            RuntimeError: if the Store returned no id
        """
        query = sql.SQL("""
            INSERT INTO {table} (
                user_id, species_id, activity,
                depth_min_m, depth_max_m, temperature_c, notes,
                observed_at, is_private, geom
            )
            VALUES (
                %(user_id)s, %(species_id)s, %(activity)s,
                %(depth_min_m)s, %(depth_max_m)s, %(temperature_c)s, %(notes)s,
                %(observed_at)s, %(is_private)s, ST_GeomFromEWKT(%(geom)s)
            )
            RETURNING id
        """).format(table=self._qualified("observations"))

        params = {
            "user_id": identity.id,
            "species_id": species_id,
            "activity": activity,
            "depth_min_m": depth_min_m,
            "depth_max_m": depth_max_m,
            "temperature_c": temperature_c,
            "notes": notes,
            "observed_at": observed_at,
            "is_private": is_private,
            "geom": geom_ewkt
        }

        with self._session_for(identity) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()

        if not row:
            raise RuntimeError("observation insert returned no id")

        return row['id']
