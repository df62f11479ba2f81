# ============================================================================
# CLAUDE CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostgreSQL connection management
# PURPOSE: Store access with per-transaction caller identity for row-level security
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config, util_logger
# SCOPE: Connection lifecycle, identity binding, catalog checks
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository - Store Access Base Class

Provides PostgreSQL connection management with support for:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-operation connection creation (no pooling)
- Caller identity binding: every session transaction switches to the
  anonymous or authenticated role and publishes the caller's claims in
  `request.jwt.claims`, the setting row-level security policies read
- Catalog checks used by health monitoring

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository(schema_name='public')
    with repo._get_session('authenticated', {'sub': user_id, 'role': 'authenticated'}) as conn:
        with conn.cursor() as cursor:
            cursor.execute("SELECT id FROM public.species")
"""

import json
from contextlib import contextmanager
from typing import Optional, Dict, Any, Iterator

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from config import get_postgres_connection_string
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLRepository")


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Connection Strategy:
    -------------------
    Each operation creates a NEW connection and closes it immediately after use.
    No connection pooling is used - suitable for serverless Azure Functions.
    Any pooling belongs to a proxy in front of the database, not to this layer.

    Identity Strategy:
    -----------------
    The login role is only a gateway. `_get_session()` runs `SET LOCAL ROLE`
    inside a transaction so the statements execute with the privileges and
    policies of the caller's role, exactly like the hosted REST gateway does.
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: str = 'public',
                 statement_timeout_seconds: Optional[int] = None):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided, it is
            built from config for every new connection.

        schema_name : str
            Schema holding the species and observations tables.

        statement_timeout_seconds : Optional[int]
            Applied with SET LOCAL inside identity-bound sessions.
        """
        self.schema_name = schema_name
        self.statement_timeout_seconds = statement_timeout_seconds
        self._conn_string = connection_string

    @property
    def conn_string(self) -> str:
        """
        Explicit connection string if one was given, else a freshly built one.

        Built per access: with managed identity the password is an access
        token that expires after about an hour.
        """
        if self._conn_string is not None:
            return self._conn_string
        return get_postgres_connection_string()

    @contextmanager
    def _get_connection(self) -> Iterator[psycopg.Connection]:
        """
        Context manager for PostgreSQL database connections.

        1. Create connection using connection string
        2. Yield connection to caller
        3. On error: rollback transaction
        4. Always: close connection

        Yields:
            psycopg.Connection with dict_row factory. Autocommit is OFF.

        Raises:
            psycopg.Error on connection or statement failures
        """
        conn = None
        try:
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            logger.debug(f"PostgreSQL connection established (schema: {self.schema_name})")

            yield conn

        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL error: {type(e).__name__}: {e}")
            if conn is not None and not conn.closed:
                conn.rollback()
            raise

        finally:
            if conn is not None:
                conn.close()
                logger.debug("Connection closed")

    @contextmanager
    def _get_session(self, role: str, claims: Dict[str, Any]) -> Iterator[psycopg.Connection]:
        """
        Context manager for an identity-bound transaction.

        The role switch and the claims are transaction-local (SET LOCAL /
        set_config(..., true)), so they vanish at commit or rollback.

        Parameters:
        ----------
        role : str
            Database role to assume (e.g. 'anon' or 'authenticated').

        claims : Dict[str, Any]
            Caller claims published as `request.jwt.claims` (and the legacy
            `request.jwt.claim.sub`) for row-level security policies.

        Yields:
            psycopg.Connection inside an open transaction. Commits on success,
            rolls back on error.
        """
        with self._get_connection() as conn:
            with conn.transaction():
                with conn.cursor() as cursor:
                    cursor.execute(
                        sql.SQL("SET LOCAL ROLE {role}").format(role=sql.Identifier(role))
                    )
                    cursor.execute(
                        "SELECT set_config('request.jwt.claims', %s, true), "
                        "set_config('request.jwt.claim.sub', %s, true)",
                        (json.dumps(claims), claims.get('sub') or '')
                    )
                    if self.statement_timeout_seconds:
                        cursor.execute(
                            "SELECT set_config('statement_timeout', %s, true)",
                            (f"{self.statement_timeout_seconds}s",)
                        )
                yield conn

    def _qualified(self, name: str) -> sql.Composed:
        """Schema-qualified identifier for a table or function."""
        return sql.SQL("{schema}.{name}").format(
            schema=sql.Identifier(self.schema_name),
            name=sql.Identifier(name)
        )

    # ========================================================================
    # CATALOG CHECKS
    # ========================================================================

    def _table_exists(self, table_name: str) -> bool:
        """
        Check if a table exists in the schema.

        Returns:
            True if table exists in configured schema, False otherwise
        """
        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    SELECT EXISTS (
                        SELECT FROM information_schema.tables
                        WHERE table_schema = %s
                        AND table_name = %s
                    ) AS exists
                """, (self.schema_name, table_name))
                result = cursor.fetchone()
                return bool(result['exists']) if result else False

    def _function_exists(self, function_name: str) -> bool:
        """
        Check if a function (stored procedure) exists in the schema.

        Returns:
            True if at least one overload exists, False otherwise
        """
        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute("""
                    SELECT EXISTS (
                        SELECT FROM pg_proc p
                        JOIN pg_namespace n ON n.oid = p.pronamespace
                        WHERE n.nspname = %s
                        AND p.proname = %s
                    ) AS exists
                """, (self.schema_name, function_name))
                result = cursor.fetchone()
                return bool(result['exists']) if result else False
