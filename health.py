# ============================================================================
# CLAUDE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Two-tier health checks for the Store and the Identity Provider
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: psycopg, config, observations, infrastructure, util_logger
# PATTERNS: Two-tier health checks (public/detailed)
# ============================================================================

"""
Health Check Module for Ocean Observer

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency
   - Store objects the API depends on (GeoJSON procedure, species and
     observations tables)
   - Identity Provider reachability (non-critical: reads keep working
     without it, only writes and include=mine degrade)
   - Returns 503 if unhealthy

Keep /health/detailed off the public gateway; it reports hosts and errors.
"""

import time
import uuid
import psycopg
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

from config import get_postgres_connection_string, get_app_config
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "ocean-observer"
APP_DESCRIPTION = "Ocean Observer - observation map and report API"


class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def get_app_identity() -> Dict[str, str]:
    """Name and description used in startup logs and detailed health."""
    return {"name": APP_NAME, "description": APP_DESCRIPTION}


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    Check that the Store accepts connections (SELECT 1).

    Critical: failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        config = get_app_config()

        with psycopg.connect(
            get_postgres_connection_string(config),
            connect_timeout=int(timeout_seconds)
        ) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="PostgreSQL connection successful",
            details={
                "host": config.postgis_host,
                "database": config.postgis_database,
                "auth_mode": "managed_identity" if config.use_managed_identity else "password"
            }
        )

    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_store_objects() -> CheckResult:
    """
    Check the procedure and tables the observations endpoints call.

    Critical: a missing object breaks reads or writes outright.
    """
    start_time = time.perf_counter()

    try:
        from observations.repository import ObservationsRepository

        repo = ObservationsRepository()
        found = {
            repo.config.geojson_function: repo._function_exists(repo.config.geojson_function),
            "species": repo._table_exists("species"),
            "observations": repo._table_exists("observations")
        }
        missing = [name for name, exists in found.items() if not exists]

        if missing:
            return CheckResult(
                status="fail",
                latency_ms=_elapsed_ms(start_time),
                message=f"Missing in schema '{repo.schema_name}': {', '.join(missing)}",
                details={"schema": repo.schema_name, "objects": found}
            )

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="Procedure and tables present",
            details={"schema": repo.schema_name, "objects": found}
        )

    except Exception as e:
        logger.error(f"Store object check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Store object check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_identity_provider() -> CheckResult:
    """
    Check the Identity Provider health endpoint.

    Non-critical: failure means DEGRADED.
    """
    start_time = time.perf_counter()

    try:
        from infrastructure.identity import IdentityProviderClient

        client = IdentityProviderClient()
        try:
            reachable = client.ping()
        finally:
            client.close()

        return CheckResult(
            status="pass" if reachable else "fail",
            latency_ms=_elapsed_ms(start_time),
            message="Identity Provider reachable" if reachable else "Identity Provider unreachable",
            details={"url": client.base_url}
        )

    except Exception as e:
        logger.error(f"Identity Provider check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Identity Provider check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health() -> Dict[str, Any]:
    """
    Minimal health status: database reachability only, no details.

    Returns:
        Dict with status and timestamp
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(_elapsed_ms(start_time), 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """
    Full health status for monitoring and operations.

    Returns:
        Dict with per-check results and overall status
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")
    else:
        # Catalog lookups are pointless without a connection
        objects_result = check_store_objects()
        checks["store_objects"] = objects_result.to_dict()
        if objects_result.status == "fail":
            critical_failures.append("store_objects")

    identity_result = check_identity_provider()
    checks["identity_provider"] = identity_result.to_dict()
    if identity_result.status == "fail":
        non_critical_failures.append("identity_provider")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = _elapsed_ms(start_time)

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    identity = get_app_identity()
    return {
        "status": status.value,
        "app": identity["name"],
        "description": identity["description"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
