# ============================================================================
# CLAUDE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with the observations API
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, observations, health
# ============================================================================

"""
Azure Functions Entry Point for Ocean Observer

Registers the HTTP triggers of the Observation Access Layer and the health
checks.

Architecture:
    - Observations: GET (GeoJSON read) and POST (authenticated create)
    - Species: GET list for filter pickers
    - Health checks:
        - /api/health - Public (minimal response)
        - /api/health/detailed - Internal (Store objects, Identity Provider)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json
import logging

import azure.functions as func

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = func.FunctionApp()

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}

# ============================================================================
# Observation Access Layer - 2 Routes
# ============================================================================

try:
    from observations import get_observation_triggers

    logger.info("Registering observations endpoints...")

    triggers = get_observation_triggers()

    # Read (GET) and create (POST) share the route
    @app.route(route="observations", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def observations(req: func.HttpRequest) -> func.HttpResponse:
        return triggers[0]['handler'](req)

    @app.route(route="species", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def species(req: func.HttpRequest) -> func.HttpResponse:
        return triggers[1]['handler'](req)

    logger.info("✅ Observations API registered successfully (2 routes)")

except ImportError as e:
    logger.warning(f"⚠️ Observations module not available: {e}")
    logger.warning("Observations API will not be available")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint.

    Always returns 200 - status in body indicates health.

    Returns:
        JSON: {"status": "healthy|unhealthy", "timestamp": "..."}
    """
    from health import get_public_health

    return func.HttpResponse(
        json.dumps(get_public_health(), default=str),
        mimetype="application/json",
        status_code=200,
        headers=NO_CACHE_HEADERS
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check endpoint for monitoring and operations.

    Returns 503 if unhealthy, 200 otherwise (healthy or degraded).
    """
    from health import get_detailed_health, HealthStatus

    result = get_detailed_health()
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers=NO_CACHE_HEADERS
    )

# ============================================================================
# Application Startup
# ============================================================================

from health import get_app_identity
from config import validate_configuration

_app_identity = get_app_identity()

try:
    validate_configuration()
except Exception as e:
    # Host stays up so /api/health can report the failure
    logger.error(f"❌ Startup configuration check failed, requests will fail until fixed: {e}")

logger.info("=" * 60)
logger.info(f"{_app_identity['name']} - {_app_identity['description']}")
logger.info("=" * 60)
logger.info("Function App initialized successfully")
logger.info("Available endpoints:")
logger.info("  - GET  /api/health - Public health check (minimal)")
logger.info("  - GET  /api/health/detailed - Detailed health (internal)")
logger.info("  - GET  /api/observations - GeoJSON FeatureCollection (bbox + filters)")
logger.info("  - POST /api/observations - Create observation (bearer token)")
logger.info("  - GET  /api/species - Species list")
logger.info("=" * 60)
