# ============================================================================
# CLAUDE CONTEXT - OBSERVATIONS TRIGGERS
# ============================================================================
# STATUS: Module HTTP Triggers - Observation Access Layer endpoints
# PURPOSE: Azure Functions HTTP handlers for observations and species
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: get_observation_triggers, ObservationsTrigger, SpeciesTrigger
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, json, uuid, util_logger
# SOURCE: HTTP requests from the map and form clients
# PATTERNS: Trigger Pattern, Factory Pattern (get_observation_triggers)
# ENTRY_POINTS: Function App route registration via get_observation_triggers()
# ============================================================================

"""
Observation Access Layer HTTP Triggers - Azure Functions Handlers

Endpoints:
- GET  /api/observations - bbox + filter query, GeoJSON FeatureCollection
- POST /api/observations - authenticated create, 201 {"id": ...}
- GET  /api/species      - species list for filter pickers

Each trigger:
1. Extracts the bearer token and parameters/body
2. Calls the service layer
3. Maps ObservationError to {"error": code} with its status
4. Maps anything unexpected to the operation's generic 500 body

Error bodies never carry internal detail.
"""

import json
import uuid
from typing import Any, Dict, List, Optional

import azure.functions as func

from infrastructure.identity import extract_bearer_token
from util_logger import LoggerFactory, ComponentType, LogContext
from .exceptions import ObservationError
from .service import ObservationsService

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "ObservationsTriggers")

NO_STORE_HEADERS = {"Cache-Control": "no-store"}


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_observation_triggers(service: Optional[ObservationsService] = None) -> List[Dict[str, Any]]:
    """
    Get list of trigger configurations for function_app.py.

    Args:
        service: Shared service instance (created lazily if not provided)

    Returns:
        List of dicts with keys: route, methods, handler
    """
    return [
        {
            'route': 'observations',
            'methods': ['GET', 'POST'],
            'handler': ObservationsTrigger(service).handle
        },
        {
            'route': 'species',
            'methods': ['GET'],
            'handler': SpeciesTrigger(service).handle
        }
    ]


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseObservationTrigger:
    """
    Base class for Observation Access Layer triggers.

    Provides common functionality:
    - Lazy service creation (config is read on first request, not at import)
    - Request context for logs
    - JSON response formatting
    - Error mapping
    """

    def __init__(self, service: Optional[ObservationsService] = None):
        self._service = service

    @property
    def service(self) -> ObservationsService:
        if self._service is None:
            self._service = ObservationsService()
        return self._service

    def _log_context(self, req: func.HttpRequest, operation: str) -> LogContext:
        return LogContext(
            request_id=req.headers.get('x-request-id') or uuid.uuid4().hex[:8],
            correlation_id=req.headers.get('x-correlation-id'),
            operation=operation
        )

    def _json_response(
        self,
        data: Any,
        status_code: int = 200,
        content_type: str = "application/json",
        headers: Optional[Dict[str, str]] = None
    ) -> func.HttpResponse:
        """
        Create JSON HTTP response.

        Args:
            data: Data to serialize (dict, list, Pydantic model)
            status_code: HTTP status code
            content_type: Response content type
            headers: Extra response headers
        """
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json')

        return func.HttpResponse(
            body=json.dumps(data, default=str),
            status_code=status_code,
            mimetype=content_type,
            headers=headers
        )

    def _error_response(self, error: ObservationError) -> func.HttpResponse:
        return self._json_response(error.to_body(), status_code=error.status_code)

    def _unexpected_error(self, error_code: str, ctx: LogContext, e: Exception) -> func.HttpResponse:
        logger.error(
            f"Unhandled error in {ctx.operation}: {type(e).__name__}: {e}",
            exc_info=True,
            extra={'custom_dimensions': ctx.to_dict()}
        )
        return self._json_response({"error": error_code}, status_code=500)


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class ObservationsTrigger(BaseObservationTrigger):
    """
    Observations trigger.

    Endpoint: GET /api/observations
        Query Parameters:
        - min_lon, min_lat, max_lon, max_lat: bbox (defaults: world extent)
        - species_id: integer species filter
        - from, to: observed_at range (forwarded unvalidated)
        - min_depth, max_depth: depth range in metres
        - include=mine: include the caller's private rows (needs a bearer token)
        Responses:
        - 200 GeoJSON FeatureCollection (empty features when nothing matches)
        - 400 {"error": "invalid_query"} for a non-numeric bbox, species or depth value
        - 500 {"error": "failed_fetch"}

    Endpoint: POST /api/observations
        Header: Authorization: Bearer <token> (required)
        Body: {activity, lat, lng, species_common?, species_id?, depth_min_m?,
               depth_max_m?, temperature_c?, notes?, observed_at?, is_private?}
        Responses: 201 {"id": ...}, 401 missing_bearer_token / unauthenticated,
        400 invalid_payload, 500 insert_failed
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        """Dispatch on HTTP method."""
        if req.method.upper() == "POST":
            return self._handle_create(req)
        return self._handle_query(req)

    def _handle_query(self, req: func.HttpRequest) -> func.HttpResponse:
        ctx = self._log_context(req, "observations.read")

        try:
            params = self.service.parse_query(req.params)
            token = extract_bearer_token(req.headers.get('Authorization')) if params.include_mine else None

            feature_collection = self.service.query_observations(params, token=token)

            logger.info(
                f"Observation query returned {len(feature_collection.get('features') or [])} features",
                extra={'custom_dimensions': {**ctx.to_dict(), 'include_mine': params.include_mine}}
            )

            return self._json_response(
                feature_collection,
                content_type="application/geo+json",
                headers=NO_STORE_HEADERS
            )

        except ObservationError as e:
            logger.warning(
                f"Observation query rejected: {e.error_code}",
                extra={'custom_dimensions': ctx.to_dict()}
            )
            return self._error_response(e)
        except Exception as e:
            return self._unexpected_error("failed_fetch", ctx, e)

    def _handle_create(self, req: func.HttpRequest) -> func.HttpResponse:
        ctx = self._log_context(req, "observations.create")

        try:
            token = extract_bearer_token(req.headers.get('Authorization'))

            try:
                body = req.get_json()
            except ValueError:
                body = None

            created = self.service.create_observation(token, body, log_context=ctx)

            logger.info(
                f"Observation {created.id} created",
                extra={'custom_dimensions': ctx.to_dict()}
            )

            return self._json_response(created, status_code=201)

        except ObservationError as e:
            logger.warning(
                f"Observation create rejected: {e.error_code}",
                extra={'custom_dimensions': ctx.to_dict()}
            )
            return self._error_response(e)
        except Exception as e:
            return self._unexpected_error("insert_failed", ctx, e)


class SpeciesTrigger(BaseObservationTrigger):
    """
    Species list trigger.

    Endpoint: GET /api/species
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        ctx = self._log_context(req, "species.list")

        try:
            species = self.service.list_species()

            logger.info(
                f"Species list returned {len(species)} rows",
                extra={'custom_dimensions': ctx.to_dict()}
            )

            return self._json_response(species, headers=NO_STORE_HEADERS)

        except ObservationError as e:
            return self._error_response(e)
        except Exception as e:
            return self._unexpected_error("failed_fetch", ctx, e)
