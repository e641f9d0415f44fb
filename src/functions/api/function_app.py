"""
Dilux Database Inventory - API Function App

HTTP triggers for database inventory:
- GET /api/health - Health check
- POST /api/inventory - Inventory databases on one or more SQL Server instances
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

import azure.functions as func
from pydantic import ValidationError as PydanticValidationError

from dbinventory import __version__
from dbinventory.config import get_settings
from dbinventory.exceptions import ConflictingFiltersError
from dbinventory.models import InventoryRequest
from dbinventory.services import InventoryService, ReportStore

# Initialize Function App
app = func.FunctionApp(http_auth_level=func.AuthLevel.FUNCTION)

settings = get_settings()
logging.getLogger().setLevel(settings.log_level.upper())

logger = logging.getLogger(__name__)


def json_response(payload: dict[str, Any], status_code: int = 200) -> func.HttpResponse:
    """Build a JSON HTTP response."""
    return func.HttpResponse(
        json.dumps(payload),
        mimetype="application/json",
        status_code=status_code,
    )


def handle_inventory_request(
    body: Any,
    service: Optional[InventoryService] = None,
) -> tuple[dict[str, Any], int]:
    """
    Validate an inventory request body and run it.

    Returns:
        Tuple of (response payload, HTTP status code)
    """
    try:
        request = InventoryRequest.model_validate(body)
    except PydanticValidationError as e:
        return {"error": "Invalid request", "details": e.errors(include_url=False, include_context=False)}, 400

    try:
        if service is None:
            reporter = ReportStore() if request.persist else None
            service = InventoryService(reporter=reporter)
        result = service.run(request)
    except ConflictingFiltersError as e:
        return {"error": str(e), "criteria": e.criteria}, 400

    payload = result.to_response()
    payload["timestamp"] = datetime.utcnow().isoformat()
    return payload, 200


# ===========================================
# Health Check
# ===========================================


@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint."""
    return json_response({
        "status": "healthy",
        "service": "dilux-inventory-api",
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    })


# ===========================================
# Inventory
# ===========================================


@app.route(route="inventory", methods=["POST"])
def inventory(req: func.HttpRequest) -> func.HttpResponse:
    """
    Inventory databases on SQL Server instances.

    Request body:
    {
        "instances": ["sql01", "sql02\\\\reporting", "sql03,14330"],
        "credential": {"username": "inventory", "password": "secret"},
        "filters": {"user_only": true, "exclude": ["scratch"]},
        "staleness": {"no_full_backup_since": "2024-01-01T00:00:00"},
        "include_last_used": false,
        "persist": false
    }

    At most one primary filter may be set (system_only, user_only,
    databases, status, owners, access, encrypted, recovery_model).
    Per-instance failures are returned in "errors" and do not fail the call.
    """
    try:
        body = req.get_json()
    except ValueError:
        return json_response({"error": "Request body must be JSON"}, 400)

    try:
        payload, status_code = handle_inventory_request(body)
        return json_response(payload, status_code)
    except Exception as e:
        logger.exception("Error running inventory")
        return json_response({"error": str(e)}, 500)
