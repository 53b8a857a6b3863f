# ============================================================================
# GROUP ROUTES
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Group-scoped HTTP endpoints
# PURPOSE: Group listings, display-key lookup and status catalogs
# CREATED: 18 OCT 2026
# ============================================================================
"""
Group Routes

Endpoints:
- GET    /api/v1/groups/{group_id}/job-definitions         - Definitions of a group
- GET    /api/v1/groups/{group_id}/job-instances           - Instances (?fiscal_year=)
- GET    /api/v1/groups/{group_id}/job-instances/{key}     - Instance by PREFIX-N
- GET    /api/v1/groups/{group_id}/tasks                   - Tasks (?status=, ?parent_only=)
- GET    /api/v1/groups/{group_id}/statuses                - Status catalog
- POST   /api/v1/groups/{group_id}/statuses                - Add status
- POST   /api/v1/groups/{group_id}/statuses/seed           - Seed default catalog
- DELETE /api/v1/groups/{group_id}/statuses/{key}          - Remove unused status
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from engine import EngineError
from .errors import to_http
from .schemas import StatusCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

_definition_service = None
_instance_service = None
_status_service = None


def set_group_services(definition_service, instance_service, status_service):
    """Called by main.py at startup to inject services."""
    global _definition_service, _instance_service, _status_service
    _definition_service = definition_service
    _instance_service = instance_service
    _status_service = status_service


def _require(service, name: str):
    if service is None:
        raise HTTPException(503, f"{name} service not initialized")
    return service


# ============================================================================
# LISTINGS
# ============================================================================

@router.get("/{group_id}/job-definitions")
async def list_definitions(group_id: str, include_inactive: bool = False):
    svc = _require(_definition_service, "Definition")
    return await svc.list_definitions(group_id, include_inactive)


@router.get("/{group_id}/job-instances")
async def list_instances(group_id: str, fiscal_year: Optional[int] = None):
    svc = _require(_instance_service, "Instance")
    return await svc.list_instances(group_id, fiscal_year)


@router.get("/{group_id}/job-instances/{key}")
async def get_instance_by_key(group_id: str, key: str):
    """Resolve a display key such as ENT-3."""
    svc = _require(_instance_service, "Instance")
    try:
        return await svc.get_instance_by_key(group_id, key)
    except (KeyError, ValueError) as e:
        raise to_http(e)


@router.get("/{group_id}/tasks")
async def list_group_tasks(
    group_id: str,
    status: Optional[str] = None,
    parent_only: bool = False,
):
    svc = _require(_instance_service, "Instance")
    return await svc.list_group_tasks(group_id, status=status, parent_only=parent_only)


# ============================================================================
# STATUS CATALOG
# ============================================================================

@router.get("/{group_id}/statuses")
async def get_statuses(group_id: str):
    svc = _require(_status_service, "Status")
    catalog = await svc.get_catalog(group_id)
    return catalog.ordered()


@router.post("/{group_id}/statuses", status_code=201)
async def add_status(group_id: str, request: StatusCreate):
    svc = _require(_status_service, "Status")
    try:
        return await svc.add_status(group_id, **request.model_dump())
    except ValueError as e:
        raise to_http(e)


@router.post("/{group_id}/statuses/seed")
async def seed_statuses(group_id: str):
    svc = _require(_status_service, "Status")
    catalog = await svc.seed_defaults(group_id)
    return catalog.ordered()


@router.delete("/{group_id}/statuses/{key}")
async def remove_status(group_id: str, key: str):
    svc = _require(_status_service, "Status")
    try:
        await svc.remove_status(group_id, key)
    except (EngineError, KeyError) as e:
        raise to_http(e)
    return {"success": True}
