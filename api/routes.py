# ============================================================================
# JOB DEFINITION ROUTES
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Template-side HTTP endpoints
# PURPOSE: HTTP API for definitions, template forests and instantiation
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Definition Routes

Endpoints:
- POST   /api/v1/job-definitions                                - Create definition
- GET    /api/v1/job-definitions/{id}                           - Definition + templates
- PUT    /api/v1/job-definitions/{id}                           - Partial update
- DELETE /api/v1/job-definitions/{id}                           - Delete (templates cascade)
- POST   /api/v1/job-definitions/{id}/templates                 - Add template
- POST   /api/v1/job-definitions/{id}/templates/reorder-bulk    - Bulk reorder
- POST   /api/v1/job-definitions/{id}/instantiate               - New instance + tasks
- PUT    /api/v1/job-definitions/templates/{template_id}        - Update template
- PATCH  /api/v1/job-definitions/templates/{template_id}/reorder - Move one template
- DELETE /api/v1/job-definitions/templates/{template_id}        - Delete leaf template
"""

import logging

from fastapi import APIRouter, HTTPException

from engine import EngineError
from .errors import to_http
from .schemas import (
    DefinitionCreate,
    DefinitionDetail,
    DefinitionUpdate,
    InstantiateRequest,
    InstantiateResponse,
    ReorderResponse,
    TemplateCreate,
    TemplateReorder,
    TemplateReorderBulk,
    TemplateUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-definitions", tags=["job-definitions"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

_definition_service = None


def set_definition_service(definition_service):
    """Called by main.py at startup to inject the definition service."""
    global _definition_service
    _definition_service = definition_service


def _get_service():
    """Get the definition service, raising 503 if not initialized."""
    if _definition_service is None:
        raise HTTPException(503, "Definition service not initialized")
    return _definition_service


# ============================================================================
# DEFINITIONS
# ============================================================================

@router.post("", status_code=201)
async def create_definition(request: DefinitionCreate):
    svc = _get_service()
    fields = request.model_dump(exclude={"group_id", "name"}, exclude_none=True)
    try:
        return await svc.create_definition(request.group_id, request.name, **fields)
    except ValueError as e:
        raise to_http(e)


@router.get("/{definition_id}", response_model=DefinitionDetail)
async def get_definition(definition_id: str):
    """Definition with its templates in tree (pre-)order."""
    svc = _get_service()
    try:
        definition, templates = await svc.get_definition_with_templates(definition_id)
    except (EngineError, KeyError) as e:
        raise to_http(e)
    return DefinitionDetail(definition=definition, templates=templates)


@router.put("/{definition_id}")
async def update_definition(definition_id: str, request: DefinitionUpdate):
    svc = _get_service()
    try:
        return await svc.update_definition(
            definition_id, request.model_dump(exclude_unset=True)
        )
    except (KeyError, ValueError) as e:
        raise to_http(e)


@router.delete("/{definition_id}")
async def delete_definition(definition_id: str):
    svc = _get_service()
    try:
        await svc.delete_definition(definition_id)
    except KeyError as e:
        raise to_http(e)
    return {"success": True}


# ============================================================================
# TEMPLATES
# ============================================================================

@router.post("/{definition_id}/templates", status_code=201)
async def add_template(definition_id: str, request: TemplateCreate):
    """Add a template; depth is derived from the parent."""
    svc = _get_service()
    try:
        return await svc.add_template(definition_id, **request.model_dump())
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)


@router.post("/{definition_id}/templates/reorder-bulk", response_model=ReorderResponse)
async def reorder_templates(definition_id: str, request: TemplateReorderBulk):
    """Apply every move or none of them."""
    svc = _get_service()
    try:
        outcome = await svc.reorder_templates(definition_id, request.to_changes())
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)
    return ReorderResponse(updated=outcome.count)


@router.put("/templates/{template_id}")
async def update_template(template_id: str, request: TemplateUpdate):
    svc = _get_service()
    try:
        return await svc.update_template(template_id, request.model_dump(exclude_unset=True))
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)


@router.patch("/templates/{template_id}/reorder")
async def reorder_template(template_id: str, request: TemplateReorder):
    svc = _get_service()
    try:
        return await svc.reorder_template(request.to_change(template_id))
    except (EngineError, ValueError) as e:
        raise to_http(e)


@router.delete("/templates/{template_id}")
async def delete_template(template_id: str):
    svc = _get_service()
    try:
        await svc.delete_template(template_id)
    except (EngineError, KeyError) as e:
        raise to_http(e)
    return {"success": True}


# ============================================================================
# INSTANTIATE
# ============================================================================

@router.post("/{definition_id}/instantiate", response_model=InstantiateResponse, status_code=201)
async def instantiate(definition_id: str, request: InstantiateRequest):
    """
    Create a numbered job instance and its task forest.

    Due dates are actual_start (default today) + each template's relative_days.
    """
    svc = _get_service()
    try:
        outcome = await svc.instantiate(
            definition_id,
            fiscal_year=request.fiscal_year,
            actor_id=request.actor_id,
            actual_start=request.actual_start,
            name=request.name,
        )
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)

    return InstantiateResponse(
        instance=outcome.instance,
        display_key=outcome.display_key,
        task_count=outcome.task_count,
        tasks=outcome.tasks,
    )
