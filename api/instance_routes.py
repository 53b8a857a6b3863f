# ============================================================================
# JOB INSTANCE & TASK ROUTES
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Instance-side HTTP endpoints
# PURPOSE: HTTP API for instances, task forests, reorder and capture
# CREATED: 18 OCT 2026
# ============================================================================
"""
Job Instance & Task Routes

Endpoints:
- GET    /api/v1/job-instances/{id}             - Instance
- GET    /api/v1/job-instances/{id}/tasks       - Tasks by task_number (?tree=true for pre-order)
- POST   /api/v1/job-instances/{id}/capture     - Save as new job definition
- POST   /api/v1/tasks                          - Create task
- GET    /api/v1/tasks/{id}                     - Task
- PUT    /api/v1/tasks/{id}                     - Partial content update
- DELETE /api/v1/tasks/{id}                     - Delete (subtree cascades)
- PATCH  /api/v1/tasks/{id}/status              - Change status (catalog-validated)
- PATCH  /api/v1/tasks/{id}/priority            - Change priority
- PATCH  /api/v1/tasks/{id}/reorder             - Move one task
- POST   /api/v1/tasks/reorder-bulk             - Move many tasks atomically
"""

import logging

from fastapi import APIRouter, HTTPException

from engine import EngineError
from .errors import to_http
from .schemas import (
    CaptureRequest,
    CaptureResponse,
    PriorityChange,
    ReorderResponse,
    StatusChange,
    TaskCreate,
    TaskReorder,
    TaskReorderBulk,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/job-instances", tags=["job-instances"])
task_router = APIRouter(prefix="/tasks", tags=["tasks"])


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

_instance_service = None


def set_instance_service(instance_service):
    """Called by main.py at startup to inject the instance service."""
    global _instance_service
    _instance_service = instance_service


def _get_service():
    """Get the instance service, raising 503 if not initialized."""
    if _instance_service is None:
        raise HTTPException(503, "Instance service not initialized")
    return _instance_service


# ============================================================================
# INSTANCES
# ============================================================================

@router.get("/{instance_id}")
async def get_instance(instance_id: str):
    svc = _get_service()
    try:
        return await svc.get_instance(instance_id)
    except KeyError as e:
        raise to_http(e)


@router.get("/{instance_id}/tasks")
async def list_instance_tasks(instance_id: str, tree: bool = False):
    svc = _get_service()
    try:
        if tree:
            return await svc.list_task_tree(instance_id)
        return await svc.list_tasks(instance_id)
    except (EngineError, KeyError) as e:
        raise to_http(e)


@router.post("/{instance_id}/capture", response_model=CaptureResponse, status_code=201)
async def capture_instance(instance_id: str, request: CaptureRequest):
    """Save the instance's task forest as a reusable job definition."""
    svc = _get_service()
    meta = request.model_dump(exclude={"actor_id", "name"}, exclude_none=True)
    try:
        outcome = await svc.capture(instance_id, request.actor_id, request.name, **meta)
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)

    return CaptureResponse(
        definition=outcome.definition,
        templates=outcome.templates,
        base_date=outcome.base_date,
        instance_id=instance_id,
    )


# ============================================================================
# TASKS
# ============================================================================

@task_router.post("", status_code=201)
async def create_task(request: TaskCreate):
    svc = _get_service()
    try:
        return await svc.create_task(**request.model_dump())
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)


@task_router.post("/reorder-bulk", response_model=ReorderResponse)
async def reorder_tasks(request: TaskReorderBulk):
    """Apply every move or none of them; an empty list is a no-op."""
    svc = _get_service()
    try:
        outcome = await svc.reorder_tasks(request.to_changes())
    except (EngineError, ValueError) as e:
        raise to_http(e)
    return ReorderResponse(updated=outcome.count)


@task_router.get("/{task_id}")
async def get_task(task_id: str):
    svc = _get_service()
    try:
        return await svc.get_task(task_id)
    except KeyError as e:
        raise to_http(e)


@task_router.put("/{task_id}")
async def update_task(task_id: str, request: TaskUpdate):
    svc = _get_service()
    try:
        return await svc.update_task(task_id, request.model_dump(exclude_unset=True))
    except (EngineError, KeyError, ValueError) as e:
        raise to_http(e)


@task_router.delete("/{task_id}")
async def delete_task(task_id: str):
    svc = _get_service()
    try:
        await svc.delete_task(task_id)
    except KeyError as e:
        raise to_http(e)
    return {"success": True}


@task_router.patch("/{task_id}/status")
async def update_task_status(task_id: str, request: StatusChange):
    svc = _get_service()
    try:
        task = await svc.update_task_status(task_id, request.status)
    except (EngineError, KeyError) as e:
        raise to_http(e)
    return {"success": True, "status": task.status}


@task_router.patch("/{task_id}/priority")
async def update_task_priority(task_id: str, request: PriorityChange):
    svc = _get_service()
    try:
        task = await svc.update_task_priority(task_id, request.priority)
    except (KeyError, ValueError) as e:
        raise to_http(e)
    return {"success": True, "priority": task.priority.value}


@task_router.patch("/{task_id}/reorder")
async def reorder_task(task_id: str, request: TaskReorder):
    svc = _get_service()
    try:
        return await svc.reorder_task(request.to_change(task_id))
    except (EngineError, ValueError) as e:
        raise to_http(e)
