# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for definitions, instances, tasks and status catalogs
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Module

FastAPI routers for the job cycle engine.
"""

from .routes import router as definition_router, set_definition_service
from .instance_routes import router as instance_router, task_router, set_instance_service
from .group_routes import router as group_router, set_group_services
from .errors import to_http

__all__ = [
    "definition_router",
    "instance_router",
    "task_router",
    "group_router",
    "set_definition_service",
    "set_instance_service",
    "set_group_services",
    "to_http",
]
