# ============================================================================
# API ERROR MAPPING
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Service exceptions -> HTTP status codes
# PURPOSE: One mapping shared by every router
# CREATED: 18 OCT 2026
# ============================================================================
"""
API Error Mapping

    EngineError(parent_not_found | node_not_found)  -> 404
    EngineError(any other code)                     -> 400
    KeyError                                        -> 404
    ValueError (incl. pydantic ValidationError)     -> 400

EngineError bodies carry the violation: {"code", "message", "node_id"}.
"""

from fastapi import HTTPException

from engine import EngineError


def to_http(e: Exception) -> HTTPException:
    """Translate a service exception into an HTTPException."""
    if isinstance(e, EngineError):
        status = 404 if e.code.is_not_found else 400
        return HTTPException(status, e.violation.to_dict())
    if isinstance(e, KeyError):
        return HTTPException(404, e.args[0] if e.args else "Not found")
    return HTTPException(400, str(e))


__all__ = ["to_http"]
