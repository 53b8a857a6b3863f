# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 18 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the job cycle engine.
"""

from core.config.defaults import (
    HierarchyDefaults,
    InstantiationDefaults,
    StatusDefaults,
    DatabaseDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "HierarchyDefaults",
    "InstantiationDefaults",
    "StatusDefaults",
    "DatabaseDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
