# ============================================================================
# SCHEMA DDL
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Table definitions for the jobcycle schema
# PURPOSE: Idempotent CREATE statements applied at startup or by hand
# CREATED: 18 OCT 2026
# ============================================================================
"""
Schema DDL

CREATE ... IF NOT EXISTS statements for every table the repositories use.
Depth columns carry the 0..2 CHECK so storage enforces the same cap as
HierarchyPolicy. Task status is NOT constrained here: valid keys come
from the owning group's status catalog and are checked by the services.

Deleting an instance removes its tasks. Instance numbers come from the
group_counters row, so a deleted instance's number is never reissued.

Usage:
    from repositories.schema import deploy_schema

    pool = await get_pool()
    await deploy_schema(pool)
"""

import logging
from typing import List

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

from core.contracts import MAX_DEPTH
from .database import (
    SCHEMA,
    TABLE_GROUP_STATUSES,
    TABLE_JOB_DEFINITIONS,
    TABLE_TASK_TEMPLATES,
    TABLE_JOB_INSTANCES,
    TABLE_GROUP_COUNTERS,
    TABLE_TASKS,
)

logger = logging.getLogger(__name__)


def build_statements() -> List[sql.Composed]:
    """DDL in dependency order."""
    depth_check = sql.SQL("CHECK (depth BETWEEN 0 AND {})").format(sql.Literal(MAX_DEPTH))
    return [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(SCHEMA)),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                group_id VARCHAR(64) NOT NULL,
                key VARCHAR(64) NOT NULL,
                label VARCHAR(128) NOT NULL,
                color VARCHAR(16) NOT NULL DEFAULT '#94a3b8',
                sort_order INTEGER NOT NULL DEFAULT 0,
                is_done BOOLEAN NOT NULL DEFAULT FALSE,
                PRIMARY KEY (group_id, key)
            )
        """).format(TABLE_GROUP_STATUSES),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                definition_id VARCHAR(64) PRIMARY KEY,
                group_id VARCHAR(64) NOT NULL,
                name VARCHAR(200) NOT NULL,
                prefix VARCHAR(16),
                category VARCHAR(100),
                typical_start_month INTEGER CHECK (typical_start_month BETWEEN 1 AND 12),
                typical_start_week INTEGER CHECK (typical_start_week BETWEEN 1 AND 5),
                typical_duration_days INTEGER,
                owner_role VARCHAR(100),
                description TEXT,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """).format(TABLE_JOB_DEFINITIONS),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                template_id VARCHAR(64) PRIMARY KEY,
                definition_id VARCHAR(64) NOT NULL REFERENCES {} (definition_id) ON DELETE CASCADE,
                parent_template_id VARCHAR(64) REFERENCES {} (template_id) ON DELETE CASCADE,
                depth INTEGER NOT NULL DEFAULT 0 {},
                title VARCHAR(500) NOT NULL,
                description TEXT,
                relative_days INTEGER NOT NULL DEFAULT 0,
                default_assignee_role VARCHAR(100),
                default_assignee_ids JSONB NOT NULL DEFAULT '[]'::jsonb,
                default_priority VARCHAR(16),
                sort_order INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """).format(TABLE_TASK_TEMPLATES, TABLE_JOB_DEFINITIONS, TABLE_TASK_TEMPLATES, depth_check),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                instance_id VARCHAR(64) PRIMARY KEY,
                definition_id VARCHAR(64) REFERENCES {} (definition_id) ON DELETE SET NULL,
                group_id VARCHAR(64) NOT NULL,
                name VARCHAR(200),
                instance_number INTEGER,
                fiscal_year INTEGER NOT NULL,
                actual_start DATE,
                actual_end DATE,
                status VARCHAR(32) NOT NULL DEFAULT 'not_started'
                    CHECK (status IN ('not_started', 'in_progress', 'completed')),
                created_by VARCHAR(64),
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                UNIQUE (group_id, instance_number)
            )
        """).format(TABLE_JOB_INSTANCES, TABLE_JOB_DEFINITIONS),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                group_id VARCHAR(64) PRIMARY KEY,
                last_instance_number INTEGER NOT NULL DEFAULT 0
            )
        """).format(TABLE_GROUP_COUNTERS),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                task_id VARCHAR(64) PRIMARY KEY,
                group_id VARCHAR(64) NOT NULL,
                instance_id VARCHAR(64) REFERENCES {} (instance_id) ON DELETE CASCADE,
                template_id VARCHAR(64) REFERENCES {} (template_id) ON DELETE SET NULL,
                parent_task_id VARCHAR(64) REFERENCES {} (task_id) ON DELETE CASCADE,
                depth INTEGER NOT NULL DEFAULT 0 {},
                task_number INTEGER,
                title VARCHAR(500) NOT NULL,
                description TEXT,
                start_date DATE,
                due_date DATE,
                status VARCHAR(64) NOT NULL,
                priority VARCHAR(16) NOT NULL DEFAULT 'normal'
                    CHECK (priority IN ('urgent', 'important', 'normal', 'none')),
                assignee_ids JSONB NOT NULL DEFAULT '[]'::jsonb,
                sort_order INTEGER NOT NULL DEFAULT 0,
                created_by VARCHAR(64) NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """).format(TABLE_TASKS, TABLE_JOB_INSTANCES, TABLE_TASK_TEMPLATES, TABLE_TASKS, depth_check),
        sql.SQL("CREATE INDEX IF NOT EXISTS idx_templates_definition ON {} (definition_id)").format(
            TABLE_TASK_TEMPLATES
        ),
        sql.SQL("CREATE INDEX IF NOT EXISTS idx_tasks_instance ON {} (instance_id)").format(TABLE_TASKS),
        sql.SQL(
            "CREATE UNIQUE INDEX IF NOT EXISTS uq_tasks_instance_number "
            "ON {} (instance_id, task_number) WHERE instance_id IS NOT NULL"
        ).format(TABLE_TASKS),
        sql.SQL("CREATE INDEX IF NOT EXISTS idx_tasks_group_status ON {} (group_id, status)").format(
            TABLE_TASKS
        ),
    ]


async def deploy_schema(pool: AsyncConnectionPool) -> int:
    """
    Apply every statement in one transaction.

    Returns:
        Number of statements executed
    """
    statements = build_statements()
    async with pool.connection() as conn:
        async with conn.transaction():
            for statement in statements:
                await conn.execute(statement)
    logger.info(f"Schema {SCHEMA} deployed ({len(statements)} statements)")
    return len(statements)


__all__ = ["build_statements", "deploy_schema"]
