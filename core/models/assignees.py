# ============================================================================
# ASSIGNEE LIST NORMALIZATION
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Shared field helper
# PURPOSE: One authoritative representation for multi-assignee fields
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Assignee lists are ordered, de-duplicated sequences of user ids.

Older payloads may carry a single id, a JSON-encoded list, or None; all
of them normalize to a plain list here.
"""

import json
from typing import Any, List


def normalize_assignee_ids(value: Any) -> List[str]:
    """Coerce None / str / JSON text / iterable into an ordered unique list."""
    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        if stripped.startswith("["):
            value = json.loads(stripped)
        else:
            value = [stripped]

    result: List[str] = []
    for item in value:
        if item is None:
            continue
        item = str(item).strip()
        if item and item not in result:
            result.append(item)
    return result
