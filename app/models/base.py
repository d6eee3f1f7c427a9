"""
Shared column helpers for every domain model.

All primary keys are opaque UUID strings; all timestamps are timezone-aware
UTC values.
"""

import uuid
from datetime import datetime, timezone


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    """Serialise a datetime (or None) for ``to_dict``."""
    return value.isoformat() if value else None
