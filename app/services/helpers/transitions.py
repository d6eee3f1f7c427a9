"""
State-machine guard shared by the workflow handlers.

Each domain module defines its own ``*_TRANSITIONS`` table and
``validate_*_transition(old, new)`` predicate. ``guard_transition`` applies
the predicate when ``WORKFLOW_ENFORCE_TRANSITIONS`` is on; with enforcement
off every (from, to) pair is accepted.
"""

from flask import current_app

from app.core.exceptions import InvalidTransitionError


def transitions_enforced() -> bool:
    return bool(current_app.config.get("WORKFLOW_ENFORCE_TRANSITIONS", True))


def guard_transition(resource: str, entity, target: str, validator) -> None:
    """Raise InvalidTransitionError if ``entity.status -> target`` is not allowed."""
    if not transitions_enforced():
        return
    if not validator(entity.status, target):
        raise InvalidTransitionError(resource, entity.id, entity.status, target)
