"""
Platform-wide exception hierarchy.

Services raise these types; ``app.utils.errors.register_error_handlers``
maps them to HTTP responses once for every blueprint.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Intervention", resource_id="3f2a...")
    raise ValidationError("userId is required", details={"userId": "required"})
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Case", "DeviceProposal").
        resource_id: The id that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when an action payload is malformed or misses required fields.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Field-level breakdown. Keys are payload field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an action conflicts with the current state of a record.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field whose current value blocks the action.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} conflicts with the requested change"
        super().__init__(msg)


class InvalidTransitionError(ConflictError):
    """Raised by the state-machine guards when (current -> target) is not allowed."""

    def __init__(self, resource: str, resource_id: str, current: str, target: str) -> None:
        super().__init__(resource, "status", current)
        self.resource_id = resource_id
        self.current = current
        self.target = target
        self.args = (f"Invalid transition for {resource} id={resource_id}: {current} → {target}",)

    def __str__(self) -> str:
        return self.args[0]


class StaleVersionError(ConflictError):
    """Raised when a record changed since the caller (or this session) read it."""

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        super().__init__(resource, "version", None if actual is None else str(actual))
        self.resource_id = resource_id
        self.expected = expected
        self.actual = actual
        msg = f"{resource} id={resource_id} was modified concurrently"
        if expected is not None:
            msg += f" (expected version {expected}, found {actual})"
        self.args = (msg,)

    def __str__(self) -> str:
        return self.args[0]


class StoreFailure(Exception):
    """Raised when the database rejects a workflow transaction.

    The underlying SQLAlchemy error is chained (``raise ... from exc``) and
    logged; only the generic message reaches API callers.
    """

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Store failure during {action}")
