"""
Platform-wide exception hierarchy.

Services raise these types; ``register_error_handlers`` in
``app/utils/errors.py`` maps each one to a single HTTP status and error
code, so blueprints never translate exceptions themselves.

Usage:
    from app.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="Project", resource_id=42)
    raise InvalidTransitionError("accept", current="working", expected="assigned")
"""


class AuthenticationError(Exception):
    """Raised when no valid caller identity accompanies the request. Maps to 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when the caller is authenticated but may not touch the resource.

    Maps to HTTP 403.

    Args:
        message: Human-readable reason, safe to return to the caller.
    """

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Scenario").
        resource_id: The key that was looked up. Included in the message.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a uniquely-keyed record.

    Maps to HTTP 409.

    Args:
        resource: Entity name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class InvalidTransitionError(Exception):
    """Raised when a state-machine action does not apply to the current state.

    Also raised when a conditional update loses a race (the row no longer
    holds the expected state) and when a test case is recorded before its
    predecessors. Maps to HTTP 409.

    Args:
        action: Name of the attempted action.
        current: State actually observed.
        expected: State the action requires.
        message: Override for the default message.
        details: Extra structured payload.
    """

    def __init__(
        self,
        action: str,
        current: str | None = None,
        expected: str | None = None,
        *,
        message: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.action = action
        self.current = current
        self.expected = expected
        self.details = dict(details or {})
        if current is not None:
            self.details.setdefault("current", current)
        if expected is not None:
            self.details.setdefault("expected", expected)
        if message is None:
            message = (
                f'Invalid transition: current status is "{current}", '
                f'expected "{expected}" to perform "{action}"'
            )
        super().__init__(message)


class ExpiredError(Exception):
    """Raised when a time-limited credential (share link) has lapsed. Maps to 410."""

    def __init__(self, message: str = "Link has expired") -> None:
        super().__init__(message)
