"""Error taxonomy for the compliance engine.

- NotFoundError      — a referenced merchant, rule, request or alert does not exist
- ValidationError    — caller-supplied input is malformed
- InvalidStateError  — the operation is not allowed in the entity's current state

Upstream failures during an audit are not wrapped: the original exception is
recorded on the audit and re-raised unchanged.
"""


class ComplianceEngineError(Exception):
    """Base class for all domain errors raised by the engine.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ComplianceEngineError):
    """A referenced resource does not exist.

    Args:
        resource: Resource type name, e.g. "Merchant".
        resource_id: Identifier that was looked up.
        message: Optional override for the default message.
    """

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(message or f"{resource} with ID {resource_id} not found")


class ValidationError(ComplianceEngineError):
    """Caller input failed validation.

    Args:
        message: Description of the problem.
        field: Name of the offending field, when known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidStateError(ComplianceEngineError):
    """The requested operation conflicts with the entity's current state.

    Args:
        message: Description of the rejected operation.
        current_state: The state the entity was found in.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        super().__init__(message)
        self.current_state = current_state
