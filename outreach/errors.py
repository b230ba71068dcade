"""
Exceptions raised by the lead outreach engine.

Every error carries a human-readable message suitable for display to the
operator; subclasses add the attributes a caller needs to react.
"""

from typing import List, Optional


class OutreachError(RuntimeError):
    """Base class for all engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFound(OutreachError):
    """
    Raised when a lead or template id does not exist.

    Attributes:
        entity: Kind of record looked up ("lead", "template")
        entity_id: The id that was not found
    """

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(OutreachError):
    """
    Raised when input fails validation.

    Attributes:
        errors: Individual validation messages
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class ParseError(OutreachError):
    """Raised when a stored email payload is not valid JSON."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Cannot parse {field}: {reason}")
        self.field = field
        self.reason = reason


class UpstreamError(OutreachError):
    """
    Raised when the data store or file storage call fails.

    Attributes:
        operation: Name of the store operation that failed
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
