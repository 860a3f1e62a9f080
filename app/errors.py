"""Domain errors raised by stores and services.

Routes let these propagate; app/server.py maps them onto HTTP responses
(InvalidRequestError → 400, NotFoundError → 404, ConflictError → 409,
StoreError → 500).
"""

from typing import Any, Optional


class NotFoundError(Exception):
    """A requested entity does not exist (or is not visible to the caller)."""

    def __init__(self, entity: str, identifier: Any = None):
        self.entity = entity
        self.identifier = identifier
        if identifier is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} {identifier} not found"
        super().__init__(message)


class StoreError(Exception):
    """A data-store read or write on the primary path failed."""

    def __init__(self, operation: str, status: int = 500, detail: Optional[str] = None):
        self.operation = operation
        self.status = status
        self.detail = detail or ""
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConflictError(Exception):
    """The request contradicts the entity's current state (e.g. finishing twice)."""


class InvalidRequestError(Exception):
    """The request is missing something the operation needs."""
