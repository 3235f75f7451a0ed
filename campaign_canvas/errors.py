"""
Shared exception hierarchy for the campaign canvas library.
"""

from typing import Optional


class CanvasError(Exception):
    """Base class for all campaign canvas errors."""


class StructuralIntegrityError(CanvasError):
    """Raised when the node/edge graph violates the workflow forest shape."""


class NotFoundError(CanvasError):
    """Raised when a conversion is asked to build a node absent from the canvas."""


class PersistenceError(CanvasError):
    """Raised when the workflow store rejects or fails a call."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
