# ops_core/exceptions.py

"""
Domain exceptions raised by the services and the advancement engine.

Services raise these; the DRF exception handler in ops_core.api_errors
maps them to HTTP responses in one place:

    NotFound        -> 404
    ValidationError -> 400 (carries every violation, not just the first)
    Conflict        -> 409
"""

from typing import Any, Dict, List, Optional


class OpsError(Exception):
    """Base class for all domain errors."""


class NotFound(OpsError):
    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id!r}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(OpsError):
    """
    Input was well-formed but broke a business rule.

    violations is a list of dicts, each with at least a "message" key.
    Action checks also fill in action_id, label and code.
    """

    def __init__(self, message: str, violations: Optional[List[Dict[str, Any]]] = None):
        self.violations = list(violations or [])
        super().__init__(message)

    @property
    def messages(self) -> List[str]:
        return [v.get("message", "") for v in self.violations]


class Conflict(OpsError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(message)
