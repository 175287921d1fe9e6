"""Engine error types. The dispatcher turns these into failed EngineResults."""

from __future__ import annotations


class EngineError(Exception):
    code = "engine_error"


class InvalidRequest(EngineError, ValueError):
    """Malformed request: rejected before any dice are drawn."""

    code = "invalid_request"


class DomainViolation(EngineError):
    """Request is well-formed but inconsistent with the character's current state."""

    code = "domain_violation"


class CharacterNotFound(EngineError, LookupError):
    code = "not_found"


class PersistenceFailure(EngineError):
    """The character service failed to save; local state was rolled back."""

    code = "persistence_failure"
