"""Error taxonomy for the POI step planner."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    PARAMETER_VALIDATION = "parameter_validation"
    TRANSPORT = "transport"
    FORMAT = "format"
    SEMANTIC_VALIDATION = "semantic_validation"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    NO_CANDIDATES = "no_candidates"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class PlannerError(Exception):
    """Base error; ``kind`` classifies the failure for diagnostics and fallback."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


class ParameterValidationError(PlannerError):
    kind = ErrorKind.PARAMETER_VALIDATION


class GeoIndexError(PlannerError):
    kind = ErrorKind.TRANSPORT


class ReasoningServiceError(PlannerError):
    kind = ErrorKind.TRANSPORT


class ResponseFormatError(PlannerError):
    kind = ErrorKind.FORMAT


class ResponseValidationError(PlannerError):
    kind = ErrorKind.SEMANTIC_VALIDATION

    def __init__(self, message: str, errors: List[Dict[str, Any]]) -> None:
        super().__init__(message, {"errors": errors})
        self.errors = errors


class ReferentialIntegrityError(PlannerError):
    kind = ErrorKind.REFERENTIAL_INTEGRITY


class NoCandidatesError(PlannerError):
    kind = ErrorKind.NO_CANDIDATES


class TierUnavailableError(PlannerError):
    kind = ErrorKind.UNAVAILABLE


class RequestCancelledError(PlannerError):
    kind = ErrorKind.CANCELLED


class InternalTierError(PlannerError):
    kind = ErrorKind.INTERNAL


class WorkflowExhaustedError(PlannerError):
    """Every tier failed (or fallback was disabled); keeps the first failure's kind."""

    def __init__(self, failures: List[tuple[str, PlannerError]]) -> None:
        first_tier, first = failures[0]
        super().__init__(
            f"all workflow tiers failed; first failure in {first_tier}: {first.message}",
            {"failures": [{"tier": tier, **err.to_dict()} for tier, err in failures]},
        )
        self.kind = first.kind
        self.failures = failures
