"""
Outcomes - the classified result of every repository operation.

Repository calls never raise for expected conditions. They return a
RepositoryResult, a (outcome, value) pair where value is only set on
success:

    outcome, login = await repo.read_resource("Login", login_id)
    if not outcome.ok:
        return outcome

Callers that skip the check and need the value use assert_ok() or
RepositoryResult.unwrap(). Those raise OutcomeAssertionError, which
signals a broken contract rather than a business-rule rejection.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple


class OutcomeKind(str, Enum):
    """Classification of an outcome."""

    OK = "ok"
    CREATED = "created"

    VALIDATION_ERROR = "validation-error"
    NOT_FOUND = "not-found"
    GONE = "gone"
    INVALID_REFERENCE = "invalid-reference"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid-state"
    PROFILE_NOT_FOUND = "profile-not-found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad-request"


# HTTP status for each outcome kind
STATUS_CODES: dict[OutcomeKind, int] = {
    OutcomeKind.OK: 200,
    OutcomeKind.CREATED: 201,
    OutcomeKind.VALIDATION_ERROR: 400,
    OutcomeKind.INVALID_REFERENCE: 400,
    OutcomeKind.INVALID_STATE: 400,
    OutcomeKind.PROFILE_NOT_FOUND: 400,
    OutcomeKind.BAD_REQUEST: 400,
    OutcomeKind.UNAUTHORIZED: 401,
    OutcomeKind.FORBIDDEN: 403,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.CONFLICT: 409,
    OutcomeKind.GONE: 410,
}

# FHIR issue-type code for each failure kind
ISSUE_CODES: dict[OutcomeKind, str] = {
    OutcomeKind.VALIDATION_ERROR: "structure",
    OutcomeKind.INVALID_REFERENCE: "invalid",
    OutcomeKind.INVALID_STATE: "invalid",
    OutcomeKind.PROFILE_NOT_FOUND: "invalid",
    OutcomeKind.BAD_REQUEST: "invalid",
    OutcomeKind.UNAUTHORIZED: "login",
    OutcomeKind.FORBIDDEN: "forbidden",
    OutcomeKind.NOT_FOUND: "not-found",
    OutcomeKind.CONFLICT: "conflict",
    OutcomeKind.GONE: "deleted",
}


@dataclass(frozen=True)
class Outcome:
    """A classified result with diagnostics."""

    kind: OutcomeKind
    message: str = ""
    expression: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.OK, OutcomeKind.CREATED)

    @property
    def status(self) -> int:
        return STATUS_CODES[self.kind]

    @property
    def retryable(self) -> bool:
        """Only lost concurrency races may be retried after re-reading state."""
        return self.kind == OutcomeKind.CONFLICT

    def to_operation_outcome(self) -> dict[str, Any]:
        """Render as a FHIR OperationOutcome resource."""
        issue: dict[str, Any] = {
            "severity": "information" if self.ok else "error",
            "code": ISSUE_CODES.get(self.kind, "informational"),
            "details": {"text": self.message or self.kind.value},
        }
        if self.expression:
            issue["expression"] = [self.expression]
        return {
            "resourceType": "OperationOutcome",
            "id": self.kind.value,
            "issue": [issue],
        }


class OutcomeAssertionError(Exception):
    """A caller used a value without checking that its outcome succeeded."""

    def __init__(self, outcome: Outcome):
        super().__init__(f"{outcome.kind.value}: {outcome.message}")
        self.outcome = outcome


class RepositoryResult(NamedTuple):
    """The (outcome, value) pair returned by every repository operation."""

    outcome: Outcome
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.outcome.ok

    def unwrap(self) -> Any:
        """Return the value, or raise OutcomeAssertionError if the outcome failed."""
        assert_ok(self.outcome)
        return self.value


def assert_ok(outcome: Outcome) -> None:
    """Raise OutcomeAssertionError unless the outcome is a success."""
    if not outcome.ok:
        raise OutcomeAssertionError(outcome)


def failure(outcome: Outcome) -> RepositoryResult:
    """Wrap a failed outcome as a result with no value."""
    return RepositoryResult(outcome, None)


# =============================================================================
# Constructors
# =============================================================================


def all_ok() -> Outcome:
    return Outcome(OutcomeKind.OK, "All OK")


def created() -> Outcome:
    return Outcome(OutcomeKind.CREATED, "Created")


def not_found(message: str = "Not found") -> Outcome:
    return Outcome(OutcomeKind.NOT_FOUND, message)


def gone(message: str = "Deleted") -> Outcome:
    return Outcome(OutcomeKind.GONE, message)


def validation_error(message: str, expression: str | None = None) -> Outcome:
    return Outcome(OutcomeKind.VALIDATION_ERROR, message, expression)


def invalid_reference(message: str = "Invalid reference") -> Outcome:
    return Outcome(OutcomeKind.INVALID_REFERENCE, message)


def conflict(message: str = "Resource version conflict") -> Outcome:
    return Outcome(OutcomeKind.CONFLICT, message)


def invalid_state(message: str) -> Outcome:
    return Outcome(OutcomeKind.INVALID_STATE, message)


def profile_not_found(message: str = "Profile not found") -> Outcome:
    return Outcome(OutcomeKind.PROFILE_NOT_FOUND, message)


def unauthorized(message: str = "Unauthorized") -> Outcome:
    return Outcome(OutcomeKind.UNAUTHORIZED, message)


def forbidden(message: str = "Forbidden") -> Outcome:
    return Outcome(OutcomeKind.FORBIDDEN, message)


def bad_request(message: str, expression: str | None = None) -> Outcome:
    return Outcome(OutcomeKind.BAD_REQUEST, message, expression)
