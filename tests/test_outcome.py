"""
Tests for outcomes and repository results.
"""

import pytest

from carebase.core import outcome as outcomes
from carebase.core.outcome import (
    OutcomeAssertionError,
    OutcomeKind,
    RepositoryResult,
    assert_ok,
    failure,
)


class TestOutcome:
    def test_success_kinds(self):
        assert outcomes.all_ok().ok
        assert outcomes.created().ok
        assert not outcomes.not_found().ok
        assert not outcomes.conflict().ok

    @pytest.mark.parametrize(
        "outcome,status",
        [
            (outcomes.all_ok(), 200),
            (outcomes.created(), 201),
            (outcomes.validation_error("Missing id", "id"), 400),
            (outcomes.invalid_state("Login revoked"), 400),
            (outcomes.profile_not_found(), 400),
            (outcomes.unauthorized(), 401),
            (outcomes.forbidden(), 403),
            (outcomes.not_found(), 404),
            (outcomes.conflict(), 409),
            (outcomes.gone(), 410),
        ],
    )
    def test_status_codes(self, outcome, status):
        assert outcome.status == status

    def test_only_conflict_is_retryable(self):
        assert outcomes.conflict().retryable
        for kind in OutcomeKind:
            if kind != OutcomeKind.CONFLICT:
                assert not outcomes.Outcome(kind).retryable

    def test_operation_outcome(self):
        body = outcomes.invalid_state("Login revoked").to_operation_outcome()

        assert body["resourceType"] == "OperationOutcome"
        assert body["issue"][0]["severity"] == "error"
        assert body["issue"][0]["details"]["text"] == "Login revoked"
        assert "expression" not in body["issue"][0]

    def test_operation_outcome_expression(self):
        body = outcomes.bad_request("Missing login", "login").to_operation_outcome()
        assert body["issue"][0]["expression"] == ["login"]


class TestRepositoryResult:
    def test_unpacks_as_pair(self):
        outcome, value = RepositoryResult(outcomes.all_ok(), "x")
        assert outcome.ok
        assert value == "x"

    def test_unwrap_success(self):
        assert RepositoryResult(outcomes.all_ok(), 42).unwrap() == 42

    def test_unwrap_failure_raises(self):
        result = failure(outcomes.not_found())

        assert result.value is None
        with pytest.raises(OutcomeAssertionError) as exc_info:
            result.unwrap()
        assert exc_info.value.outcome.kind == OutcomeKind.NOT_FOUND

    def test_assert_ok(self):
        assert_ok(outcomes.created())
        with pytest.raises(OutcomeAssertionError):
            assert_ok(outcomes.gone())
