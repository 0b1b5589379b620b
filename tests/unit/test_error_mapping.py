"""Error taxonomy and its HTTP mapping."""

from __future__ import annotations

import pytest

from poapgate.errors import (
    DuplicateActionError,
    LedgerQueryError,
    MirrorWriteError,
    NotEligibleError,
    PlatformError,
    ProposalClosedError,
    ProposalNotConfirmedError,
    ProposalRejectedError,
    RecordNotFoundError,
    TransactionSubmissionError,
    UniqueConstraintViolation,
)
from poapgate.middleware.error_handler import status_for


class TestErrorTaxonomy:
    def test_default_message_is_user_message(self) -> None:
        assert str(NotEligibleError()) == NotEligibleError.user_message

    def test_submission_error_keeps_cause(self) -> None:
        exc = TransactionSubmissionError("User rejected the request")
        assert exc.cause == "User rejected the request"
        assert "User rejected the request" in str(exc)
        assert exc.retryable is True

    def test_unique_violation_names_collection(self) -> None:
        exc = UniqueConstraintViolation("votes", "UNIQUE constraint failed")
        assert exc.collection == "votes"
        assert "votes" in str(exc)

    def test_retryable_flags(self) -> None:
        assert LedgerQueryError().retryable is True
        assert ProposalNotConfirmedError().retryable is True
        assert ProposalRejectedError().retryable is False
        assert NotEligibleError().retryable is False
        assert DuplicateActionError().retryable is False


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (NotEligibleError(), 403),
            (RecordNotFoundError(), 404),
            (DuplicateActionError(), 409),
            (UniqueConstraintViolation("likes"), 409),
            (ProposalClosedError(), 409),
            (ProposalNotConfirmedError(), 409),
            (ProposalRejectedError(), 409),
            (TransactionSubmissionError("rejected"), 502),
            (LedgerQueryError(), 503),
            (MirrorWriteError(), 500),
            (PlatformError(), 500),
        ],
    )
    def test_status_for(self, exc: PlatformError, status: int) -> None:
        assert status_for(exc) == status
