"""Error taxonomy shared by the ledger, mirror and intent layers.

Every user action ends in exactly one terminal outcome. The classes below
are that outcome when it is a failure; ``user_message`` is safe to show to
the account holder and ``retryable`` says whether resubmitting the whole
action can succeed.
"""

from __future__ import annotations


class PlatformError(Exception):
    """Base class for all domain failures."""

    user_message = "The action could not be completed"
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class NotEligibleError(PlatformError):
    """The account does not hold the credential the action requires."""

    user_message = "You need a POAP to perform this action"


class TransactionSubmissionError(PlatformError):
    """The wallet or network refused the ledger transaction."""

    user_message = "The transaction was not submitted"
    retryable = True

    def __init__(self, cause: str) -> None:
        self.cause = cause
        super().__init__(f"{self.user_message}: {cause}")


class DuplicateActionError(PlatformError):
    """The action was already performed by this account."""

    user_message = "You have already done this"


class MirrorWriteError(PlatformError):
    """The mirror store rejected a write; any earlier ledger step stands."""

    user_message = "The action failed to save"


class LedgerQueryError(PlatformError):
    """A read-only ledger query failed; the answer is unknown."""

    user_message = "Could not read ledger state, please retry"
    retryable = True


class UniqueConstraintViolation(PlatformError):
    """Insert rejected by a uniqueness constraint in the mirror store."""

    def __init__(self, collection: str, detail: str = "") -> None:
        self.collection = collection
        super().__init__(f"Unique constraint violated on {collection}{': ' + detail if detail else ''}")


class RecordNotFoundError(PlatformError):
    user_message = "Not found"


class ProposalClosedError(PlatformError):
    user_message = "Voting on this proposal has ended"


class ProposalNotConfirmedError(PlatformError):
    """The proposal's creation transaction has not been confirmed on the ledger yet."""

    user_message = "This proposal is not confirmed on the ledger yet, please retry later"
    retryable = True


class ProposalRejectedError(PlatformError):
    """The proposal's creation transaction was aborted or dropped; it will never exist on the ledger."""

    user_message = "This proposal was rejected by the ledger and cannot receive votes"
