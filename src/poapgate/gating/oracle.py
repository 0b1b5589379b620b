"""Credential gate: does an account currently hold a POAP?"""

from __future__ import annotations

import structlog

from poapgate.ledger.contracts import PoapContract

logger = structlog.get_logger()


class EligibilityOracle:
    """Answers ownership questions from the ledger, failing closed.

    Holds no state between calls, never writes to the mirror store and never
    raises: any failure to read the ledger is a "no".
    """

    def __init__(self, poap: PoapContract) -> None:
        self.poap = poap

    async def has_credential(self, address: str) -> bool:
        """True only if the ledger positively confirms ownership."""
        if not address:
            return False
        try:
            return await self.poap.has_poap(address) is True
        except Exception as exc:
            logger.warning(
                "eligibility_check_failed",
                address=address,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

    async def credential_count(self, address: str) -> int | None:
        """POAP balance, or None when the ledger cannot be read."""
        if not address:
            return None
        try:
            return await self.poap.get_balance(address)
        except Exception as exc:
            logger.warning(
                "credential_count_failed",
                address=address,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None
