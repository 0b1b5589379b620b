"""Process-wide Stacks ledger gateway and contract handles."""

from poapgate.config import Settings
from poapgate.ledger.contracts import PoapContract, VotingContract
from poapgate.ledger.gateway import LedgerGateway

_gateway: LedgerGateway | None = None
_poap: PoapContract | None = None
_voting: VotingContract | None = None


async def init_ledger(settings: Settings) -> None:
    """Create the shared gateway and the two contract wrappers."""
    global _gateway, _poap, _voting  # noqa: PLW0603
    _gateway = LedgerGateway(
        settings.stacks_api_url,
        network=settings.stacks_network,
        timeout=settings.ledger_timeout_seconds,
    )
    _poap = PoapContract(_gateway, settings.poap_contract)
    _voting = VotingContract(_gateway, settings.voting_contract)


async def close_ledger() -> None:
    """Close the gateway's HTTP client."""
    global _gateway, _poap, _voting  # noqa: PLW0603
    if _gateway:
        await _gateway.aclose()
    _gateway = None
    _poap = None
    _voting = None


def get_gateway() -> LedgerGateway:
    if _gateway is None:
        msg = "Ledger not initialized. Call init_ledger() first."
        raise RuntimeError(msg)
    return _gateway


def get_poap_contract() -> PoapContract:
    if _poap is None:
        msg = "Ledger not initialized. Call init_ledger() first."
        raise RuntimeError(msg)
    return _poap


def get_voting_contract() -> VotingContract:
    if _voting is None:
        msg = "Ledger not initialized. Call init_ledger() first."
        raise RuntimeError(msg)
    return _voting
