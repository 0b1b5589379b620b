"""Shared FastAPI dependencies."""

from fastapi import Depends

from poapgate.config import get_settings
from poapgate.database import get_session_factory
from poapgate.gamification.milestone_engine import MilestoneEngine
from poapgate.gating.oracle import EligibilityOracle
from poapgate.intents.pipeline import IntentPipeline
from poapgate.ledger.contracts import PoapContract, VotingContract
from poapgate.ledger_client import get_poap_contract, get_voting_contract
from poapgate.mirror.store import MirrorStore
from poapgate.redis_client import get_redis_or_none


def get_store() -> MirrorStore:
    """Mirror store over the app's session factory and (optional) Redis."""
    return MirrorStore(
        get_session_factory(),
        redis=get_redis_or_none(),
        post_channel=get_settings().post_stream_channel,
    )


def get_milestone_engine(store: MirrorStore = Depends(get_store)) -> MilestoneEngine:  # noqa: B008
    return MilestoneEngine(store)


def get_oracle(poap: PoapContract = Depends(get_poap_contract)) -> EligibilityOracle:  # noqa: B008
    return EligibilityOracle(poap)


def get_pipeline(
    store: MirrorStore = Depends(get_store),  # noqa: B008
    oracle: EligibilityOracle = Depends(get_oracle),  # noqa: B008
    poap: PoapContract = Depends(get_poap_contract),  # noqa: B008
    voting: VotingContract = Depends(get_voting_contract),  # noqa: B008
) -> IntentPipeline:
    return IntentPipeline(
        store,
        oracle,
        poap,
        voting,
        tally_max_attempts=get_settings().tally_max_attempts,
    )
