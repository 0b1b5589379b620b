"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from fakes import LEDGER_API, POAP_CONTRACT, VOTING_CONTRACT, FakeLedger, FakeSigner
from poapgate.database import build_engine, build_session_factory, create_schema
from poapgate.gamification.seed import seed_milestones
from poapgate.gating.oracle import EligibilityOracle
from poapgate.intents.pipeline import IntentPipeline
from poapgate.ledger.contracts import PoapContract, VotingContract
from poapgate.ledger.gateway import LedgerGateway
from poapgate.mirror.store import MirrorStore


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest_asyncio.fixture
async def gateway(ledger: FakeLedger) -> AsyncGenerator[LedgerGateway, None]:
    client = httpx.AsyncClient(transport=ledger.transport(), base_url=LEDGER_API)
    gw = LedgerGateway(LEDGER_API, client=client)
    yield gw
    await gw.aclose()


@pytest.fixture
def poap(gateway: LedgerGateway) -> PoapContract:
    return PoapContract(gateway, POAP_CONTRACT)


@pytest.fixture
def voting(gateway: LedgerGateway) -> VotingContract:
    return VotingContract(gateway, VOTING_CONTRACT)


@pytest.fixture
def oracle(poap: PoapContract) -> EligibilityOracle:
    return EligibilityOracle(poap)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so concurrent sessions see each other's commits."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def store(engine: AsyncEngine) -> MirrorStore:
    return MirrorStore(build_session_factory(engine))


@pytest_asyncio.fixture
async def seeded_store(store: MirrorStore) -> MirrorStore:
    await seed_milestones(store)
    return store


@pytest.fixture
def pipeline(
    seeded_store: MirrorStore,
    oracle: EligibilityOracle,
    poap: PoapContract,
    voting: VotingContract,
) -> IntentPipeline:
    return IntentPipeline(seeded_store, oracle, poap, voting)


@pytest_asyncio.fixture
async def client(
    seeded_store: MirrorStore,
    gateway: LedgerGateway,
    poap: PoapContract,
    voting: VotingContract,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the SQLite store and the fake ledger."""
    from poapgate.dependencies import get_store
    from poapgate.ledger_client import get_gateway, get_poap_contract, get_voting_contract
    from poapgate.main import create_app

    app = create_app()
    app.dependency_overrides[get_store] = lambda: seeded_store
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_poap_contract] = lambda: poap
    app.dependency_overrides[get_voting_contract] = lambda: voting

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
