"""Milestone, account and credential endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from fakes import ALICE, BOB, FakeLedger
from poapgate.db.models import UserStats
from poapgate.gamification.milestone_engine import MilestoneEngine
from poapgate.gamification.seed import MILESTONE_SEED_DATA
from poapgate.mirror.store import MirrorStore


class TestMilestones:
    @pytest.mark.asyncio
    async def test_lists_definitions_in_display_order(self, client: AsyncClient) -> None:
        data = (await client.get("/api/v1/milestones")).json()

        slugs = [m["slug"] for m in data["milestones"]]
        assert slugs == [row["slug"] for row in sorted(MILESTONE_SEED_DATA, key=lambda r: r["sort_order"])]
        assert all(m["target"] > 0 for m in data["milestones"])


class TestAccountSummary:
    @pytest.mark.asyncio
    async def test_progress_and_points(self, client: AsyncClient, seeded_store: MirrorStore) -> None:
        await seeded_store.accounts.insert(UserStats(user_address=ALICE, posts_created=5, likes_given=1))
        engine = MilestoneEngine(seeded_store)
        await engine.evaluate(ALICE, "posts")
        await engine.evaluate(ALICE, "likes")

        response = await client.get(f"/api/v1/accounts/{ALICE}")

        assert response.status_code == 200
        data = response.json()
        assert data["counters"] == {"posts": 5, "votes": 0, "likes": 1, "poaps": 0}
        assert data["completed"] == 3
        assert data["total_points"] == await engine.total_points(ALICE)
        posts_25 = next(m for m in data["milestones"] if m["slug"] == "posts_25")
        assert posts_25["progress"] == 20.0
        assert posts_25["completed"] is False

    @pytest.mark.asyncio
    async def test_unknown_account(self, client: AsyncClient) -> None:
        data = (await client.get(f"/api/v1/accounts/{BOB}")).json()
        assert data["total_points"] == 0
        assert data["completed"] == 0

    @pytest.mark.asyncio
    async def test_invalid_address(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/accounts/not-an-address")
        assert response.status_code == 422


class TestCredentialStatus:
    @pytest.mark.asyncio
    async def test_holder(self, client: AsyncClient, ledger: FakeLedger) -> None:
        ledger.grant(ALICE, 2)
        data = (await client.get(f"/api/v1/accounts/{ALICE}/credential")).json()
        assert data == {"user_address": ALICE, "has_credential": True, "poap_count": 2}

    @pytest.mark.asyncio
    async def test_ledger_down_reads_as_no_credential(self, client: AsyncClient, ledger: FakeLedger) -> None:
        ledger.grant(ALICE, 2)
        ledger.unreachable = True
        data = (await client.get(f"/api/v1/accounts/{ALICE}/credential")).json()
        assert data == {"user_address": ALICE, "has_credential": False, "poap_count": None}


class TestSyncCredentials:
    @pytest.mark.asyncio
    async def test_awards_poap_milestones(self, client: AsyncClient, ledger: FakeLedger) -> None:
        ledger.grant(ALICE, 10)

        response = await client.post(f"/api/v1/accounts/{ALICE}/credential/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["poaps_owned"] == 10
        assert [m["slug"] for m in data["milestones_awarded"]] == ["first_poap", "poaps_10"]

        summary = (await client.get(f"/api/v1/accounts/{ALICE}")).json()
        assert summary["counters"]["poaps"] == 10

    @pytest.mark.asyncio
    async def test_ledger_down_is_503(self, client: AsyncClient, ledger: FakeLedger) -> None:
        ledger.unreachable = True
        response = await client.post(f"/api/v1/accounts/{ALICE}/credential/sync")
        assert response.status_code == 503
        assert response.json()["retryable"] is True

    @pytest.mark.asyncio
    async def test_invalid_address(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/accounts/not-an-address/credential/sync")
        assert response.status_code == 422
