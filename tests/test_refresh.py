"""
Refresh controller and mutation version tests.

Run with: pytest tests/test_refresh.py -v
"""

import asyncio
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from soulcrush.models.company import Company
from soulcrush.models.errors import ErrorCode, StoreError
from soulcrush.models.status import Status
from soulcrush.services.application_query import ApplicationResponse
from soulcrush.services.refresh import (
    ListState,
    ListStatus,
    MutationKind,
    MutationVersions,
    RefreshController,
    VersionKey,
)


def _response(name, status=Status.TODO):
    return ApplicationResponse(
        id=uuid.uuid4(),
        company=Company.new(name=name, website="https://example.com", ceo="C", industry="Tech"),
        status=status,
        created_at="2026-01-01T00:00:00.000000+00:00",
    )


async def _spin(times=10):
    for _ in range(times):
        await asyncio.sleep(0)


class CountingFetch:
    """Fetch stub returning a fixed list and counting calls."""

    def __init__(self, applications=None):
        self.applications = list(applications or [])
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return list(self.applications)


class GatedFetch:
    """Fetch stub whose calls complete only when released by the test."""

    def __init__(self):
        self.gates: list[asyncio.Event] = []
        self.outcomes: dict[int, object] = {}

    async def __call__(self):
        index = len(self.gates)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def release(self, index, outcome):
        self.outcomes[index] = outcome
        self.gates[index].set()


class TestMutationVersions:
    """Per-kind counters and the derived key."""

    def test_starts_at_zero(self):
        assert MutationVersions().key == VersionKey(0, 0, 0)

    def test_bump_increments_only_its_kind(self):
        versions = MutationVersions()
        assert versions.bump(MutationKind.DELETE) == VersionKey(0, 1, 0)
        assert versions.bump(MutationKind.DELETE) == VersionKey(0, 2, 0)
        assert versions.bump(MutationKind.UPDATE) == VersionKey(0, 2, 1)
        assert versions.version(MutationKind.CREATE) == 0

    def test_subscribers_see_each_key(self):
        versions = MutationVersions()
        seen = []
        unsubscribe = versions.subscribe(seen.append)

        versions.bump(MutationKind.CREATE)
        versions.bump(MutationKind.UPDATE)
        unsubscribe()
        versions.bump(MutationKind.DELETE)

        assert seen == [VersionKey(1, 0, 0), VersionKey(1, 0, 1)]

    def test_concurrent_bumps_are_not_lost(self):
        versions = MutationVersions()
        seen = []
        versions.subscribe(seen.append)

        with ThreadPoolExecutor(max_workers=6) as pool:
            for kind in MutationKind:
                for _ in range(100):
                    pool.submit(versions.bump, kind)

        assert versions.key == VersionKey(100, 100, 100)
        assert len(seen) == 300
        assert len({key for key in seen}) == 300


class TestRefreshController:
    """Fetch scheduling, coalescing and state handling."""

    @pytest.mark.asyncio
    async def test_loading_until_first_fetch(self):
        fetch = CountingFetch([_response("Acme")])
        refresh = RefreshController(fetch, MutationVersions())
        assert refresh.state.status is ListStatus.LOADING

        async with refresh:
            state = await refresh.settled()

        assert state.status is ListStatus.READY
        assert [a.company.name for a in state.applications] == ["Acme"]
        assert state.key == VersionKey(0, 0, 0)
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_empty_list_is_ready_not_loading(self):
        async with RefreshController(CountingFetch(), MutationVersions()) as refresh:
            state = await refresh.settled()
        assert state.status is ListStatus.READY
        assert state.applications == ()

    @pytest.mark.asyncio
    async def test_refetches_after_each_mutation(self):
        versions = MutationVersions()
        fetch = CountingFetch()
        async with RefreshController(fetch, versions) as refresh:
            await refresh.settled()
            versions.bump(MutationKind.CREATE)
            await refresh.settled()
            versions.bump(MutationKind.UPDATE)
            state = await refresh.settled()

        assert fetch.calls == 3
        assert refresh.fetched_keys == [VersionKey(0, 0, 0), VersionKey(1, 0, 0), VersionKey(1, 0, 1)]
        assert state.key == VersionKey(1, 0, 1)

    @pytest.mark.asyncio
    async def test_no_fetch_without_mutation(self):
        fetch = CountingFetch()
        async with RefreshController(fetch, MutationVersions()) as refresh:
            await refresh.settled()
            await _spin()
            await refresh.settled()
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_bumps_in_one_tick_coalesce_into_one_fetch(self):
        versions = MutationVersions()
        fetch = CountingFetch()
        async with RefreshController(fetch, versions) as refresh:
            await refresh.settled()
            versions.bump(MutationKind.CREATE)
            versions.bump(MutationKind.DELETE)
            versions.bump(MutationKind.UPDATE)
            state = await refresh.settled()

        assert fetch.calls == 2
        assert refresh.fetched_keys == [VersionKey(0, 0, 0), VersionKey(1, 1, 1)]
        assert state.key == VersionKey(1, 1, 1)

    @pytest.mark.asyncio
    async def test_late_older_fetch_does_not_overwrite_newer(self):
        versions = MutationVersions()
        fetch = GatedFetch()
        older = [_response("Older")]
        newer = [_response("Newer")]

        refresh = RefreshController(fetch, versions)
        refresh.start()
        await _spin()
        fetch.release(0, [])
        await _spin()

        versions.bump(MutationKind.CREATE)
        await _spin()
        versions.bump(MutationKind.DELETE)
        await _spin()
        assert len(fetch.gates) == 3

        fetch.release(2, newer)
        await _spin()
        assert refresh.state.applications == tuple(newer)
        assert refresh.state.key == VersionKey(1, 1, 0)

        fetch.release(1, older)
        state = await refresh.settled()
        assert state.applications == tuple(newer)
        assert state.key == VersionKey(1, 1, 0)
        await refresh.close()

    @pytest.mark.asyncio
    async def test_superseded_fetch_finishing_first_is_discarded(self):
        versions = MutationVersions()
        fetch = GatedFetch()

        refresh = RefreshController(fetch, versions)
        refresh.start()
        await _spin()
        fetch.release(0, [])
        await _spin()

        versions.bump(MutationKind.CREATE)
        await _spin()
        versions.bump(MutationKind.CREATE)
        await _spin()

        fetch.release(1, [_response("Stale")])
        await _spin()
        assert refresh.state.applications == ()
        assert refresh.state.key == VersionKey(0, 0, 0)

        current = [_response("Current")]
        fetch.release(2, current)
        state = await refresh.settled()
        assert state.applications == tuple(current)
        await refresh.close()

    @pytest.mark.asyncio
    async def test_fetch_failure_is_error_state(self):
        error = StoreError("Failed to fetch applications: disk I/O error")
        fetch = GatedFetch()
        refresh = RefreshController(fetch, MutationVersions())
        refresh.start()
        await _spin()
        fetch.release(0, error)
        state = await refresh.settled()

        assert state.status is ListStatus.ERROR
        assert state.error is error
        assert state.applications == ()
        await refresh.close()

    @pytest.mark.asyncio
    async def test_stale_failure_is_discarded(self):
        versions = MutationVersions()
        fetch = GatedFetch()
        refresh = RefreshController(fetch, versions)
        refresh.start()
        await _spin()
        versions.bump(MutationKind.UPDATE)
        await _spin()

        current = [_response("Current")]
        fetch.release(1, current)
        await _spin()
        fetch.release(0, StoreError("late failure"))
        state = await refresh.settled()

        assert state.status is ListStatus.READY
        assert state.applications == tuple(current)
        await refresh.close()

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(self):
        async def broken():
            raise KeyError("boom")

        async with RefreshController(broken, MutationVersions()) as refresh:
            state = await refresh.settled()

        assert state.status is ListStatus.ERROR
        assert state.error.code is ErrorCode.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_reload_after_error(self):
        fetch = GatedFetch()
        refresh = RefreshController(fetch, MutationVersions())
        refresh.start()
        await _spin()
        fetch.release(0, StoreError("locked"))
        assert (await refresh.settled()).status is ListStatus.ERROR

        refresh.reload()
        await _spin()
        fetch.release(1, [])
        state = await refresh.settled()
        assert state.status is ListStatus.READY
        assert refresh.fetched_keys == [VersionKey(0, 0, 0), VersionKey(0, 0, 0)]
        await refresh.close()

    @pytest.mark.asyncio
    async def test_reload_requires_start(self):
        refresh = RefreshController(CountingFetch(), MutationVersions())
        with pytest.raises(RuntimeError):
            refresh.reload()

    @pytest.mark.asyncio
    async def test_listeners_receive_new_states(self):
        versions = MutationVersions()
        seen: list[ListState] = []
        refresh = RefreshController(CountingFetch(), versions)
        remove = refresh.on_change(seen.append)

        async with refresh:
            await refresh.settled()
            versions.bump(MutationKind.CREATE)
            await refresh.settled()
            remove()
            versions.bump(MutationKind.CREATE)
            await refresh.settled()

        assert [state.key for state in seen] == [VersionKey(0, 0, 0), VersionKey(1, 0, 0)]

    @pytest.mark.asyncio
    async def test_bumps_from_worker_threads(self):
        versions = MutationVersions()
        fetch = CountingFetch()
        async with RefreshController(fetch, versions) as refresh:
            await refresh.settled()
            await asyncio.gather(*(
                asyncio.to_thread(versions.bump, MutationKind.CREATE) for _ in range(20)
            ))
            state = await refresh.settled()

        assert state.key == VersionKey(20, 0, 0)
        assert refresh.fetched_keys[-1] == VersionKey(20, 0, 0)
        assert len(refresh.fetched_keys) == len(set(refresh.fetched_keys))

    @pytest.mark.asyncio
    async def test_close_stops_refetching(self):
        versions = MutationVersions()
        fetch = CountingFetch()
        async with RefreshController(fetch, versions) as refresh:
            await refresh.settled()

        versions.bump(MutationKind.DELETE)
        await _spin()
        assert fetch.calls == 1


class TestOptimisticStatus:
    """Status overlay shown before the write is confirmed by a fetch."""

    @pytest.mark.asyncio
    async def test_overlay_until_next_fetch(self):
        application = _response("Acme")
        versions = MutationVersions()
        fetch = CountingFetch([application])

        async with RefreshController(fetch, versions) as refresh:
            await refresh.settled()
            refresh.apply_optimistic_status(application.id, Status.PENDING)
            assert refresh.state.applications[0].status is Status.PENDING

            fetch.applications = [application.with_status(Status.ACCEPTED)]
            versions.bump(MutationKind.UPDATE)
            state = await refresh.settled()

        assert state.applications[0].status is Status.ACCEPTED

    @pytest.mark.asyncio
    async def test_revert(self):
        application = _response("Acme")
        async with RefreshController(CountingFetch([application]), MutationVersions()) as refresh:
            await refresh.settled()
            refresh.apply_optimistic_status(application.id, Status.REJECTED)
            refresh.revert_optimistic_status(application.id, Status.REJECTED)
            assert refresh.state.applications[0].status is Status.TODO

    @pytest.mark.asyncio
    async def test_revert_keeps_newer_status(self):
        application = _response("Acme")
        async with RefreshController(CountingFetch([application]), MutationVersions()) as refresh:
            await refresh.settled()
            refresh.apply_optimistic_status(application.id, Status.PENDING)
            refresh.apply_optimistic_status(application.id, Status.ACCEPTED)

            refresh.revert_optimistic_status(application.id, Status.PENDING)
            assert refresh.state.applications[0].status is Status.ACCEPTED

            refresh.revert_optimistic_status(application.id, Status.ACCEPTED)
            assert refresh.state.applications[0].status is Status.TODO

    @pytest.mark.asyncio
    async def test_overlay_ignored_while_loading(self):
        refresh = RefreshController(CountingFetch(), MutationVersions())
        refresh.apply_optimistic_status(uuid.uuid4(), Status.PENDING)
        assert refresh.state == ListState.loading()
