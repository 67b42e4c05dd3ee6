"""Tests for waypoint.gates.onboarding — cache/remote reconciliation."""

import anyio
import pytest

from waypoint.errors import ConfigurationError, OnboardingError
from waypoint.gates.onboarding import (
    OnboardingGate,
    OnboardingSource,
    OnboardingState,
    OnboardingStatus,
    OnboardingStore,
)
from waypoint.testing import MemoryOnboardingStore


def _gate(store: MemoryOnboardingStore, **kwargs: object) -> OnboardingGate:
    return OnboardingGate(store, clock=lambda: 1234.0, **kwargs)  # type: ignore[arg-type]


async def _wait_for_fetch(store: MemoryOnboardingStore, count: int = 1) -> None:
    while len(store.fetches) < count:
        await anyio.sleep(0)


class _ReadOnlyCacheStore(MemoryOnboardingStore):
    def set_cached_completion(self, completed: bool) -> None:
        raise OSError("cache is read-only")


class TestBinding:
    def test_starts_loading(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=True))
        assert gate.state.status is OnboardingStatus.LOADING
        assert gate.user_id is None

    def test_cached_hint(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=True))
        gate.bind_user("u1")
        assert gate.state == OnboardingState(OnboardingStatus.COMPLETE, OnboardingSource.CACHE)

    def test_cached_incomplete(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=False))
        gate.bind_user("u1")
        assert gate.state.status is OnboardingStatus.INCOMPLETE

    def test_no_cache_stays_loading(self) -> None:
        gate = _gate(MemoryOnboardingStore())
        gate.bind_user("u1")
        assert gate.state.status is OnboardingStatus.LOADING

    def test_rebinding_same_user_is_noop(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=True))
        seen: list[OnboardingState] = []
        gate.subscribe(seen.append)
        gate.bind_user("u1")
        gate.bind_user("u1")
        assert len(seen) == 1

    def test_sign_out_resets_to_loading(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=True))
        gate.bind_user("u1")
        gate.bind_user(None)
        assert gate.state.status is OnboardingStatus.LOADING

    def test_store_satisfies_protocol(self) -> None:
        assert isinstance(MemoryOnboardingStore(), OnboardingStore)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError, match="positive"):
            OnboardingGate(MemoryOnboardingStore(), timeout=0)


class TestCheck:
    @pytest.mark.anyio
    async def test_without_user(self) -> None:
        store = MemoryOnboardingStore()
        gate = _gate(store)
        state = await gate.check()
        assert state.status is OnboardingStatus.LOADING
        assert store.fetches == []

    @pytest.mark.anyio
    async def test_remote_overrides_cache(self) -> None:
        store = MemoryOnboardingStore(cached=False, remote={"u1": True})
        gate = _gate(store)
        seen: list[OnboardingState] = []
        gate.subscribe(seen.append)
        gate.bind_user("u1")

        state = await gate.check()

        assert state == OnboardingState(OnboardingStatus.COMPLETE, OnboardingSource.REMOTE, 1234.0)
        assert store.cached is True
        assert [s.source for s in seen] == [OnboardingSource.CACHE, OnboardingSource.REMOTE]

    @pytest.mark.anyio
    async def test_remote_value_is_final_for_session(self) -> None:
        store = MemoryOnboardingStore(remote={"u1": False})
        gate = _gate(store)
        gate.bind_user("u1")
        await gate.check()
        store.remote["u1"] = True
        state = await gate.check()
        assert state.status is OnboardingStatus.INCOMPLETE
        assert store.fetches == ["u1"]

    @pytest.mark.anyio
    async def test_concurrent_checks_share_one_fetch(self) -> None:
        release = anyio.Event()
        store = MemoryOnboardingStore(remote={"u1": True}, release=release)
        gate = _gate(store)
        gate.bind_user("u1")
        results: list[OnboardingState] = []

        async def run_check() -> None:
            results.append(await gate.check())

        async with anyio.create_task_group() as tg:
            tg.start_soon(run_check)
            tg.start_soon(run_check)
            await _wait_for_fetch(store)
            assert gate.fetching is True
            release.set()

        assert store.fetches == ["u1"]
        assert [r.status for r in results] == [OnboardingStatus.COMPLETE] * 2
        assert gate.fetching is False


class TestFailures:
    @pytest.mark.anyio
    async def test_failure_keeps_cached_value(self, caplog: pytest.LogCaptureFixture) -> None:
        store = MemoryOnboardingStore(cached=True, error=ConnectionError("offline"))
        gate = _gate(store)
        gate.bind_user("u1")
        seen: list[OnboardingState] = []
        gate.subscribe(seen.append)

        state = await gate.check()

        assert state.status is OnboardingStatus.COMPLETE
        assert state.source is OnboardingSource.CACHE
        assert state.last_checked_at == 1234.0
        assert seen == []
        assert "offline" in caplog.text

    @pytest.mark.anyio
    async def test_failure_is_retried_on_next_check(self) -> None:
        store = MemoryOnboardingStore(cached=False, remote={"u1": True}, error=ConnectionError())
        gate = _gate(store)
        gate.bind_user("u1")
        await gate.check()
        store.error = None

        state = await gate.check()

        assert state.status is OnboardingStatus.COMPLETE
        assert state.source is OnboardingSource.REMOTE
        assert store.fetches == ["u1", "u1"]

    @pytest.mark.anyio
    async def test_failure_without_cache_settles_incomplete(self) -> None:
        store = MemoryOnboardingStore(error=TimeoutError())
        gate = _gate(store)
        gate.bind_user("u1")
        state = await gate.check()
        assert state.status is OnboardingStatus.INCOMPLETE
        assert state.source is OnboardingSource.CACHE

    @pytest.mark.anyio
    async def test_timeout(self, caplog: pytest.LogCaptureFixture) -> None:
        store = MemoryOnboardingStore(cached=True, release=anyio.Event())
        gate = _gate(store, timeout=0.05)
        gate.bind_user("u1")

        with anyio.fail_after(2):
            state = await gate.check()

        assert state.status is OnboardingStatus.COMPLETE
        assert state.source is OnboardingSource.CACHE
        assert gate.fetching is False
        assert "timed out" in caplog.text


    @pytest.mark.anyio
    async def test_cache_write_failure_keeps_remote_value(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        store = _ReadOnlyCacheStore(cached=None, remote={"u1": True})
        gate = _gate(store)
        gate.bind_user("u1")

        state = await gate.check()

        assert state == OnboardingState(OnboardingStatus.COMPLETE, OnboardingSource.REMOTE, 1234.0)
        assert store.cached is None
        assert "Could not cache onboarding status" in caplog.text

    @pytest.mark.anyio
    async def test_failing_listener_does_not_stop_others(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        gate = _gate(MemoryOnboardingStore(cached=None, remote={"u1": True}))
        gate.bind_user("u1")
        seen: list[OnboardingState] = []

        def broken(_state: OnboardingState) -> None:
            raise RuntimeError("listener exploded")

        gate.subscribe(broken)
        gate.subscribe(seen.append)

        state = await gate.check()

        assert state.status is OnboardingStatus.COMPLETE
        assert seen == [state]
        assert "listener exploded" in caplog.text


class TestSettle:
    def test_loading_becomes_incomplete(self) -> None:
        gate = _gate(MemoryOnboardingStore())
        state = gate.settle()
        assert state == OnboardingState(OnboardingStatus.INCOMPLETE, OnboardingSource.CACHE, 1234.0)

    def test_known_status_is_kept(self) -> None:
        gate = _gate(MemoryOnboardingStore(cached=True))
        gate.bind_user("u1")
        assert gate.settle().status is OnboardingStatus.COMPLETE


class TestUserChanges:
    @pytest.mark.anyio
    async def test_cache_not_trusted_after_sign_out(self) -> None:
        store = MemoryOnboardingStore(remote={"u1": True, "u2": False})
        gate = _gate(store)
        gate.bind_user("u1")
        await gate.check()
        assert store.cached is True

        gate.bind_user(None)
        gate.bind_user("u2")
        assert gate.state.status is OnboardingStatus.LOADING

        state = await gate.check()
        assert state.status is OnboardingStatus.INCOMPLETE
        assert store.cached is False

    @pytest.mark.anyio
    async def test_superseded_fetch_is_discarded(self) -> None:
        release = anyio.Event()
        store = MemoryOnboardingStore(remote={"u1": True}, release=release)
        gate = _gate(store)
        gate.bind_user("u1")

        async with anyio.create_task_group() as tg:
            tg.start_soon(gate.check)
            await _wait_for_fetch(store)
            gate.bind_user("u2")
            release.set()

        assert gate.user_id == "u2"
        assert gate.state.status is OnboardingStatus.LOADING
        assert store.cached is None


class TestComplete:
    @pytest.mark.anyio
    async def test_requires_user(self) -> None:
        gate = _gate(MemoryOnboardingStore())
        with pytest.raises(OnboardingError):
            await gate.complete()

    @pytest.mark.anyio
    async def test_marks_complete(self) -> None:
        store = MemoryOnboardingStore(cached=False)
        gate = _gate(store)
        gate.bind_user("u1")
        seen: list[OnboardingState] = []
        gate.subscribe(seen.append)

        state = await gate.complete()

        assert state == OnboardingState(OnboardingStatus.COMPLETE, OnboardingSource.REMOTE, 1234.0)
        assert store.saves == [("u1", True)]
        assert store.cached is True
        assert seen[-1].status is OnboardingStatus.COMPLETE

    @pytest.mark.anyio
    async def test_store_errors_propagate(self) -> None:
        store = MemoryOnboardingStore(cached=False, error=RuntimeError("write failed"))
        gate = _gate(store)
        gate.bind_user("u1")
        with pytest.raises(RuntimeError, match="write failed"):
            await gate.complete()
        assert gate.state.status is OnboardingStatus.INCOMPLETE

    @pytest.mark.anyio
    @pytest.mark.anyio
    async def test_cache_write_failure_still_completes(self) -> None:
        store = _ReadOnlyCacheStore(cached=False)
        gate = _gate(store)
        gate.bind_user("u1")

        state = await gate.complete()

        assert state.status is OnboardingStatus.COMPLETE
        assert store.saves == [("u1", True)]

    async def test_in_flight_fetch_cannot_undo_completion(self) -> None:
        release = anyio.Event()
        store = MemoryOnboardingStore(cached=False, remote={"u1": False}, release=release)
        gate = _gate(store)
        gate.bind_user("u1")

        async with anyio.create_task_group() as tg:
            tg.start_soon(gate.check)
            await _wait_for_fetch(store)
            await gate.complete()
            release.set()

        assert gate.state.status is OnboardingStatus.COMPLETE
        assert store.cached is True
