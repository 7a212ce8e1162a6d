"""Tests for RemoteConfigClient: fallback, TTL, refresh and notifications"""

import asyncio
from typing import List, Optional

import pytest

from abtest_remote_config import (
    ABTestConfiguration,
    BackendFetchFailed,
    BackendUnavailableSignal,
    ClientSettings,
    ClientState,
    ConfigUpdate,
    FetchStatus,
    InMemoryRemoteConfigBackend,
    RemoteConfigClient,
    VariantResult,
)
from abtest_remote_config.client import variant_bucket


def test_defaults_served_before_any_fetch(client: RemoteConfigClient) -> None:
    result = client.get_string(ABTestConfiguration.BUTTON_COLOR)
    assert result == VariantResult(value="blue", variant_name="control", experiment_id=None)
    assert client.state is ClientState.UNINITIALIZED


def test_every_descriptor_answers_before_any_fetch(client: RemoteConfigClient) -> None:
    assert client.get_string(ABTestConfiguration.BUTTON_TEXT).value == "Get Started"
    assert client.get_string(ABTestConfiguration.WELCOME_MESSAGE).value == "Welcome to our app!"
    assert client.get_bool(ABTestConfiguration.FEATURE_ENABLED).value is False
    assert client.get_int(ABTestConfiguration.MAX_ITEMS).value == 10


def test_client_configures_backend_settings(backend: InMemoryRemoteConfigBackend) -> None:
    client = RemoteConfigClient(backend, ClientSettings(fetch_timeout_seconds=12))
    assert client.ttl_seconds == 3600
    assert backend.config_settings.minimum_fetch_interval == 3600
    assert backend.config_settings.fetch_timeout == 12


def test_development_mode_shortens_ttl(backend: InMemoryRemoteConfigBackend) -> None:
    client = RemoteConfigClient(backend, ClientSettings(development_mode=True))
    assert client.ttl_seconds == 60
    assert backend.config_settings.minimum_fetch_interval == 60


@pytest.mark.asyncio
async def test_backend_unreachable_serves_defaults(client, backend) -> None:
    backend.set_remote_value("button_color", "red")
    backend.fetch_error = ConnectionError("backend down")

    status = await client.start()

    assert status is None
    assert client.fetch_failure_count == 1
    assert isinstance(client.last_fetch_error, BackendFetchFailed)
    assert "backend down" in client.last_fetch_error.reason
    assert client.state is ClientState.UNINITIALIZED

    result = client.get_string(ABTestConfiguration.BUTTON_COLOR)
    assert result == VariantResult(value="blue", variant_name="control", experiment_id=None)

    # The stale cache schedules a retry; it fails too and changes nothing
    await client.wait_for_pending_fetch()
    assert client.fetch_failure_count == 2
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "blue"
    await client.wait_for_pending_fetch()


@pytest.mark.asyncio
async def test_remote_value_gets_variant_and_experiment(client, backend) -> None:
    backend.set_remote_value("button_color", "red")

    status = await client.start()
    result = client.get_string(ABTestConfiguration.BUTTON_COLOR)

    assert status is FetchStatus.FETCHED_FROM_REMOTE
    assert client.state is ClientState.CACHED
    assert result.value == "red"
    assert result.variant_name == f"variant_{variant_bucket('red')}"
    assert result.experiment_id == "exp_button_color"


@pytest.mark.asyncio
async def test_getter_is_idempotent(client, backend) -> None:
    backend.set_remote_value("welcome_message", "Hello there")
    await client.start()

    first = client.get_string(ABTestConfiguration.WELCOME_MESSAGE)
    second = client.get_string(ABTestConfiguration.WELCOME_MESSAGE)

    assert first == second
    assert first is not second


@pytest.mark.asyncio
async def test_missing_remote_value_falls_back_to_default(client, backend) -> None:
    backend.set_remote_value("button_color", "red")
    await client.start()

    result = client.get_string(ABTestConfiguration.BUTTON_TEXT)
    assert result == VariantResult(value="Get Started", variant_name="control", experiment_id=None)


@pytest.mark.asyncio
async def test_static_value(client, backend) -> None:
    backend.set_static_value("button_text", "Sign up")
    await client.start()

    result = client.get_string(ABTestConfiguration.BUTTON_TEXT)
    assert result == VariantResult(value="Sign up", variant_name="static", experiment_id=None)


@pytest.mark.asyncio
async def test_typed_getters_read_remote_values(client, backend) -> None:
    backend.set_remote_value("feature_enabled", True)
    backend.set_remote_value("max_items", "25")
    await client.start()

    enabled = client.get_bool(ABTestConfiguration.FEATURE_ENABLED)
    max_items = client.get_int(ABTestConfiguration.MAX_ITEMS)

    assert enabled.value is True
    assert enabled.experiment_id == "exp_feature_enabled"
    assert max_items.value == 25
    assert max_items.variant_name in ("variant_0", "variant_1")


@pytest.mark.asyncio
async def test_unreadable_value_falls_back_to_default(client, backend) -> None:
    backend.set_remote_value("max_items", "lots")
    backend.set_remote_value("feature_enabled", "maybe")
    await client.start()

    assert client.get_int(ABTestConfiguration.MAX_ITEMS) == VariantResult(value=10, variant_name="control")
    assert client.get_bool(ABTestConfiguration.FEATURE_ENABLED).value is False


@pytest.mark.asyncio
async def test_unrecognized_source_serves_default(client, backend) -> None:
    backend.set_raw_value("button_color", {"string_value": "green", "source": "experimental"})
    await client.start()

    result = client.get_string(ABTestConfiguration.BUTTON_COLOR)
    assert result == VariantResult(value="blue", variant_name="unknown", experiment_id=None)


@pytest.mark.asyncio
async def test_malformed_payload_keeps_previous_snapshot(client, backend, clock) -> None:
    backend.set_remote_value("button_color", "red")
    await client.start()
    last_fetch = client.last_fetch_time

    backend.set_raw_value("max_items", {"numeric_value": "not-a-number", "source": "remote"})
    clock.advance(10)
    status = await client.refresh()

    assert status is None
    assert client.fetch_failure_count == 1
    assert "malformed" in client.last_fetch_error.reason
    assert client.last_fetch_time == last_fetch
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "red"
    assert client.state is ClientState.CACHED


@pytest.mark.asyncio
async def test_fresh_cache_does_not_fetch(client, backend, clock) -> None:
    await client.start()
    assert backend.fetch_count == 1

    clock.advance(client.ttl_seconds - 1)
    client.get_string(ABTestConfiguration.BUTTON_COLOR)
    client.get_int(ABTestConfiguration.MAX_ITEMS)
    await client.wait_for_pending_fetch()

    assert backend.fetch_count == 1


@pytest.mark.asyncio
async def test_stale_cache_triggers_exactly_one_fetch(client, backend, clock) -> None:
    backend.set_remote_value("button_color", "red")
    await client.start()

    backend.set_remote_value("button_color", "green")
    clock.advance(client.ttl_seconds)

    # Getters answer immediately from the old snapshot
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "red"
    client.get_string(ABTestConfiguration.BUTTON_COLOR)
    client.get_bool(ABTestConfiguration.FEATURE_ENABLED)
    await client.wait_for_pending_fetch()

    assert backend.fetch_count == 2
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "green"
    await client.wait_for_pending_fetch()
    assert backend.fetch_count == 2


@pytest.mark.asyncio
async def test_refresh_bypasses_ttl(client, backend, clock) -> None:
    backend.set_remote_value("button_color", "red")
    await client.start()

    backend.set_remote_value("button_color", "green")
    clock.advance(5)
    status = await client.refresh()

    assert status is FetchStatus.FETCHED_FROM_REMOTE
    assert backend.observed_intervals[-1] == 0
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "green"


@pytest.mark.asyncio
async def test_refresh_restores_ttl_after_success_and_failure(client, backend) -> None:
    await client.start()
    prior = backend.config_settings.minimum_fetch_interval

    await client.refresh()
    assert backend.config_settings.minimum_fetch_interval == prior

    backend.fetch_error = TimeoutError("fetch timed out")
    assert await client.refresh() is None
    assert backend.config_settings.minimum_fetch_interval == prior
    assert client.ttl_seconds == prior


@pytest.mark.asyncio
async def test_concurrent_refreshes_do_not_leak_zero_ttl(settings, clock) -> None:
    backend = InMemoryRemoteConfigBackend(clock=clock, fetch_delay=0.01)
    client = RemoteConfigClient(backend, settings, clock=clock)

    results = await asyncio.gather(client.refresh(), client.refresh(), client.refresh())

    assert all(status is not None for status in results)
    assert backend.observed_intervals == [0, 0, 0]
    assert backend.config_settings.minimum_fetch_interval == client.ttl_seconds


@pytest.mark.asyncio
async def test_refresh_calls_completion_callback(client, backend) -> None:
    outcomes: List[Optional[FetchStatus]] = []

    await client.refresh(on_complete=outcomes.append)
    backend.fetch_error = ConnectionError("offline")
    await client.refresh(on_complete=outcomes.append)

    assert outcomes == [FetchStatus.FETCHED_FROM_REMOTE, None]


@pytest.mark.asyncio
async def test_successful_fetch_notifies_each_subscriber_once(client) -> None:
    first: List[ConfigUpdate] = []
    second: List[ConfigUpdate] = []
    client.subscribe(first.append)
    client.subscribe(second.append)

    await client.start()

    assert len(first) == 1
    assert len(second) == 1
    assert first[0].status is FetchStatus.FETCHED_FROM_REMOTE
    assert first[0].reason == "startup"
    assert first[0].fetched_at == client.last_fetch_time


@pytest.mark.asyncio
async def test_failed_fetch_emits_no_notification(client, backend) -> None:
    updates: List[ConfigUpdate] = []
    client.subscribe(updates.append)

    backend.fetch_error = ConnectionError("offline")
    await client.start()
    await client.refresh()

    assert updates == []


@pytest.mark.asyncio
async def test_notifications_follow_fetch_order(client, clock) -> None:
    updates: List[ConfigUpdate] = []
    client.subscribe(updates.append)

    await client.start()
    clock.advance(1)
    await client.refresh()
    clock.advance(1)
    await client.refresh()

    assert [u.reason for u in updates] == ["startup", "refresh", "refresh"]
    times = [u.fetched_at for u in updates]
    assert times == sorted(times)


@pytest.mark.asyncio
async def test_late_subscriber_gets_no_replay(client) -> None:
    await client.start()

    updates: List[ConfigUpdate] = []
    client.subscribe(updates.append)
    assert updates == []

    await client.refresh()
    assert len(updates) == 1


@pytest.mark.asyncio
async def test_cancelled_subscription_stops_delivery(client) -> None:
    kept: List[ConfigUpdate] = []
    dropped: List[ConfigUpdate] = []
    client.subscribe(kept.append)
    subscription = client.subscribe(dropped.append)

    await client.start()
    subscription.cancel()
    await client.refresh()

    assert len(kept) == 2
    assert len(dropped) == 1
    assert subscription.active is False


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others(client) -> None:
    received: List[ConfigUpdate] = []

    def explode(update: ConfigUpdate) -> None:
        raise RuntimeError("subscriber bug")

    client.subscribe(explode)
    client.subscribe(received.append)

    status = await client.start()

    assert status is FetchStatus.FETCHED_FROM_REMOTE
    assert len(received) == 1


@pytest.mark.asyncio
async def test_failing_dispatcher_does_not_break_refresh(client) -> None:
    received: List[ConfigUpdate] = []
    outcomes: List[Optional[FetchStatus]] = []

    def closed_loop(callback, *args) -> None:
        raise RuntimeError("Event loop is closed")

    client.subscribe(received.append, dispatcher=closed_loop)
    client.subscribe(received.append)

    status = await client.refresh(on_complete=outcomes.append)

    assert status is FetchStatus.FETCHED_FROM_REMOTE
    assert outcomes == [FetchStatus.FETCHED_FROM_REMOTE]
    assert len(received) == 1
    assert client.state is ClientState.CACHED


@pytest.mark.asyncio
async def test_stale_getter_during_refresh_does_not_fetch_again(settings, clock) -> None:
    backend = InMemoryRemoteConfigBackend(clock=clock, fetch_delay=0.05)
    client = RemoteConfigClient(backend, settings, clock=clock)
    await client.start()
    clock.advance(client.ttl_seconds)

    refreshing = asyncio.create_task(client.refresh())
    await asyncio.sleep(0.01)
    assert client.state is ClientState.FETCHING

    client.get_string(ABTestConfiguration.BUTTON_COLOR)
    await refreshing
    await client.wait_for_pending_fetch()

    assert backend.fetch_count == 2
    assert not client.is_stale()


@pytest.mark.asyncio
async def test_large_integer_keeps_precision(client, backend) -> None:
    backend.set_remote_value("max_items", 2**53 + 1)
    await client.start()

    assert client.get_int(ABTestConfiguration.MAX_ITEMS).value == 2**53 + 1


@pytest.mark.asyncio
async def test_remote_fetch_time_comes_from_backend(client, backend, clock) -> None:
    assert client.remote_fetch_time is None

    await client.start()
    fetched_at = clock()
    clock.advance(30)
    await client.start()

    assert backend.last_fetch_time == fetched_at
    assert client.remote_fetch_time == fetched_at
    assert client.last_fetch_time == clock()


@pytest.mark.asyncio
async def test_dispatcher_marshals_delivery(client) -> None:
    loop = asyncio.get_running_loop()
    received: List[ConfigUpdate] = []
    client.subscribe(received.append, dispatcher=loop.call_soon)

    await client.start()
    assert received == []

    await asyncio.sleep(0)
    assert len(received) == 1


@pytest.mark.asyncio
async def test_start_sends_custom_signals(client, backend) -> None:
    await client.start()
    assert backend.custom_signals == {"role": "agent"}


@pytest.mark.asyncio
async def test_custom_signal_failure_is_ignored(client, backend) -> None:
    backend.signals_error = ConnectionError("signals endpoint down")
    backend.set_remote_value("button_color", "red")

    status = await client.start()

    assert status is FetchStatus.FETCHED_FROM_REMOTE
    assert client.fetch_failure_count == 0
    assert isinstance(client.last_signal_error, BackendUnavailableSignal)
    assert "signals endpoint down" in str(client.last_signal_error)
    assert client.get_string(ABTestConfiguration.BUTTON_COLOR).value == "red"


@pytest.mark.asyncio
async def test_second_start_inside_ttl_uses_cached_data(client, backend, clock) -> None:
    await client.start()
    clock.advance(30)

    status = await client.start()

    assert status is FetchStatus.USED_CACHED_DATA
    assert backend.fetch_count == 2


@pytest.mark.asyncio
async def test_trigger_update_notifies_without_fetching(client, backend) -> None:
    updates: List[ConfigUpdate] = []
    client.subscribe(updates.append)
    await client.start()

    client.trigger_update()

    assert [u.reason for u in updates] == ["startup", "manual"]
    assert updates[1].status is None
    assert backend.fetch_count == 1
