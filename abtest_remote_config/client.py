"""
Remote Config Client - cached, typed access to remote configuration

This module owns the one piece of real state in the package: the activated
snapshot of remote values. It handles

- fetching and activating a new snapshot, no more often than the minimum
  fetch interval (TTL) unless a refresh is forced
- typed getters that always answer from the current snapshot, falling back
  to the descriptor default when the backend has nothing usable
- deriving a variant label and experiment id from where a value came from
- notifying subscribers each time the snapshot is replaced

Design Considerations:
- Getters never touch the network and never raise. A stale cache makes a
  getter schedule a background fetch on the running event loop, but the
  getter itself answers from what it already has
- Fetch failures are logged and counted, never propagated; the previous
  snapshot simply stays active
- Snapshots are replaced by reference, so readers always see either the old
  or the new snapshot in full
- No module-level instance. The application constructs one client and
  passes it to whatever needs it
"""

import asyncio
import hashlib
import logging
import math
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Tuple

from pydantic import ValidationError

from .backends import Clock, RemoteConfigBackend, parse_bool, utc_now
from .configuration import all_descriptors
from .exceptions import BackendFetchFailed, BackendUnavailableSignal
from .models import (
    BoolConfig,
    ClientState,
    ConfigDescriptor,
    ConfigKey,
    ConfigSnapshot,
    ConfigUpdate,
    ConfigValue,
    FetchStatus,
    IntConfig,
    Provenance,
    StringConfig,
    VariantResult,
)
from .notifications import ChangeNotifier, Dispatcher, Subscription, UpdateCallback
from .settings import ClientSettings, load_settings

logger = logging.getLogger(__name__)

CONTROL_VARIANT = "control"
STATIC_VARIANT = "static"
UNKNOWN_VARIANT = "unknown"
VARIANT_BUCKETS = 2


def variant_bucket(text: str, buckets: int = VARIANT_BUCKETS) -> int:
    """
    Stable bucket for a value's string form

    Uses sha256 rather than hash() so the bucket doesn't change between
    processes. This only approximates experiment arm identity; the backend
    does not report the real arm.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % buckets


def derive_variant(key: ConfigKey, provenance: Provenance, text: str) -> Tuple[str, Optional[str]]:
    """Return (variant_name, experiment_id) for a value of the given provenance"""
    if provenance is Provenance.REMOTE:
        return f"variant_{variant_bucket(text)}", f"exp_{key.value}"
    if provenance is Provenance.DEFAULT:
        return CONTROL_VARIANT, None
    if provenance is Provenance.STATIC:
        return STATIC_VARIANT, None
    return UNKNOWN_VARIANT, None


def _as_fetch_status(raw: Any) -> FetchStatus:
    if isinstance(raw, FetchStatus):
        return raw
    try:
        return FetchStatus(raw)
    except ValueError:
        return FetchStatus.OTHER


def _read_string(entry: ConfigValue) -> Optional[str]:
    return entry.string_value


def _read_bool(entry: ConfigValue) -> Optional[bool]:
    if entry.bool_value is not None:
        return entry.bool_value
    if entry.string_value is not None:
        return parse_bool(entry.string_value)
    return None


def _read_int(entry: ConfigValue) -> Optional[int]:
    # Exact for integers too large to survive a float round trip
    if entry.string_value is not None:
        try:
            return int(entry.string_value.strip())
        except ValueError:
            pass
    number = entry.numeric_value
    if number is None and entry.string_value is not None:
        try:
            number = float(entry.string_value)
        except ValueError:
            return None
    if number is None or not math.isfinite(number):
        return None
    # Truncates toward zero like the vendor SDKs do
    return int(number)


class RemoteConfigClient:
    """
    Client for cached remote configuration values

    Typical lifecycle:

        client = RemoteConfigClient(backend)
        await client.start()
        color = client.get_string(ABTestConfiguration.BUTTON_COLOR)
        subscription = client.subscribe(on_update)
        await client.refresh()
    """

    def __init__(
        self,
        backend: RemoteConfigBackend,
        settings: Optional[ClientSettings] = None,
        descriptors: Optional[Iterable[ConfigDescriptor]] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            backend: Remote config backend to fetch from
            settings: Client settings; loaded from the bundled file if omitted
            descriptors: Descriptors used to seed the initial snapshot
            clock: Returns the current time; tests pass a fake one
        """
        self._backend = backend
        self._settings = settings if settings is not None else load_settings()
        self._clock = clock or utc_now
        self._ttl = self._settings.minimum_fetch_interval

        self._snapshot = ConfigSnapshot.seeded(descriptors if descriptors is not None else all_descriptors())
        self._last_fetch_time: Optional[datetime] = None
        self._state = ClientState.UNINITIALIZED

        self._notifier = ChangeNotifier()
        self._fetch_lock = asyncio.Lock()
        self._pending_fetch: Optional[asyncio.Task] = None

        # Observability
        self.fetch_failure_count = 0
        self.last_fetch_error: Optional[BackendFetchFailed] = None
        self.last_signal_error: Optional[BackendUnavailableSignal] = None

        fetch_settings = self._backend.config_settings
        fetch_settings.minimum_fetch_interval = self._ttl
        fetch_settings.fetch_timeout = self._settings.fetch_timeout_seconds

        logger.info(
            f"Initialized RemoteConfigClient (ttl={self._ttl}s, "
            f"fetch_timeout={self._settings.fetch_timeout_seconds}s)"
        )

    # State
    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def last_fetch_time(self) -> Optional[datetime]:
        return self._last_fetch_time

    @property
    def remote_fetch_time(self) -> Optional[datetime]:
        """When the backend last reached the server, as reported by the backend"""
        return self._backend.last_fetch_time

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    def is_stale(self) -> bool:
        """True when the cache has never been filled or is at least TTL old"""
        if self._last_fetch_time is None:
            return True
        age = (self._clock() - self._last_fetch_time).total_seconds()
        return age >= self._ttl

    # Typed getters
    def get_string(self, descriptor: StringConfig) -> VariantResult[str]:
        return self._resolve(descriptor, _read_string)

    def get_bool(self, descriptor: BoolConfig) -> VariantResult[bool]:
        return self._resolve(descriptor, _read_bool)

    def get_int(self, descriptor: IntConfig) -> VariantResult[int]:
        return self._resolve(descriptor, _read_int)

    def _resolve(self, descriptor: ConfigDescriptor, read: Callable[[ConfigValue], Any]) -> VariantResult:
        self._refetch_if_stale()

        key = descriptor.key
        entry = self._snapshot.get(key)
        if entry is None:
            return VariantResult(value=descriptor.default_value, variant_name=CONTROL_VARIANT)

        provenance = entry.provenance
        if provenance is Provenance.DEFAULT:
            return VariantResult(value=descriptor.default_value, variant_name=CONTROL_VARIANT)

        if provenance is Provenance.UNRECOGNIZED:
            logger.warning(f"Unrecognized value source for '{key.value}', serving default")
            return VariantResult(value=descriptor.default_value, variant_name=UNKNOWN_VARIANT)

        value = read(entry)
        if value is None:
            logger.warning(
                f"Value for '{key.value}' can't be read as {type(descriptor.default_value).__name__}, "
                f"serving default"
            )
            return VariantResult(value=descriptor.default_value, variant_name=CONTROL_VARIANT)

        text = entry.string_value if entry.string_value is not None else str(value)
        variant_name, experiment_id = derive_variant(key, provenance, text)
        logger.debug(f"Config for {key.value}: {value!r} (source: {provenance.value}, variant: {variant_name})")
        return VariantResult(value=value, variant_name=variant_name, experiment_id=experiment_id)

    # Fetching
    def _refetch_if_stale(self) -> None:
        if not self.is_stale():
            return
        if self._pending_fetch is not None and not self._pending_fetch.done():
            return
        if self._fetch_lock.locked():
            # A refresh is already running and will replace the snapshot
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Config cache is stale but no event loop is running; serving cached values")
            return

        logger.info("Config cache is stale, scheduling a background fetch")
        self._pending_fetch = loop.create_task(self._fetch_cycle(force=False, reason="stale"))

    async def wait_for_pending_fetch(self) -> None:
        """Wait for a background fetch started by a getter, if there is one"""
        pending = self._pending_fetch
        if pending is not None:
            await pending

    async def start(self) -> Optional[FetchStatus]:
        """
        Process start sequence: send targeting signals, then do the initial fetch

        Returns the fetch status, or None if the initial fetch failed (the
        client then keeps serving defaults).
        """
        await self._send_custom_signals()
        return await self._fetch_cycle(force=False, reason="startup")

    async def refresh(
        self,
        on_complete: Optional[Callable[[Optional[FetchStatus]], None]] = None,
    ) -> Optional[FetchStatus]:
        """
        Force a fetch, ignoring the TTL

        The backend's minimum fetch interval is set to 0 for the duration of
        the fetch and restored afterwards, whatever the outcome.

        Args:
            on_complete: Called with the result once the fetch is done

        Returns:
            The FetchStatus on success, None on failure
        """
        status = await self._fetch_cycle(force=True, reason="refresh")
        if on_complete is not None:
            on_complete(status)
        return status

    async def _send_custom_signals(self) -> None:
        signals = self._settings.custom_signals
        if not signals:
            return
        try:
            await self._backend.set_custom_signals(dict(signals))
            logger.debug(f"Sent custom signals: {signals}")
        except Exception as e:
            self.last_signal_error = BackendUnavailableSignal(str(e))
            logger.debug(f"Ignoring custom signal failure: {e}")

    async def _fetch_cycle(self, force: bool, reason: str) -> Optional[FetchStatus]:
        async with self._fetch_lock:
            fetch_settings = self._backend.config_settings
            prior_interval = fetch_settings.minimum_fetch_interval
            if force:
                fetch_settings.minimum_fetch_interval = 0

            previous_state = self._state
            self._state = ClientState.FETCHING
            snapshot: Optional[ConfigSnapshot] = None
            try:
                status = _as_fetch_status(await self._backend.fetch_and_activate())
                snapshot = self._build_snapshot()
            except Exception as e:
                self._record_failure(e, reason)
                return None
            finally:
                if force:
                    fetch_settings.minimum_fetch_interval = prior_interval
                if snapshot is None:
                    self._state = previous_state

            self._snapshot = snapshot
            self._last_fetch_time = snapshot.fetched_at
            self._state = ClientState.CACHED

            if status is FetchStatus.FETCHED_FROM_REMOTE:
                logger.info(f"Remote config fetched from remote at {self.remote_fetch_time} ({reason})")
            elif status is FetchStatus.USED_CACHED_DATA:
                logger.info(f"Remote config using cached data from {self.remote_fetch_time} ({reason})")
            else:
                logger.info(f"Remote config fetch completed with status: {status} ({reason})")

            self._notifier.publish(ConfigUpdate(status=status, fetched_at=snapshot.fetched_at, reason=reason))
            return status

    def _build_snapshot(self) -> ConfigSnapshot:
        entries = {}
        for key in ConfigKey:
            raw = self._backend.config_value(key.value)
            if raw is None:
                continue
            entries[key.value] = raw if isinstance(raw, ConfigValue) else ConfigValue.model_validate(raw)
        return ConfigSnapshot(entries=entries, fetched_at=self._clock())

    def _record_failure(self, error: Exception, reason: str) -> None:
        if isinstance(error, BackendFetchFailed):
            failure = error
        elif isinstance(error, ValidationError):
            failure = BackendFetchFailed(f"malformed config payload: {error}", cause=error)
        else:
            failure = BackendFetchFailed(str(error) or type(error).__name__, cause=error)

        self.fetch_failure_count += 1
        self.last_fetch_error = failure
        logger.warning(f"Remote config fetch failed ({reason}), keeping previous snapshot: {failure.reason}")

    # Notifications
    def subscribe(self, callback: UpdateCallback, dispatcher: Optional[Dispatcher] = None) -> Subscription:
        """
        Subscribe to snapshot replacements

        Args:
            callback: Called with a ConfigUpdate after each successful fetch
            dispatcher: Optional scheduler, e.g. loop.call_soon_threadsafe,
                used to run the callback on the presentation layer's context

        Returns:
            Subscription; call cancel() to stop receiving updates
        """
        return self._notifier.subscribe(callback, dispatcher)

    def trigger_update(self) -> None:
        """Notify subscribers about the current snapshot without fetching"""
        self._notifier.publish(ConfigUpdate(fetched_at=self._last_fetch_time, reason="manual"))
