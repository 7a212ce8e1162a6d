"""
Backend contracts and in-memory implementations

The client never talks to a vendor SDK directly. It relies on two small
protocols instead:

- RemoteConfigBackend: fetch/activate a snapshot and describe the value of
  a key in the activated snapshot
- AnalyticsBackend: accept a named event with flat parameters

Adapters for a real vendor SDK implement these protocols in the
application. The in-memory versions below back the demo CLI and the tests;
they follow the vendor semantics that matter to the client (values only
become visible after activation, and fetches inside the minimum fetch
interval are answered from cached data).
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union

from .models import ConfigValue, FetchStatus, Provenance

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FetchSettings:
    """Mutable fetch settings owned by the backend, in seconds"""

    minimum_fetch_interval: float = 3600.0
    fetch_timeout: float = 30.0


class RemoteConfigBackend(Protocol):
    """Contract the client requires from a remote config backend"""

    config_settings: FetchSettings

    @property
    def last_fetch_time(self) -> Optional[datetime]: ...

    async def fetch_and_activate(self) -> FetchStatus: ...

    def config_value(self, key: str) -> Optional[Union[ConfigValue, Mapping[str, Any]]]: ...

    async def set_custom_signals(self, signals: Dict[str, str]) -> None: ...


class AnalyticsBackend(Protocol):
    """Contract the event tracker requires from an analytics backend"""

    def log_event(self, name: str, parameters: Dict[str, Any]) -> None: ...


def parse_bool(text: str) -> Optional[bool]:
    lowered = text.strip().lower()
    if lowered in ("true", "1", "yes", "y", "on"):
        return True
    if lowered in ("false", "0", "no", "n", "off"):
        return False
    return None


def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def to_config_value(value: Any, source: Provenance) -> ConfigValue:
    """Describe a plain Python value the way a vendor SDK would"""
    if isinstance(value, bool):
        return ConfigValue(string_value=str(value).lower(), bool_value=value, numeric_value=float(value), source=source)
    if isinstance(value, (int, float)):
        return ConfigValue(string_value=str(value), numeric_value=float(value), source=source)
    text = str(value)
    return ConfigValue(
        string_value=text,
        bool_value=parse_bool(text),
        numeric_value=_parse_number(text),
        source=source,
    )


class InMemoryRemoteConfigBackend:
    """
    In-memory remote config backend for the demo and tests

    Values set through set_remote_value()/set_static_value() are "published"
    on the server side and only become visible through config_value() after
    the next fetch_and_activate() that actually reaches the server.
    """

    def __init__(
        self,
        remote_values: Optional[Mapping[str, Any]] = None,
        static_values: Optional[Mapping[str, Any]] = None,
        clock: Optional[Clock] = None,
        fetch_delay: float = 0.0,
    ):
        self.config_settings = FetchSettings()
        self._clock = clock or utc_now
        self._fetch_delay = fetch_delay

        self._published: Dict[str, Any] = {}
        for key, value in (static_values or {}).items():
            self.set_static_value(key, value)
        for key, value in (remote_values or {}).items():
            self.set_remote_value(key, value)

        self._active: Dict[str, Any] = {}
        self._last_fetch_time: Optional[datetime] = None

        # Failure injection and bookkeeping for tests
        self.fetch_error: Optional[BaseException] = None
        self.signals_error: Optional[BaseException] = None
        self.fetch_count = 0
        self.custom_signals: Dict[str, str] = {}
        self.observed_intervals: List[float] = []

    # Server side
    def set_remote_value(self, key: str, value: Any) -> None:
        self._published[key] = to_config_value(value, Provenance.REMOTE)

    def set_static_value(self, key: str, value: Any) -> None:
        self._published[key] = to_config_value(value, Provenance.STATIC)

    def set_raw_value(self, key: str, payload: Mapping[str, Any]) -> None:
        """Publish a raw payload as-is, including malformed ones"""
        self._published[key] = dict(payload)

    def remove_value(self, key: str) -> None:
        self._published.pop(key, None)

    # Client side
    @property
    def last_fetch_time(self) -> Optional[datetime]:
        return self._last_fetch_time

    async def fetch_and_activate(self) -> FetchStatus:
        self.fetch_count += 1
        self.observed_intervals.append(self.config_settings.minimum_fetch_interval)

        await asyncio.sleep(self._fetch_delay)

        if self.fetch_error is not None:
            raise self.fetch_error

        now = self._clock()
        if self._last_fetch_time is not None:
            age = (now - self._last_fetch_time).total_seconds()
            if age < self.config_settings.minimum_fetch_interval:
                logger.debug(f"Inside minimum fetch interval ({age:.0f}s old), using cached data")
                return FetchStatus.USED_CACHED_DATA

        self._active = dict(self._published)
        self._last_fetch_time = now
        return FetchStatus.FETCHED_FROM_REMOTE

    def config_value(self, key: str) -> Optional[Union[ConfigValue, Mapping[str, Any]]]:
        return self._active.get(key)

    async def set_custom_signals(self, signals: Dict[str, str]) -> None:
        if self.signals_error is not None:
            raise self.signals_error
        self.custom_signals.update(signals)


class InMemoryAnalyticsBackend:
    """Analytics backend that records events in a list"""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.error: Optional[BaseException] = None
        self.failing_events: List[str] = []

    def log_event(self, name: str, parameters: Dict[str, Any]) -> None:
        if self.error is not None and (not self.failing_events or name in self.failing_events):
            raise self.error
        self.events.append((name, dict(parameters)))

    def events_named(self, name: str) -> List[Dict[str, Any]]:
        return [params for event_name, params in self.events if event_name == name]


class LoggingAnalyticsBackend:
    """Analytics backend that only writes events to the log"""

    def __init__(self, logger_name: str = "abtest_remote_config.analytics"):
        self._logger = logging.getLogger(logger_name)

    def log_event(self, name: str, parameters: Dict[str, Any]) -> None:
        self._logger.info(f"📊 {name}: {parameters}")
