# abtest_remote_config/__init__.py
"""
A/B Test Remote Config Client

Typed, cached access to remote configuration values that an experimentation
platform may override per user, plus reporting of the resulting
impressions, interactions and conversions.

Architecture Pattern: Thin client over a managed service
- The vendor backend does bucketing, delivery and aggregation
- This package caches the activated snapshot, enforces the minimum fetch
  interval, answers typed lookups and tells the UI when values change
- Backends are plain protocols so the vendor SDK stays at the edge

Usage:
    from abtest_remote_config import (
        ABTestConfiguration, EventTracker, RemoteConfigClient,
    )

    client = RemoteConfigClient(backend)
    await client.start()

    color = client.get_string(ABTestConfiguration.BUTTON_COLOR)
    tracker = EventTracker(analytics)
    tracker.track_impression(ABTestConfiguration.BUTTON_COLOR.key, color.variant_name)
"""

import logging

# Package version - this should match setup.py
__version__ = "1.0.0"

__description__ = "Cached remote config client for A/B tests"

from .backends import (
    AnalyticsBackend,
    FetchSettings,
    InMemoryAnalyticsBackend,
    InMemoryRemoteConfigBackend,
    LoggingAnalyticsBackend,
    RemoteConfigBackend,
)
from .client import RemoteConfigClient, derive_variant
from .configuration import ABTestConfiguration, all_descriptors
from .exceptions import (
    AnalyticsDeliveryFailed,
    BackendFetchFailed,
    BackendUnavailableSignal,
    ConfigSettingsError,
    RemoteConfigError,
)
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
from .notifications import ChangeNotifier, Subscription
from .settings import ClientSettings, load_settings
from .tracking import ABTestEvent, EventTracker

__all__ = [
    "ABTestConfiguration",
    "ABTestEvent",
    "AnalyticsBackend",
    "AnalyticsDeliveryFailed",
    "BackendFetchFailed",
    "BackendUnavailableSignal",
    "BoolConfig",
    "ChangeNotifier",
    "ClientSettings",
    "ClientState",
    "ConfigDescriptor",
    "ConfigKey",
    "ConfigSettingsError",
    "ConfigSnapshot",
    "ConfigUpdate",
    "ConfigValue",
    "EventTracker",
    "FetchSettings",
    "FetchStatus",
    "InMemoryAnalyticsBackend",
    "InMemoryRemoteConfigBackend",
    "IntConfig",
    "LoggingAnalyticsBackend",
    "Provenance",
    "RemoteConfigBackend",
    "RemoteConfigClient",
    "RemoteConfigError",
    "StringConfig",
    "Subscription",
    "VariantResult",
    "all_descriptors",
    "derive_variant",
    "load_settings",
    "__version__",
]

# Package logger; applications attach their own handlers
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__.append("logger")
