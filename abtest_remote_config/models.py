"""
Data models for remote configuration values

Everything in here is immutable once constructed. Descriptors are
process-wide constants, snapshots are replaced wholesale by the client, and
VariantResult instances are plain query results.

Pydantic is used so that payloads handed over by a backend are validated
on the way in: a value the backend cannot describe properly (say a numeric
value of "abc") fails validation, and the client treats that fetch as failed
instead of serving garbage.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

T = TypeVar("T")


class ConfigKey(str, Enum):
    """All remote config parameter keys known to the app"""

    BUTTON_COLOR = "button_color"
    BUTTON_TEXT = "button_text"
    WELCOME_MESSAGE = "welcome_message"
    FEATURE_ENABLED = "feature_enabled"
    MAX_ITEMS = "max_items"


class Provenance(str, Enum):
    """
    Where a configuration value was resolved from

    REMOTE       - an active experiment or remote override
    DEFAULT      - local fallback, no remote value exists
    STATIC       - backend marked the value as static/compile-time
    UNRECOGNIZED - the backend reported a source we don't know about
    """

    REMOTE = "remote"
    DEFAULT = "default"
    STATIC = "static"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_source(cls, source: Any) -> "Provenance":
        if isinstance(source, Provenance):
            return source
        try:
            return cls(str(source).lower())
        except ValueError:
            return cls.UNRECOGNIZED


class FetchStatus(str, Enum):
    """Outcome of a successful fetch-and-activate call"""

    FETCHED_FROM_REMOTE = "fetched_from_remote"
    USED_CACHED_DATA = "used_cached_data"
    OTHER = "other"


class ClientState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CACHED = "cached"
    FETCHING = "fetching"


class ConfigDescriptor(BaseModel, Generic[T]):
    """
    Typed descriptor for one configuration entry

    Strict validation keeps a BoolConfig from silently accepting "yes" or an
    IntConfig from accepting a float as its default.
    """

    model_config = ConfigDict(frozen=True, strict=True)

    key: ConfigKey
    default_value: T


class StringConfig(ConfigDescriptor[str]):
    """String valued configuration entry"""


class BoolConfig(ConfigDescriptor[bool]):
    """Boolean configuration entry"""


class IntConfig(ConfigDescriptor[int]):
    """Integer configuration entry"""


class VariantResult(BaseModel, Generic[T]):
    """
    A resolved configuration value plus experiment metadata

    variant_name is "control" for local defaults, "static" for static values
    and "variant_0"/"variant_1" for remote values. The remote label is an
    approximation derived from the value, not the backend's real arm id.
    """

    model_config = ConfigDict(frozen=True)

    value: T
    variant_name: str = "default"
    experiment_id: Optional[str] = None


class ConfigValue(BaseModel):
    """A raw value as reported by the remote config backend for one key"""

    model_config = ConfigDict(frozen=True)

    string_value: Optional[str] = None
    bool_value: Optional[bool] = None
    numeric_value: Optional[float] = None
    source: Provenance = Provenance.REMOTE

    @field_validator("source", mode="before")
    @classmethod
    def _normalize_source(cls, value: Any) -> Provenance:
        return Provenance.from_source(value)

    @classmethod
    def from_default(cls, value: Any) -> "ConfigValue":
        """Build an entry describing a local default value"""
        if isinstance(value, bool):
            return cls(string_value=str(value).lower(), bool_value=value, source=Provenance.DEFAULT)
        if isinstance(value, int):
            return cls(string_value=str(value), numeric_value=value, source=Provenance.DEFAULT)
        return cls(string_value=str(value), source=Provenance.DEFAULT)

    @property
    def provenance(self) -> Provenance:
        return self.source


class ConfigSnapshot(BaseModel):
    """
    The activated set of values the client serves lookups from

    fetched_at is None for the seed snapshot built from descriptor defaults.
    """

    model_config = ConfigDict(frozen=True)

    entries: Dict[str, ConfigValue]
    fetched_at: Optional[datetime] = None

    @classmethod
    def seeded(cls, descriptors: Iterable[ConfigDescriptor]) -> "ConfigSnapshot":
        return cls(
            entries={d.key.value: ConfigValue.from_default(d.default_value) for d in descriptors}
        )

    def get(self, key: ConfigKey) -> Optional[ConfigValue]:
        return self.entries.get(key.value)


class ConfigUpdate(BaseModel):
    """Payload delivered to change-notification subscribers"""

    model_config = ConfigDict(frozen=True)

    status: Optional[FetchStatus] = None
    fetched_at: Optional[datetime] = None
    reason: str = "fetch"
