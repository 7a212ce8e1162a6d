"""
Exception types for the remote configuration client

Only configuration loading raises these to callers. Everything that happens
at runtime (fetches, custom signals, analytics) is caught at the client or
tracker boundary, logged, and counted, because the presentation layer must
always get a value back.
"""

from typing import Optional


class RemoteConfigError(Exception):
    """
    Base exception for the package

    Catch this when you want to handle any failure raised by the package
    without caring about the specific kind.
    """
    pass


class ConfigSettingsError(RemoteConfigError):
    """Raised when the bundled or user-supplied client settings cannot be loaded"""
    pass


class BackendFetchFailed(RemoteConfigError):
    """
    A fetch/activate cycle against the remote config backend failed

    Recovered locally by the client: the previous snapshot stays active.
    """

    def __init__(self, reason: str, cause: Optional[BaseException] = None):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


class BackendUnavailableSignal(RemoteConfigError):
    """Sending custom targeting signals failed. Ignored by the client."""
    pass


class AnalyticsDeliveryFailed(RemoteConfigError):
    """An analytics event could not be handed to the analytics backend"""

    def __init__(self, event_name: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to deliver analytics event '{event_name}': {cause}")
        self.event_name = event_name
        self.cause = cause
