"""
Event tracking for A/B tests

Fire-and-forget reporting of impressions, interactions and conversions.
Losing an analytics event is acceptable; letting analytics break the UI is
not, so every delivery failure is logged and swallowed here.
"""

import logging
from enum import Enum
from typing import Any, Dict, Union

from .backends import AnalyticsBackend
from .exceptions import AnalyticsDeliveryFailed
from .models import ConfigKey

logger = logging.getLogger(__name__)

AB_TEST_EVENT = "ab_test_event"


class ABTestEvent(str, Enum):
    """Canonical event names for A/B test analytics"""

    IMPRESSION = "ab_test_impression"
    INTERACTION = "ab_test_interaction"
    CONVERSION = "ab_test_conversion"


class EventTracker:
    """Forwards A/B test events to an analytics backend"""

    def __init__(self, analytics: AnalyticsBackend):
        self._analytics = analytics
        self.delivery_failure_count = 0

    def track_event(self, key: Union[ConfigKey, str], variant: str, action: Union[ABTestEvent, str]) -> None:
        """
        Report one event

        Sends the event under its own name, plus a canonical "ab_test_event"
        record that is easier to aggregate. The two are delivered
        independently: a failure on one does not stop the other.
        """
        key_name = key.value if isinstance(key, ConfigKey) else str(key)
        action_name = action.value if isinstance(action, ABTestEvent) else str(action)

        self._send(action_name, {
            "experiment_key": key_name,
            "variant": variant,
            "action": action_name,
        })
        self._send(AB_TEST_EVENT, {
            "test_key": key_name,
            "variant": variant,
            "event_type": action_name,
        })

    def track_impression(self, key: Union[ConfigKey, str], variant: str) -> None:
        self.track_event(key, variant, ABTestEvent.IMPRESSION)

    def track_interaction(self, key: Union[ConfigKey, str], variant: str) -> None:
        self.track_event(key, variant, ABTestEvent.INTERACTION)

    def track_conversion(self, key: Union[ConfigKey, str], variant: str) -> None:
        self.track_event(key, variant, ABTestEvent.CONVERSION)

    def _send(self, name: str, parameters: Dict[str, Any]) -> None:
        try:
            self._analytics.log_event(name, parameters)
        except Exception as e:
            self.delivery_failure_count += 1
            failure = AnalyticsDeliveryFailed(name, e)
            logger.warning(f"Dropping analytics event: {failure}")
