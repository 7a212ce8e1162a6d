"""
Change notifications for configuration updates

A small observer list owned by the client. Every live subscriber receives
every published update, in publish order. A subscriber may supply a
dispatcher (for example loop.call_soon_threadsafe) so delivery happens on
the context the presentation layer expects; without one the callback runs
inline in the publisher.
"""

import logging
import threading
from typing import Callable, List, Optional

from .models import ConfigUpdate

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[ConfigUpdate], None]
Dispatcher = Callable[..., object]


class Subscription:
    """Handle returned by ChangeNotifier.subscribe(); cancel() withdraws it"""

    def __init__(self, notifier: "ChangeNotifier", callback: UpdateCallback, dispatcher: Optional[Dispatcher]):
        self._notifier = notifier
        self._callback = callback
        self._dispatcher = dispatcher
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._notifier._remove(self)

    def _deliver(self, update: ConfigUpdate) -> None:
        if self._dispatcher is None:
            self._invoke(update)
            return
        try:
            self._dispatcher(self._invoke, update)
        except Exception:
            logger.exception("Config update dispatcher raised; continuing with the others")

    def _invoke(self, update: ConfigUpdate) -> None:
        # Re-checked here because a dispatcher may run us after cancel()
        if not self._active:
            return
        try:
            self._callback(update)
        except Exception:
            logger.exception("Config update subscriber raised; continuing with the others")

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


class ChangeNotifier:
    """Multi-subscriber broadcast of ConfigUpdate events"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: UpdateCallback, dispatcher: Optional[Dispatcher] = None) -> Subscription:
        subscription = Subscription(self, callback, dispatcher)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, update: ConfigUpdate) -> None:
        with self._lock:
            targets = list(self._subscriptions)
        logger.debug(f"Publishing config update ({update.reason}) to {len(targets)} subscriber(s)")
        for subscription in targets:
            subscription._deliver(update)
