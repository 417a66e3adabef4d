"""Best-effort notifications.

The core only ever talks to an ``EventPublisher``. Which one is used is chosen
by ``settings.TRADING["EVENT_PUBLISHER"]``; failures are logged and dropped.
"""

import logging

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

ORDER_CREATED = "OrderCreated"
ORDER_CONFIRMED = "OrderConfirmed"
ORDER_CANCELED = "OrderCanceled"
SALE_CREATED = "SaleCreated"
SALE_CANCELED = "SaleCanceled"


class EventPublisher:
    def publish(self, event_name, payload):
        raise NotImplementedError


class LoggingEventPublisher(EventPublisher):
    """Default publisher: writes the event to the ``trading.events`` logger."""

    def publish(self, event_name, payload):
        logger.info("event %s %s", event_name, payload)


class NullEventPublisher(EventPublisher):
    def publish(self, event_name, payload):
        pass


class RecordingEventPublisher(EventPublisher):
    """Keeps published events in memory. Handy for tests and shell sessions."""

    def __init__(self):
        self.events = []

    def publish(self, event_name, payload):
        self.events.append((event_name, payload))

    def names(self):
        return [name for name, _ in self.events]


def get_event_publisher():
    path = getattr(settings, "TRADING", {}).get(
        "EVENT_PUBLISHER", "trading.events.LoggingEventPublisher"
    )
    return import_string(path)()


def publish_safely(publisher, event_name, payload):
    try:
        publisher.publish(event_name, payload)
    except Exception:
        logger.warning("Dropped %s notification", event_name, exc_info=True)
