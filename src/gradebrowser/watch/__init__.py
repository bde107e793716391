"""Report watch services."""

from .events import ReportEvent, ReportEventKind
from .registry import Subscriber, SubscriberRegistry, TransportDroppedError
from .service import ReportWatcher

__all__ = [
    "ReportEvent",
    "ReportEventKind",
    "Subscriber",
    "SubscriberRegistry",
    "TransportDroppedError",
    "ReportWatcher",
]
