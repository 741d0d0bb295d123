from .events import EVENT_CATEGORIES, UIEvent, make_event
from .reporters import Reporter, NullReporter, PlainConsoleReporter, RichConsoleReporter, create_reporter

__all__ = [
    "EVENT_CATEGORIES",
    "UIEvent",
    "make_event",
    "Reporter",
    "NullReporter",
    "PlainConsoleReporter",
    "RichConsoleReporter",
    "create_reporter",
]
