"""
Subscription filters for the inventory event bus.

``EventTypeFilter`` is a tagged union: either every event type, or a fixed set
of them. The ``"*"`` string only exists at the parsing boundary.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Union

from .schemas import ChangeEvent, ChangeEventType

WILDCARD = "*"


@dataclass(frozen=True)
class AllEventTypes:
    """Matches every event type"""

    def matches(self, event_type: ChangeEventType) -> bool:
        return True

    def describe(self) -> list:
        return [WILDCARD]


@dataclass(frozen=True)
class SpecificEventTypes:
    """Matches only the listed event types"""

    event_types: FrozenSet[ChangeEventType]

    def matches(self, event_type: ChangeEventType) -> bool:
        return event_type in self.event_types

    def describe(self) -> list:
        return sorted(event_type.value for event_type in self.event_types)


EventTypeFilter = Union[AllEventTypes, SpecificEventTypes]

ALL_EVENT_TYPES = AllEventTypes()


def only(*event_types: ChangeEventType) -> SpecificEventTypes:
    return SpecificEventTypes(frozenset(event_types))


def parse_event_type_filter(values: Iterable[str]) -> EventTypeFilter:
    """Parse the list form (``["*"]`` or concrete type names) into a filter"""
    values = list(values)
    if WILDCARD in values:
        return ALL_EVENT_TYPES
    if not values:
        raise ValueError("At least one event type or '*' is required")
    return SpecificEventTypes(frozenset(ChangeEventType(value) for value in values))


EventCallback = Callable[[ChangeEvent], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class Subscription:
    """A registered interest in bus events"""

    subscriber_id: str
    event_filter: EventTypeFilter
    callback: EventCallback

    def matches(self, event: ChangeEvent) -> bool:
        return self.event_filter.matches(event.event_type)
