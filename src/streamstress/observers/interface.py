# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/interface.py
from __future__ import annotations
from typing import Protocol, Tuple, Type, runtime_checkable
from .events import BaseEvent


@runtime_checkable
class Observer(Protocol):
    """
    Receives events from an EventBus. Builds run in parallel, so notify()
    can be called from several threads at once.
    """

    def notify(self, event: BaseEvent) -> None: ...


class EventFilter:
    """Forwards only the listed event types to the wrapped observer."""

    def __init__(self, observer: Observer, *event_types: Type[BaseEvent]):
        self.observer = observer
        self.event_types: Tuple[Type[BaseEvent], ...] = event_types

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, self.event_types):
            self.observer.notify(event)

    def __repr__(self) -> str:
        names = ", ".join(t.__name__ for t in self.event_types)
        return f"EventFilter({self.observer!r}, {names})"
