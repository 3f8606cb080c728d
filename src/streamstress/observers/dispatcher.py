# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Optional, Type
from .events import BaseEvent
from .interface import EventFilter, Observer

log = logging.getLogger("streamstress")


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers = list(observers or [])

    def subscribe(self, observer: Observer, *event_types: Type[BaseEvent]) -> None:
        """With event_types, the observer only sees those events."""
        self._observers.append(EventFilter(observer, *event_types) if event_types else observer)

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break builds or deploys
                log.debug("observer %r failed on %s: %s", ob, event.__class__.__name__, e)
