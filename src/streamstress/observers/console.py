# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/console.py
import sys
import threading

from .events import BaseEvent, BuildPhaseChanged, BootstrapStepFinished


class ConsoleObserver:
    """Prints one line per event. Build phase changes get a compact form."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self._lock = threading.Lock()

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, BuildPhaseChanged):
            line = f"  {event.component}: {event.phase}"
            if event.detail:
                line += f" - {event.detail}"
        elif isinstance(event, BootstrapStepFinished):
            mark = "✓" if event.ok else "✗"
            line = f"{mark} {event.step}" + (f": {event.detail}" if event.detail else "")
        else:
            d = event.dict()
            k = event.__class__.__name__
            line = (f"[{d['ts']}] {k} {{"
                    + ", ".join(f"{x}={y}" for x, y in d.items() if x not in ('ts', 'run_id', 'context')) + "}")
        with self._lock:
            print(line, file=self.stream, flush=True)
