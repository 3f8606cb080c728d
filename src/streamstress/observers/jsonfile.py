# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/observers/jsonfile.py
from __future__ import annotations
import json
import threading
from pathlib import Path
from typing import Optional, Union
from ..logging.log import default_log_dir
from .events import BaseEvent


class JsonFileObserver:
    """
    Appends one JSON object per event to a .jsonl file.

    Each line carries the event class under "type" plus the event fields.
    Values json cannot encode (paths, tuples of objects) are written with str().
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @classmethod
    def for_run(cls, run_id: str, log_dir: Optional[Path] = None) -> "JsonFileObserver":
        """Event file next to the run's log file: events-<run id prefix>.jsonl."""
        return cls(Path(log_dir or default_log_dir()) / f"events-{run_id[:8]}.jsonl")

    def notify(self, event: BaseEvent) -> None:
        line = json.dumps({"type": event.__class__.__name__, **event.dict()}, default=str)
        with self._lock, self.path.open("a") as f:
            f.write(line + "\n")
