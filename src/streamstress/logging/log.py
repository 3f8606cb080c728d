# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/logging/log.py

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

# the kubernetes client logs every request through urllib3 at DEBUG
NOISY_LOGGERS = ("urllib3", "kubernetes.client.rest")


def default_log_dir() -> Path:
    override = os.environ.get("STREAMSTRESS_LOG_DIR")
    return Path(override) if override else Path.home() / ".streamstress" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "streamstress",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run with the full trace (every external command, its
    output and exit code, every cluster call) plus a console handler at INFO,
    or DEBUG when *verbose*.

    Returns (logger, run_id, log_path); pass run_id to the observers so
    events and log lines correlate.
    """
    run_id = str(uuid.uuid4())

    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{stamp}-{run_id[:8]}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(FORMAT, datefmt=DATEFMT)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.info("streamstress run %s", run_id)
    logger.debug("trace log: %s", log_path)

    return logger, run_id, log_path
