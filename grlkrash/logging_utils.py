"""
Logging setup for the agent daemon and API.
Console + file logs, plus a human-readable activity log.
"""

import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(name)-12s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_log_dir = Path("logs")


def setup_logging(level=logging.INFO, log_dir=None) -> logging.Logger:
    """Configure root logging. Returns the agent logger."""
    global _log_dir
    if log_dir:
        _log_dir = Path(log_dir)
    _log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[
            logging.FileHandler(_log_dir / "agent.log", encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )
    # web3/urllib3 are chatty at INFO
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("GRLKRASHai")


def log_activity(action: str, details: str) -> None:
    """Append a one-line activity summary to activity.log."""
    _log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime(LOG_DATE_FORMAT)
    with open(_log_dir / "activity.log", "a", encoding="utf-8") as f:
        f.write(f"[{timestamp}] {action}: {details}\n")
