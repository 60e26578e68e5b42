"""Console logger shared by every jupiter_perps module.

Messages carry an optional ``[source]`` tag naming the emitting module and an
optional payload appended verbatim, e.g.::

    log.info("sent 5xYz...", source="tx")
    log.warning("simulation error", source="compute", payload={"err": ...})
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

LOGGER_NAME = "jupiter_perps"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PerpsLogger:
    """Tagged wrapper around a :mod:`logging` logger with named timers."""

    def __init__(self, name: str = LOGGER_NAME) -> None:
        self._logger = logging.getLogger(name)
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            self._logger.addHandler(handler)
        self._timers: Dict[str, datetime] = {}
        self.configure()

    def configure(self, level: int = logging.INFO) -> None:
        self._logger.setLevel(level)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _emit(self, level: int, msg: str, source: Optional[str], payload: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._format(msg, source, payload))

    def debug(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.DEBUG, msg, source, payload)

    def info(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.INFO, msg, source, payload)

    def warning(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.WARNING, msg, source, payload)

    def error(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.ERROR, msg, source, payload)

    def success(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.INFO, f"✅ {msg}", source, payload)

    def banner(self, msg: str, source: Optional[str] = None, payload: Any = None) -> None:
        self._emit(logging.INFO, f"==== {msg} ====", source, payload)

    # Timers are keyed by name; ending an unknown timer is a no-op.
    def start_timer(self, name: str) -> None:
        self._timers[name] = datetime.now()

    def end_timer(self, name: str, source: Optional[str] = None) -> None:
        started = self._timers.pop(name, None)
        if started is None:
            return
        ms = (datetime.now() - started).total_seconds() * 1000
        self._emit(logging.INFO, f"{name} took {ms:.0f} ms", source, None)

    @staticmethod
    def _format(msg: str, source: Optional[str], payload: Any = None) -> str:
        text = f"[{source}] {msg}" if source else msg
        return text if payload is None else f"{text} {payload}"


log = PerpsLogger()


def configure_console_log(debug: bool = False) -> None:
    """Switch the shared logger between INFO and DEBUG."""
    log.configure(logging.DEBUG if debug else logging.INFO)


__all__ = ["log", "configure_console_log", "PerpsLogger"]
