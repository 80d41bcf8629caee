"""Logging utilities for Confusable Vision."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from confusable_vision.domain import FilterReason


@dataclass
class ScoringStats:
    """Statistics from a scoring run."""

    submitted_count: int = 0
    scored_count: int = 0
    error_count: int = 0
    filtered_counts: Counter[str] = field(default_factory=Counter)
    errors: list[tuple[int, str]] = field(default_factory=list)
    item_timings_ms: list[float] = field(default_factory=list)
    start_time: float | None = None
    end_time: float | None = None

    @property
    def filtered_count(self) -> int:
        """Total rows filtered for any reason except errors."""
        return sum(self.filtered_counts.values())

    @property
    def duration_seconds(self) -> float:
        """Calculate scoring duration."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return 0.0

    @property
    def avg_item_time_ms(self) -> float | None:
        """Average worker time per item."""
        if not self.item_timings_ms:
            return None
        return sum(self.item_timings_ms) / len(self.item_timings_ms)


def configure_logging(
    log_file: Path | None = None,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    quiet: bool = False,
) -> structlog.stdlib.BoundLogger:
    """Configure structured logging to the console and an optional file.

    Args:
        log_file: Path to log file (no file logging if None)
        console_level: Logging level for console output
        file_level: Logging level for file output
        quiet: If True, suppress console output

    Returns:
        Configured structlog logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_confusable_vision", False):
            root_logger.removeHandler(handler)
            handler.close()

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
        )
        file_handler._confusable_vision = True  # type: ignore[attr-defined]
        root_logger.addHandler(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        console_handler._confusable_vision = True  # type: ignore[attr-defined]
        root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("confusable_vision")
    logger.debug(
        "Logging initialized",
        log_file=str(log_file) if log_file else None,
        level=console_level,
    )

    return logger


class ScoringLogger:
    """Logger for tracking scoring progress and statistics."""

    def __init__(self, logger: structlog.stdlib.BoundLogger) -> None:
        self._logger = logger
        self._stats = ScoringStats()

    def log_item_scored(self, idx: int, score: float, duration_ms: float) -> None:
        """Log a successfully scored work item."""
        self._logger.debug(
            "Item scored",
            idx=idx,
            score=round(score, 4),
            duration_ms=round(duration_ms, 2),
        )
        self._stats.scored_count += 1
        self._stats.item_timings_ms.append(duration_ms)

    def log_item_filtered(self, idx: int, reason: FilterReason) -> None:
        """Log a filtered work item."""
        self._logger.debug("Item filtered", idx=idx, reason=reason.value)
        self._stats.filtered_counts[reason.value] += 1

    def log_item_error(
        self,
        idx: int,
        error: str,
        traceback: str | None = None,
    ) -> None:
        """Log a failed work item."""
        self._logger.error(
            "Item scoring failed",
            idx=idx,
            error=error,
            traceback=traceback,
        )
        self._stats.error_count += 1
        self._stats.errors.append((idx, error))

    def log_render_unavailable(self, text: str, family: str) -> None:
        """Log a render the font could not produce."""
        self._logger.debug("No render", text=text, font=family)

    @property
    def stats(self) -> ScoringStats:
        """Get current scoring statistics."""
        return self._stats
