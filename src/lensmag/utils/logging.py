"""Logging utilities for lensmag."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from lensmag.domain import MagnificationResult, QualityFlag

_HANDLER_TAG = "_lensmag_handler"


@dataclass
class EvaluationStats:
    """Statistics over the evaluations of one engine."""

    evaluation_count: int = 0
    flagged_count: int = 0
    error_count: int = 0
    total_points: int = 0
    total_annuli: int = 0
    total_time_ms: float = 0.0
    stages: Counter[str] = field(default_factory=Counter)
    flags: Counter[str] = field(default_factory=Counter)
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def avg_time_ms(self) -> float:
        """Average evaluation time."""
        if self.evaluation_count == 0:
            return 0.0
        return self.total_time_ms / self.evaluation_count


def configure_logging(
    log_file: Path | None = None,
    console_level: str = "WARNING",
    file_level: str = "DEBUG",
    quiet: bool = False,
) -> structlog.stdlib.BoundLogger:
    """Configure structured logging to the console and an optional file.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        log_file: Path to log file (no file logging if None)
        console_level: Logging level for console output
        file_level: Logging level for file output
        quiet: If True, suppress console output except errors

    Returns:
        Configured structlog logger
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(logging.DEBUG)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
        )
        setattr(file_handler, _HANDLER_TAG, True)
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.ERROR if quiet else getattr(logging, console_level.upper()))
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(console_handler, _HANDLER_TAG, True)
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

    logger = structlog.get_logger("lensmag")
    logger.debug(
        "Logging initialized",
        log_file=str(log_file) if log_file else None,
        level=console_level,
    )
    return logger


class EvaluationLogger:
    """Logger for tracking evaluations and their statistics."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger("lensmag")
        self._stats = EvaluationStats()

    def log_evaluation_complete(
        self,
        kind: str,
        result: MagnificationResult,
        duration_ms: float,
    ) -> None:
        """Log a finished evaluation and update statistics."""
        self._logger.debug(
            "Evaluation complete",
            kind=kind,
            magnification=result.magnification,
            stage=result.stage.value,
            annuli=result.annuli,
            points=result.points,
            duration_ms=round(duration_ms, 3),
        )
        stats = self._stats
        stats.evaluation_count += 1
        stats.total_points += result.points
        stats.total_annuli += result.annuli
        stats.total_time_ms += duration_ms
        stats.stages[result.stage.value] += 1
        if not result.is_reliable:
            self.log_flagged(kind, result.flags)

    def log_flagged(self, kind: str, flags: QualityFlag) -> None:
        """Log a result that carries quality flags."""
        names = [flag.name for flag in QualityFlag if flag in flags]
        self._logger.warning("Reduced-accuracy result", kind=kind, flags=names)
        self._stats.flagged_count += 1
        for name in names:
            self._stats.flags[name] += 1

    def log_evaluation_error(self, kind: str, error: Exception) -> None:
        """Log an evaluation rejected for its configuration."""
        self._logger.error(
            "Evaluation rejected",
            kind=kind,
            error=str(error),
            error_type=type(error).__name__,
        )
        self._stats.error_count += 1
        self._stats.errors.append((kind, str(error)))

    @property
    def stats(self) -> EvaluationStats:
        """Get current evaluation statistics."""
        return self._stats
