"""Common utilities for Exam Solver."""

from examsolver.common.logging import get_logger, setup_logging
from examsolver.common.errors import (
    CaptureError,
    ConfigurationError,
    ExamSolverError,
    HistoryError,
    StopRequested,
    StreamError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "ExamSolverError",
    "ConfigurationError",
    "CaptureError",
    "StreamError",
    "HistoryError",
    "StopRequested",
]
