"""Exception types for Exam Solver."""

from __future__ import annotations


class ExamSolverError(Exception):
    """Base class for all Exam Solver errors."""


class ConfigurationError(ExamSolverError):
    """Required settings are missing or invalid. Not retried."""


class CaptureError(ExamSolverError):
    """The glasses could not take a photo."""


class StreamError(ExamSolverError):
    """Transport or parse failure while streaming a chat completion."""


class HistoryError(ExamSolverError):
    """A conversation history operation was used out of order."""


class StopRequested(ExamSolverError):
    """The solver loop was asked to stop."""
