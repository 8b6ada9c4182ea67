"""Exam solver round loop: history, stream classification, display, scheduling."""

from examsolver.solver.cancellation import StopSignal
from examsolver.solver.classifier import (
    Classification,
    RoundOutcome,
    StreamClassifier,
    Validity,
    strip_valid_header,
)
from examsolver.solver.display import DisplayPresenter, DisplayState, compose
from examsolver.solver.executor import RoundExecutor, RoundState
from examsolver.solver.history import ConversationHistory, Message, Role
from examsolver.solver.scheduler import RoundScheduler

__all__ = [
    "StopSignal",
    "Classification",
    "RoundOutcome",
    "StreamClassifier",
    "Validity",
    "strip_valid_header",
    "DisplayPresenter",
    "DisplayState",
    "compose",
    "RoundExecutor",
    "RoundState",
    "ConversationHistory",
    "Message",
    "Role",
    "RoundScheduler",
]
