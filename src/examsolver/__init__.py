"""Exam Solver - auto-capture exam answering for AI glasses."""

__version__ = "0.1.0"
__author__ = "Exam Solver Team"

from examsolver.config import Config, load_config

__all__ = ["Config", "load_config", "__version__"]
