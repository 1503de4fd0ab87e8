""" Hints package initialization."""

from .fix_worker import FixOrchestrator, FixTask, LoggingFixNotifier  # noqa: F401
from .variable_fix import (  # noqa: F401
    RepairOutcome,
    RepairParseError,
    VariableFix,
    VariableFixAgent,
    VariableFixError,
)
