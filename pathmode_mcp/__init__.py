"""Pathmode MCP Server - intent layer tools for AI coding agents."""

from .config import PathmodeConfig, ServerMode, load_config
from .context import ServerContext
from .errors import (
    DuplicateIntentError,
    IntentValidationError,
    PathmodeAPIError,
    PathmodeError,
)
from .graph import AnalysisKind, DependencyGraph, IntentGraphAnalyzer
from .models import Intent, IntentStatus, Relation

__version__ = "1.1.0"

__all__ = [
    "AnalysisKind",
    "DependencyGraph",
    "DuplicateIntentError",
    "Intent",
    "IntentGraphAnalyzer",
    "IntentStatus",
    "IntentValidationError",
    "PathmodeAPIError",
    "PathmodeConfig",
    "PathmodeError",
    "Relation",
    "ServerContext",
    "ServerMode",
    "load_config",
]
