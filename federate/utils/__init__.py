"""Utilities for federate setup and configuration.

Includes:
- Structured logging and the tracing hook used by the engine
- Configuration loading with env var substitution
"""

from .logging import StructuredLogger, configure_logging, get_logger, logger
from .tracing import LoggerTracer, NullTracer, Tracer, tracer_for
from .config_loader import load_yaml_with_env

__all__ = [
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "logger",
    "Tracer",
    "LoggerTracer",
    "NullTracer",
    "tracer_for",
    "load_yaml_with_env",
]
