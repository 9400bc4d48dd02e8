"""Tracing hook handed to the federation components.

The manager, validators and processors never check ``config.debug`` themselves.
They receive a ``Tracer`` and call ``trace``/``warn`` unconditionally; whether
anything is emitted is decided once, when the tracer is chosen.
"""

from typing import Any, Protocol

from federate.utils.logging import get_logger


class Tracer(Protocol):
    """Leveled trace sink used by the federation engine."""

    def trace(self, component: str, message: str, **context: Any) -> None:
        """Record a progress message."""
        ...

    def warn(self, component: str, message: str, **context: Any) -> None:
        """Record a skipped item or other non-fatal anomaly."""
        ...


class NullTracer:
    """Tracer that discards everything."""

    def trace(self, component: str, message: str, **context: Any) -> None:
        pass

    def warn(self, component: str, message: str, **context: Any) -> None:
        pass


class LoggerTracer:
    """Tracer that forwards to the package StructuredLogger."""

    def trace(self, component: str, message: str, **context: Any) -> None:
        get_logger().info(f"[{component}] {message}", **context)

    def warn(self, component: str, message: str, **context: Any) -> None:
        get_logger().warning(f"[{component}] {message}", **context)


def tracer_for(config: Any) -> Tracer:
    """Pick the tracer implied by a config's ``debug`` flag."""
    if getattr(config, "debug", False):
        return LoggerTracer()
    return NullTracer()
