"""TracerController implementation."""

from typing import Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


class ITracer(Protocol):
    """Per-module toggle for call-level event capture."""

    def start_trace(self, module: str) -> None:
        """Enable call/cast/info capture for a module. Idempotent."""
        ...

    def stop_trace(self, module: str) -> None:
        """Disable call/cast/info capture for a module. Idempotent."""
        ...

    def is_traced(self, module: str) -> bool:
        """Whether a module currently emits call-level events."""
        ...


class TracerController:
    """Keeps the set of modules with call-level tracing enabled."""

    def __init__(self) -> None:
        self._traced: set[str] = set()

    def start_trace(self, module: str) -> None:
        """Enable call/cast/info capture for a module."""
        if module in self._traced:
            return
        self._traced.add(module)
        logger.info("Tracing started for %s", module)

    def stop_trace(self, module: str) -> None:
        """Disable call/cast/info capture for a module."""
        if module not in self._traced:
            return
        self._traced.discard(module)
        logger.info("Tracing stopped for %s", module)

    def is_traced(self, module: str) -> bool:
        return module in self._traced

    def traced_modules(self) -> list[str]:
        """Currently traced modules, sorted."""
        return sorted(self._traced)
