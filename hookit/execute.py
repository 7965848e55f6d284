"""Step execution engine for hookit workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from .constants import DEFAULT_STEP_TIMEOUT
from .contracts import DataContext, Step
from .errors import UpstreamFailure
from .handlers import PassThroughHandler, StepHandler, default_handlers

logger = logging.getLogger(__name__)


class StepExecutor:
    """Executes single steps by dispatching on the step type.

    Handlers are looked up in a registry keyed by type tag; types without a
    handler pass the context through unchanged. Every handler call is
    bounded by ``step_timeout``.
    """

    def __init__(
        self,
        handlers: Optional[Dict[str, StepHandler]] = None,
        step_timeout: float = DEFAULT_STEP_TIMEOUT,
    ) -> None:
        self._handlers: Dict[str, StepHandler] = (
            dict(handlers) if handlers is not None else default_handlers()
        )
        self._fallback = PassThroughHandler()
        self.step_timeout = step_timeout

    def register(self, step_type: str, handler: StepHandler) -> None:
        """Add or replace the handler for ``step_type``."""
        self._handlers[step_type] = handler

    def handler_for(self, step_type: str) -> StepHandler:
        handler = self._handlers.get(step_type)
        if handler is None:
            logger.warning(f"No handler for step type '{step_type}', passing through")
            return self._fallback
        return handler

    async def execute(self, step: Step, context: DataContext) -> DataContext:
        """Run ``step`` against ``context`` and return the next context."""
        logger.info(f"Executing step: {step.name} (Type: {step.type})")
        handler = self.handler_for(step.type)
        try:
            result = await asyncio.wait_for(
                handler.execute(step, context), timeout=self.step_timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamFailure(
                f"timed out after {self.step_timeout}s"
            ) from e
        return context if result is None else result
