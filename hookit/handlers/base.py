"""Base step handler interface for hookit step execution."""

from __future__ import annotations

import abc
from typing import Optional

from ..contracts import DataContext, Step


class StepHandler(metaclass=abc.ABCMeta):
    """Abstract handler executing one step type against a data context."""

    @abc.abstractmethod
    async def execute(self, step: Step, context: DataContext) -> Optional[DataContext]:
        """Run ``step`` and return the next context.

        Returning ``None`` keeps the current context. Raise a
        :class:`~hookit.errors.HookitError` subclass to fail the step.
        """
        raise NotImplementedError


class PassThroughHandler(StepHandler):
    """Identity transform used for unknown types."""

    async def execute(self, step: Step, context: DataContext) -> Optional[DataContext]:
        return context


class TriggerStepHandler(PassThroughHandler):
    """Trigger steps leave the context untouched when executed."""
