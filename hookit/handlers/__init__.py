"""Step handlers and the default type registry."""

from __future__ import annotations

from typing import Dict, Optional

from ..config import HookitConfig
from .action import ActionStepHandler, EmailSender, LoggingEmailSender, LoggingSink
from .base import PassThroughHandler, StepHandler, TriggerStepHandler
from .filter import FilterStepHandler
from .parse import ParseStepHandler


def default_handlers(
    config: Optional[HookitConfig] = None,
    action_handler: Optional[ActionStepHandler] = None,
) -> Dict[str, StepHandler]:
    """Build the built-in handler set keyed by step type."""

    config = config or HookitConfig()
    return {
        "trigger": TriggerStepHandler(),
        "parse": ParseStepHandler(),
        "filter": FilterStepHandler(),
        "action": action_handler
        or ActionStepHandler(http_timeout=config.execution.http_timeout),
    }


__all__ = [
    "StepHandler",
    "PassThroughHandler",
    "TriggerStepHandler",
    "ParseStepHandler",
    "FilterStepHandler",
    "ActionStepHandler",
    "EmailSender",
    "LoggingEmailSender",
    "LoggingSink",
    "default_handlers",
]
