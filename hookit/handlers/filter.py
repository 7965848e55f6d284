"""Filter step handler: condition and validation gates."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..contracts import DataContext, Step
from ..errors import ConfigurationError, StepRejected, UnsupportedType
from ..payloads import ConditionFilter, InvalidConfig, ValidationFilter
from .base import StepHandler

logger = logging.getLogger(__name__)

_MISSING = object()

Predicate = Callable[[Any, Any], bool]


def _contains(actual: Any, expected: Any) -> bool:
    try:
        return expected in actual
    except TypeError:
        return False


def _compare(op: Callable[[Any, Any], bool]) -> Predicate:
    def predicate(actual: Any, expected: Any) -> bool:
        try:
            return op(actual, expected)
        except TypeError:
            return False

    return predicate


DEFAULT_OPERATORS: Dict[str, Predicate] = {
    "equals": lambda actual, expected: actual == expected,
    "not_equals": lambda actual, expected: actual != expected,
    "contains": _contains,
    "greater_than": _compare(lambda a, b: a > b),
    "less_than": _compare(lambda a, b: a < b),
    "exists": lambda actual, expected: actual is not _MISSING,
}


def _lookup(context: DataContext, field: str) -> Any:
    """Resolve a dotted ``field`` path against nested mappings."""
    current: Any = context
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


class FilterStepHandler(StepHandler):
    """Evaluates gate filters without mutating the context.

    A failing gate raises :class:`StepRejected`, which ends the run early
    without marking it as failed. Unknown filter types pass through.
    """

    def __init__(self, operators: Optional[Dict[str, Predicate]] = None) -> None:
        self._operators: Dict[str, Predicate] = dict(DEFAULT_OPERATORS)
        if operators:
            self._operators.update(operators)

    def register_operator(self, name: str, predicate: Predicate) -> None:
        self._operators[name] = predicate

    async def execute(self, step: Step, context: DataContext) -> Optional[DataContext]:
        config = step.config
        if isinstance(config, InvalidConfig):
            raise ConfigurationError(config.error)

        if isinstance(config, ConditionFilter):
            self._apply_condition(step, config, context)
        elif isinstance(config, ValidationFilter):
            self._apply_validation(step, config, context)
        else:
            logger.warning(
                f"Unknown filter type: {getattr(config, 'filter_type', None)}"
            )

        logger.info(f"Executed filter step: {step.name}")
        return context

    def _apply_condition(
        self, step: Step, config: ConditionFilter, context: DataContext
    ) -> None:
        predicate = self._operators.get(config.operator)
        if predicate is None:
            raise UnsupportedType(f"unsupported filter operator: {config.operator}")

        logger.info(f"Applying filter: {config.field} {config.operator} {config.value!r}")
        actual = _lookup(context, config.field)
        if actual is _MISSING and config.operator != "exists":
            raise StepRejected(f"field '{config.field}' not present")
        if not predicate(actual, config.value):
            raise StepRejected(
                f"condition {config.field} {config.operator} {config.value!r} not met"
            )

    def _apply_validation(
        self, step: Step, config: ValidationFilter, context: DataContext
    ) -> None:
        logger.info("Applying validation filter")
        missing = [f for f in config.required_fields if _lookup(context, f) is _MISSING]
        if missing:
            raise StepRejected(f"missing required fields: {', '.join(missing)}")
