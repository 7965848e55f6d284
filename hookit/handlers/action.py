"""Action step handler and pluggable action back-ends."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import httpx
from pydantic_core import to_jsonable_python

from ..constants import DEFAULT_HTTP_TIMEOUT
from ..contracts import DataContext, Step
from ..errors import (
    ConfigurationError,
    DestinationUnsupported,
    HookitError,
    UnsupportedType,
    UpstreamFailure,
)
from ..payloads import ApiCallAction, DatabaseAction, EmailAction, InvalidConfig
from .base import StepHandler

logger = logging.getLogger(__name__)

SUPPORTED_OPERATIONS = frozenset({"insert", "update", "upsert"})
SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

ActionFn = Callable[[Step, Any, DataContext], Awaitable[None]]


class DatabaseSink(Protocol):
    """Destination for ``database`` actions."""

    async def write(self, table: str, operation: str, context: DataContext) -> None:
        """Apply ``operation`` on ``table`` using values from ``context``."""


class EmailSender(Protocol):
    """Delivery back-end for ``email`` actions."""

    async def send(self, to: str, subject: str, body: Optional[str]) -> None:
        """Deliver one message."""


class LoggingSink:
    """Default sink: records the intended write in the log."""

    async def write(self, table: str, operation: str, context: DataContext) -> None:
        logger.info(f"Database action: {operation} on table {table}")


class LoggingEmailSender:
    """Default sender: records the outgoing message in the log."""

    async def send(self, to: str, subject: str, body: Optional[str]) -> None:
        logger.info(f"Sending email to: {to} with subject: {subject}")


def request_body(context: DataContext) -> Any:
    """JSON-compatible copy of ``context`` without raw file bytes."""
    cleaned = {k: v for k, v in context.items() if not isinstance(v, (bytes, bytearray))}
    return to_jsonable_python(cleaned, fallback=str)


class ActionStepHandler(StepHandler):
    """Dispatches ``action`` steps on ``actionType``.

    Actions are side effects: the context is returned unchanged. Unknown
    action types pass through. Errors raised by a back-end that are not
    already engine errors are reported as :class:`UpstreamFailure`.
    """

    def __init__(
        self,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        email_sender: Optional[EmailSender] = None,
        sinks: Optional[Dict[str, DatabaseSink]] = None,
    ) -> None:
        self.http_timeout = http_timeout
        self._http_transport = http_transport
        self.email_sender: EmailSender = email_sender or LoggingEmailSender()
        self.sinks: Dict[str, DatabaseSink] = {"log": LoggingSink()}
        if sinks:
            self.sinks.update(sinks)
        self._actions: Dict[str, ActionFn] = {
            "database": self._database,
            "api_call": self._api_call,
            "email": self._email,
        }

    def register_action(self, action_type: str, action: ActionFn) -> None:
        """Register a coroutine ``action(step, config, context)``."""
        self._actions[action_type] = action

    def register_sink(self, db_type: str, sink: DatabaseSink) -> None:
        self.sinks[db_type] = sink

    async def execute(self, step: Step, context: DataContext) -> Optional[DataContext]:
        config = step.config
        if isinstance(config, InvalidConfig):
            raise ConfigurationError(config.error)

        action_type = getattr(config, "action_type", None)
        action = self._actions.get(action_type) if isinstance(action_type, str) else None
        if action is None:
            logger.warning(f"Unknown action type: {action_type}")
            return context

        try:
            await action(step, config, context)
        except HookitError:
            raise
        except Exception as e:
            raise UpstreamFailure(f"{action_type} action failed: {e}") from e
        return context

    async def _database(
        self, step: Step, config: DatabaseAction, context: DataContext
    ) -> None:
        operation = config.operation.lower()
        if operation not in SUPPORTED_OPERATIONS:
            raise UnsupportedType(f"unsupported database operation: {config.operation}")
        sink = self.sinks.get(config.destination.db_type)
        if sink is None:
            raise DestinationUnsupported(
                f"unsupported database type: {config.destination.db_type}"
            )
        logger.info(f"Executing database action: {operation} on table {config.table}")
        await sink.write(config.table, operation, context)

    async def _api_call(
        self, step: Step, config: ApiCallAction, context: DataContext
    ) -> None:
        method = config.method.upper()
        if method not in SUPPORTED_METHODS:
            raise UnsupportedType(f"unsupported HTTP method: {config.method}")

        logger.info(f"Executing API call: {method} {config.url}")
        kwargs: Dict[str, Any] = {"headers": config.headers}
        if method != "GET":
            kwargs["json"] = request_body(context)
        try:
            async with httpx.AsyncClient(
                timeout=self.http_timeout, transport=self._http_transport
            ) as client:
                response = await client.request(method, config.url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"{method} {config.url} failed: {e}") from e

        if response.status_code >= 400:
            raise UpstreamFailure(
                f"{method} {config.url} returned HTTP {response.status_code}"
            )

    async def _email(self, step: Step, config: EmailAction, context: DataContext) -> None:
        await self.email_sender.send(config.to, config.subject, config.body)
