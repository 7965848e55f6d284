"""Typed step configurations parsed from free-form step payloads.

Each step's JSON payload is validated once, when the step is loaded, into a
variant keyed by step type and sub-type (``actionType``, ``filterType``).
A payload that does not validate is kept as :class:`InvalidConfig` so the
failure surfaces when (and only when) that step executes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class PayloadModel(BaseModel):
    """Base for payload variants: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TriggerConfig(PayloadModel):
    kind: Literal["trigger"] = "trigger"
    trigger_type: str = Field(default="webhook", alias="triggerType")
    frequency: Optional[str] = None
    time: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def is_schedule(self) -> bool:
        return self.trigger_type == "schedule"


class ParseConfig(PayloadModel):
    kind: Literal["parse"] = "parse"
    parse_type: Optional[str] = Field(default=None, alias="parseType")
    format: Optional[str] = None
    delimiter: str = ","

    @property
    def parser_key(self) -> Optional[str]:
        """Sub-parser lookup key: ``parseType`` first, then ``format``."""
        return self.parse_type or self.format


class ConditionFilter(PayloadModel):
    kind: Literal["filter"] = "filter"
    filter_type: Literal["condition"] = Field(default="condition", alias="filterType")
    field: str
    operator: str
    value: Any = None


class ValidationFilter(PayloadModel):
    kind: Literal["filter"] = "filter"
    filter_type: Literal["validation"] = Field(default="validation", alias="filterType")
    required_fields: List[str] = Field(default_factory=list, alias="requiredFields")


class PassThroughFilter(PayloadModel):
    kind: Literal["filter"] = "filter"
    filter_type: Any = Field(default=None, alias="filterType")


class Destination(PayloadModel):
    db_type: str = "log"
    options: Dict[str, Any] = Field(default_factory=dict)


class DatabaseAction(PayloadModel):
    kind: Literal["action"] = "action"
    action_type: Literal["database"] = Field(default="database", alias="actionType")
    table: str
    operation: str
    destination: Destination = Field(default_factory=Destination)


class ApiCallAction(PayloadModel):
    kind: Literal["action"] = "action"
    action_type: Literal["api_call"] = Field(default="api_call", alias="actionType")
    url: str
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)


class EmailAction(PayloadModel):
    kind: Literal["action"] = "action"
    action_type: Literal["email"] = Field(default="email", alias="actionType")
    to: str
    subject: str
    body: Optional[str] = None


class PassThroughAction(PayloadModel):
    kind: Literal["action"] = "action"
    action_type: Any = Field(default=None, alias="actionType")


class InvalidConfig(BaseModel):
    """Placeholder for a payload that failed validation."""

    step_type: str
    error: str


class RawConfig(BaseModel):
    """Payload of a step type with no typed variant; kept as-is."""

    data: Dict[str, Any] = Field(default_factory=dict)


StepConfig = Union[
    TriggerConfig,
    ParseConfig,
    ConditionFilter,
    ValidationFilter,
    PassThroughFilter,
    DatabaseAction,
    ApiCallAction,
    EmailAction,
    PassThroughAction,
    InvalidConfig,
    RawConfig,
]

ACTION_MODELS: Dict[str, Type[PayloadModel]] = {
    "database": DatabaseAction,
    "api_call": ApiCallAction,
    "email": EmailAction,
}

FILTER_MODELS: Dict[str, Type[PayloadModel]] = {
    "condition": ConditionFilter,
    "validation": ValidationFilter,
}


def register_action_model(action_type: str, model: Type[PayloadModel]) -> None:
    """Register the payload variant used for a new ``actionType``."""
    ACTION_MODELS[action_type] = model


def register_filter_model(filter_type: str, model: Type[PayloadModel]) -> None:
    """Register the payload variant used for a new ``filterType``."""
    FILTER_MODELS[filter_type] = model


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _select_model(step_type: str, payload: Dict[str, Any]) -> Optional[Type[BaseModel]]:
    if step_type == "trigger":
        return TriggerConfig
    if step_type == "parse":
        return ParseConfig
    if step_type == "filter":
        tag = payload.get("filterType")
        if isinstance(tag, str):
            return FILTER_MODELS.get(tag, PassThroughFilter)
        return PassThroughFilter
    if step_type == "action":
        tag = payload.get("actionType")
        if isinstance(tag, str):
            return ACTION_MODELS.get(tag, PassThroughAction)
        return PassThroughAction
    return None


def parse_step_config(step_type: str, payload: Optional[Dict[str, Any]]) -> StepConfig:
    """Validate ``payload`` into the typed variant for ``step_type``."""
    payload = payload or {}
    model = _select_model(step_type, payload)
    if model is None:
        return RawConfig(data=dict(payload))
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        return InvalidConfig(step_type=step_type, error=_describe(exc))
