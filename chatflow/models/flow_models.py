# chatflow/models/flow_models.py
"""
Typed building blocks of a chatbot flow.

Nodes are a closed set of pydantic models discriminated by ``kind``; each
variant only carries the fields its kind needs. The persisted editor keys
(``message``, ``question``, ``conditionMode`` ...) are accepted as aliases so
that a stored node ``data`` blob can be validated directly.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeKind(str, Enum):
    START = "start"
    MESSAGE = "message"
    QUESTION = "question"
    CONDITION = "condition"
    ACTION = "action"
    DELAY = "delay"
    AI_RESPONSE = "ai_response"
    END = "end"
    UNKNOWN = "unknown"


class ConditionMode(str, Enum):
    VARIABLE = "variable"
    AI_INTENT = "ai_intent"


class LogicOperator(str, Enum):
    AND = "and"
    OR = "or"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class DelayUnit(str, Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"


class AiResponseMode(str, Enum):
    EXISTING = "existing"
    CUSTOM = "custom"


class ActionType(str, Enum):
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    SET_VARIABLE = "set_variable"
    MOVE_FUNNEL = "move_funnel"
    TRANSFER = "transfer"
    HTTP_REQUEST = "http_request"
    SEND_NOTIFICATION = "send_notification"
    UNKNOWN = "unknown"


# Older editor versions stored these names
ACTION_TYPE_ALIASES: Dict[str, str] = {
    "move_to_funnel": ActionType.MOVE_FUNNEL.value,
    "transfer_to_human": ActionType.TRANSFER.value,
    "webhook": ActionType.HTTP_REQUEST.value,
}

NO_INTENT = "none"


def _to_text(value: Any) -> Any:
    """Numbers typed into editor fields arrive as JSON numbers."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


# =============================================================================
# CONDITION PAYLOAD
# =============================================================================

class ConditionRule(BaseModel):
    """One ``{variable, operator, value}`` triple of a variable-mode condition."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: Optional[str] = None
    variable: str = ""
    operator: str = ConditionOperator.EQUALS.value
    value: str = ""

    @field_validator("variable", "operator", "value", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _to_text(value)


class Intent(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    label: str = ""
    description: str = ""


# =============================================================================
# ACTION PAYLOADS
# =============================================================================

class _ActionBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class TagAction(_ActionBase):
    action_type: Literal["add_tag", "remove_tag"]
    tag_name: str = Field(default="", validation_alias=AliasChoices("tag_name", "tagName"))


class SetVariableAction(_ActionBase):
    action_type: Literal["set_variable"]
    variable_name: str = Field(
        default="", validation_alias=AliasChoices("variable_name", "variableName", "varName")
    )
    variable_value: str = Field(
        default="", validation_alias=AliasChoices("variable_value", "variableValue", "varValue")
    )

    @field_validator("variable_name", "variable_value", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _to_text(value)


class MoveFunnelAction(_ActionBase):
    action_type: Literal["move_funnel"]
    funnel_id: str = Field(default="", validation_alias=AliasChoices("funnel_id", "funnelId"))
    stage_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("stage_id", "stageId"))


class TransferAction(_ActionBase):
    action_type: Literal["transfer"]
    mode: str = "immediate"


class HttpRequestAction(_ActionBase):
    action_type: Literal["http_request"]
    url: str = Field(default="", validation_alias=AliasChoices("url", "webhookUrl", "webhook_url"))
    method: str = "POST"
    body: Optional[Any] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) and value else "POST"


class SendNotificationAction(_ActionBase):
    action_type: Literal["send_notification"]
    message: Optional[str] = None


class UnknownAction(_ActionBase):
    action_type: Literal["unknown"]
    raw_type: str = ActionType.UNKNOWN.value
    raw_config: Dict[str, Any] = Field(default_factory=dict)


ActionConfig = Annotated[
    Union[
        TagAction,
        SetVariableAction,
        MoveFunnelAction,
        TransferAction,
        HttpRequestAction,
        SendNotificationAction,
        UnknownAction,
    ],
    Field(discriminator="action_type"),
]

_KNOWN_ACTION_TYPES = {t.value for t in ActionType if t is not ActionType.UNKNOWN}


# =============================================================================
# NODES
# =============================================================================

class _NodeBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str
    position: Position = Field(default_factory=Position)


class StartNode(_NodeBase):
    kind: Literal["start"] = "start"
    label: Optional[str] = None


class MessageNode(_NodeBase):
    kind: Literal["message"] = "message"
    text: str = Field(default="", validation_alias=AliasChoices("text", "message"))
    delay_seconds: float = Field(default=0, validation_alias=AliasChoices("delay_seconds", "delay"))

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _to_text(value)

    @field_validator("delay_seconds", mode="before")
    @classmethod
    def _empty_delay(cls, value: Any) -> Any:
        return 0 if value in (None, "") else value


class QuestionNode(_NodeBase):
    kind: Literal["question"] = "question"
    prompt: str = Field(default="", validation_alias=AliasChoices("prompt", "question"))
    variable_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("variable_name", "variableName", "variable")
    )
    options: List[str] = Field(default_factory=list)

    @field_validator("variable_name", mode="before")
    @classmethod
    def _blank_variable(cls, value: Any) -> Any:
        return value or None

    @field_validator("options", mode="before")
    @classmethod
    def _clean_options(cls, value: Any) -> Any:
        if value is None:
            return []
        return [str(option) for option in value if str(option).strip()]


class ConditionNode(_NodeBase):
    kind: Literal["condition"] = "condition"
    mode: ConditionMode = Field(
        default=ConditionMode.VARIABLE, validation_alias=AliasChoices("mode", "conditionMode")
    )
    logic_operator: LogicOperator = Field(
        default=LogicOperator.AND, validation_alias=AliasChoices("logic_operator", "logicOperator")
    )
    conditions: List[ConditionRule] = Field(default_factory=list)
    intents: List[Intent] = Field(default_factory=list)
    ai_config_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ai_config_id", "aiConfigId")
    )

    @field_validator("mode", "logic_operator", mode="before")
    @classmethod
    def _default_when_blank(cls, value: Any, info) -> Any:
        if value:
            return value
        return ConditionMode.VARIABLE if info.field_name == "mode" else LogicOperator.AND

    @property
    def intent_ids(self) -> List[str]:
        return [intent.id for intent in self.intents]


class ActionNode(_NodeBase):
    kind: Literal["action"] = "action"
    action: ActionConfig

    @model_validator(mode="before")
    @classmethod
    def _build_action(cls, data: Any) -> Any:
        """Fold the stored ``actionType`` + ``config`` pair into one typed action."""
        if not isinstance(data, dict) or "action" in data:
            return data

        data = dict(data)
        raw_type = data.pop("actionType", None) or data.pop("action_type", None) or ActionType.UNKNOWN.value
        config = data.pop("config", None) or {}
        action_type = ACTION_TYPE_ALIASES.get(raw_type, raw_type)

        if action_type in _KNOWN_ACTION_TYPES:
            data["action"] = {**config, "action_type": action_type}
        else:
            data["action"] = {
                "action_type": ActionType.UNKNOWN.value,
                "raw_type": raw_type,
                "raw_config": config,
            }
        return data

    @property
    def action_type(self) -> str:
        if isinstance(self.action, UnknownAction):
            return self.action.raw_type
        return self.action.action_type


class DelayNode(_NodeBase):
    kind: Literal["delay"] = "delay"
    duration: float = 5
    unit: DelayUnit = DelayUnit.SECONDS

    @property
    def duration_seconds(self) -> float:
        factor = {DelayUnit.SECONDS: 1, DelayUnit.MINUTES: 60, DelayUnit.HOURS: 3600}[self.unit]
        return self.duration * factor


class AiResponseNode(_NodeBase):
    kind: Literal["ai_response"] = "ai_response"
    mode: AiResponseMode = AiResponseMode.CUSTOM
    prompt: Optional[str] = None
    agent_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("agent_ref", "agentRef", "agentId")
    )
    max_tokens: int = Field(default=500, validation_alias=AliasChoices("max_tokens", "maxTokens"))


class EndNode(_NodeBase):
    kind: Literal["end"] = "end"
    label: Optional[str] = None


class UnknownNode(_NodeBase):
    """A node whose stored type this engine does not know."""
    kind: Literal["unknown"] = "unknown"
    type_name: str = ""
    raw_data: Dict[str, Any] = Field(default_factory=dict)


FlowNode = Annotated[
    Union[
        StartNode,
        MessageNode,
        QuestionNode,
        ConditionNode,
        ActionNode,
        DelayNode,
        AiResponseNode,
        EndNode,
        UnknownNode,
    ],
    Field(discriminator="kind"),
]

KNOWN_NODE_KINDS = {k.value for k in NodeKind if k is not NodeKind.UNKNOWN}


class FlowEdge(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str
    source: str = Field(validation_alias=AliasChoices("source", "source_node_id"))
    target: str = Field(validation_alias=AliasChoices("target", "target_node_id"))
    source_handle: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("source_handle", "sourceHandle")
    )
    target_handle: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("target_handle", "targetHandle")
    )
    label: Optional[str] = None

    @field_validator("source_handle", "target_handle", mode="before")
    @classmethod
    def _blank_handle(cls, value: Any) -> Any:
        return value or None


# =============================================================================
# TRANSCRIPT
# =============================================================================

class TranscriptRole(str, Enum):
    BOT = "bot"
    USER = "user"
    SYSTEM = "system"


class TranscriptEvent(str, Enum):
    FLOW_STARTED = "flow_started"
    FLOW_ENDED = "flow_ended"
    NO_START_NODE = "no_start_node"
    NO_START_EDGE = "no_start_edge"
    NODE_NOT_FOUND = "node_not_found"
    MESSAGE_DELAY = "message_delay"
    CONDITION_EVALUATED = "condition_evaluated"
    INTENT_CLASSIFIED = "intent_classified"
    DEAD_END = "dead_end"
    ACTION_EXECUTED = "action_executed"
    ACTION_FAILED = "action_failed"
    UNKNOWN_ACTION = "unknown_action"
    DELAY = "delay"
    AI_SIMULATED = "ai_simulated"
    AI_FAILED = "ai_failed"
    UNKNOWN_NODE = "unknown_node"
    STEP_BUDGET_EXCEEDED = "step_budget_exceeded"


class TranscriptEntry(BaseModel):
    """One line of the transcript. Entries are immutable once created."""
    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid4()))
    role: TranscriptRole
    text: str
    event: Optional[TranscriptEvent] = None
    node_id: Optional[str] = None
    options: Optional[List[str]] = None
    simulated: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
