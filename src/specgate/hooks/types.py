"""Automation rule models: triggers, actions and dispatch results."""
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HookEventType(str, Enum):
    """Workspace events that can fire automation rules."""

    FILE_SAVE = "file_save"
    MESSAGE_SENT = "message_sent"
    SESSION_CREATED = "session_created"
    AGENT_COMPLETE = "agent_complete"
    MANUAL = "manual"


def _require_text(value: str, field_name: str) -> str:
    if not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    return value


class FileSaveTrigger(BaseModel):
    """Fires when a file is saved, optionally only for paths matching a glob."""

    type: Literal["file_save"] = "file_save"
    pattern: str | None = Field(default=None, description="Glob the saved path must match")


class MessageSentTrigger(BaseModel):
    """Fires when the user sends a message to the agent."""

    type: Literal["message_sent"] = "message_sent"


class SessionCreatedTrigger(BaseModel):
    """Fires when a new agent session starts."""

    type: Literal["session_created"] = "session_created"


class AgentCompleteTrigger(BaseModel):
    """Fires when the agent finishes a task."""

    type: Literal["agent_complete"] = "agent_complete"


class ManualTrigger(BaseModel):
    """Only fires when triggered explicitly."""

    type: Literal["manual"] = "manual"


Trigger = Annotated[
    FileSaveTrigger
    | MessageSentTrigger
    | SessionCreatedTrigger
    | AgentCompleteTrigger
    | ManualTrigger,
    Field(discriminator="type"),
]


class SendMessageAction(BaseModel):
    """Sends a message to the agent.

    The message may contain {filePath}, {message} and {event} placeholders.
    """

    type: Literal["send_message"] = "send_message"
    message: str

    @field_validator("message")
    @classmethod
    def _message_not_empty(cls, value: str) -> str:
        return _require_text(value, "send_message action message")


class ExecuteCommandAction(BaseModel):
    """Runs a shell command, optionally in a working directory."""

    type: Literal["execute_command"] = "execute_command"
    command: str
    cwd: str | None = None

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value: str) -> str:
        return _require_text(value, "execute_command action command")


Action = Annotated[
    SendMessageAction | ExecuteCommandAction,
    Field(discriminator="type"),
]


class AutomationRule(BaseModel):
    """A trigger to action binding.

    Attributes:
        id: Unique rule identifier, also the document name in the hooks store.
        name: Display name.
        description: Optional free text.
        enabled: Disabled rules stay registered but never fire.
        trigger: Event condition that activates the rule.
        action: Effect produced once triggered.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str | None = None
    enabled: bool = True
    trigger: Trigger
    action: Action

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, value: str) -> str:
        return _require_text(value, "Rule id")

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        return _require_text(value, "Rule name")


class HookContext(BaseModel):
    """Event payload passed to dispatched rules.

    Attributes:
        event: Name of the event being dispatched.
        file_path: Saved file path, for file_save events.
        message: User message text, for message_sent events.
        spec_name: Specification the event relates to.
        task_id: Task the event relates to.
    """

    event: str | None = None
    file_path: str | None = None
    message: str | None = None
    spec_name: str | None = None
    task_id: str | None = None


class DispatchResult(BaseModel):
    """Outcome of running one rule's action.

    Attributes:
        rule_id: Rule the result belongs to.
        success: Whether the action completed.
        output: Captured output on success.
        error: Diagnostic text on failure.
    """

    rule_id: str
    success: bool
    output: str | None = None
    error: str | None = None
