"""Workflow controller: phase gate, approval queue and event forwarding."""

import inspect
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal, Protocol

import structlog
from pydantic import BaseModel, Field

from specgate.hooks.engine import HookEngine
from specgate.hooks.types import DispatchResult, HookContext, HookEventType
from specgate.protocols import FileSink, Subscription
from specgate.workflow.approvals import ApplyResult, ApprovalQueue, FileEdit, PendingChange
from specgate.workflow.phases import PhaseGate, WorkflowPhase, WorkflowState

logger = structlog.get_logger()


class AgentEvent(str, Enum):
    """Events the controller reports to its own listeners."""

    MESSAGE_SENT = "message_sent"
    RESPONSE_RECEIVED = "response_received"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"


AgentEventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]


class AgentReply(BaseModel):
    """What the responder produced for a message.

    Attributes:
        content: Reply text.
        edits: File edits the agent proposes; queued for approval.
    """

    content: str
    edits: list[FileEdit] = Field(default_factory=list)


class Responder(Protocol):
    """Opaque language-model responder."""

    async def respond(self, message: str) -> AgentReply:
        """Produce a reply for a user message."""
        ...


class AgentResponse(BaseModel):
    """Result of handling one user message.

    Attributes:
        content: Reply text, or the error description.
        status: success, pending_approval when edits were queued, or error.
        change_id: Pending change holding the proposed edits.
        hook_results: Results of message_sent rules.
    """

    content: str
    status: Literal["success", "pending_approval", "error"]
    change_id: str | None = None
    hook_results: list[DispatchResult] = Field(default_factory=list)


class Session(BaseModel):
    """Identity of the controller's agent session."""

    id: str = Field(default_factory=lambda: f"session-{uuid.uuid4().hex[:12]}")
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class WorkflowController:
    """Entry point for workspace events.

    Owns the per-specification phase gate and the approval queue for
    proposed edits, and forwards every event to the hook engine so
    matching rules fire.
    """

    def __init__(self, hooks: HookEngine, responder: Responder | None = None) -> None:
        """Initialize the controller.

        Args:
            hooks: Engine receiving forwarded events.
            responder: Produces replies to user messages. Without one,
                messages are acknowledged with a fixed reply.
        """
        self.hooks = hooks
        self.responder = responder
        self.phases = PhaseGate()
        self.approvals = ApprovalQueue()
        self.session = Session()
        self._handlers: dict[AgentEvent, list[AgentEventHandler]] = {}

    def on(self, event: AgentEvent, handler: AgentEventHandler) -> Subscription:
        """Register a handler for a controller event.

        Returns:
            Subscription that removes the handler.
        """
        handlers = self._handlers.setdefault(event, [])
        handlers.append(handler)
        return Subscription(lambda: self.off(event, handler))

    def off(self, event: AgentEvent, handler: AgentEventHandler) -> None:
        """Remove a previously registered handler."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def _emit(self, event: AgentEvent, data: dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                outcome = handler(data)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("agent_event_handler_failed", agent_event=event.value, error=str(e))

    async def start_session(self) -> list[DispatchResult]:
        """Announce the session and fire session_created rules."""
        logger.info("session_started", session_id=self.session.id)
        return await self.hooks.dispatch(HookEventType.SESSION_CREATED, HookContext())

    async def handle_message(self, content: str) -> AgentResponse:
        """Process a user message.

        Fires message_sent rules, asks the responder for a reply and
        queues any proposed edits for approval.

        Args:
            content: Message text.

        Returns:
            The reply and its status.
        """
        await self._emit(AgentEvent.MESSAGE_SENT, {"message": content})
        hook_results = await self.hooks.dispatch(
            HookEventType.MESSAGE_SENT, HookContext(message=content)
        )

        if self.responder is None:
            reply = AgentReply(content="Message processed successfully.")
        else:
            try:
                reply = await self.responder.respond(content)
            except Exception as e:
                logger.error("responder_failed", error=str(e))
                return AgentResponse(
                    content=f"Error processing message: {e}",
                    status="error",
                    hook_results=hook_results,
                )

        if reply.edits:
            change_id = self.approvals.queue(reply.edits)
            await self._emit(
                AgentEvent.RESPONSE_RECEIVED,
                {"response": reply.content, "change_id": change_id},
            )
            return AgentResponse(
                content=reply.content,
                status="pending_approval",
                change_id=change_id,
                hook_results=hook_results,
            )

        await self._emit(AgentEvent.RESPONSE_RECEIVED, {"response": reply.content})
        return AgentResponse(content=reply.content, status="success", hook_results=hook_results)

    async def file_saved(self, path: str) -> list[DispatchResult]:
        """Fire file_save rules for a saved path."""
        return await self.hooks.dispatch(HookEventType.FILE_SAVE, HookContext(file_path=path))

    async def start_task(self, spec_name: str, task_id: str) -> None:
        """Report that the agent began work on a task."""
        await self._emit(AgentEvent.TASK_STARTED, {"spec_name": spec_name, "task_id": task_id})

    async def complete_task(self, spec_name: str, task_id: str) -> list[DispatchResult]:
        """Report a finished task and fire agent_complete rules."""
        await self._emit(AgentEvent.TASK_COMPLETED, {"spec_name": spec_name, "task_id": task_id})
        return await self.hooks.dispatch(
            HookEventType.AGENT_COMPLETE,
            HookContext(spec_name=spec_name, task_id=task_id),
        )

    def get_workflow_phase(self, spec_name: str) -> WorkflowPhase:
        return self.phases.phase(spec_name)

    def get_workflow_state(self, spec_name: str) -> WorkflowState:
        return self.phases.state(spec_name)

    def can_transition(self, spec_name: str, phase: WorkflowPhase | str) -> bool:
        return self.phases.can_transition(spec_name, phase)

    def transition(self, spec_name: str, phase: WorkflowPhase | str) -> bool:
        return self.phases.transition(spec_name, phase)

    def approve_current_phase(self, spec_name: str) -> bool:
        return self.phases.approve_current_phase(spec_name)

    def reset_phase_approval(self, spec_name: str, phase: WorkflowPhase | str) -> WorkflowState:
        return self.phases.reset_phase_approval(spec_name, phase)

    def queue_changes(self, edits: Iterable[FileEdit | Mapping[str, Any]]) -> str:
        return self.approvals.queue(edits)

    def approve_change(self, change_id: str) -> bool:
        return self.approvals.approve(change_id)

    def reject_change(self, change_id: str) -> bool:
        return self.approvals.reject(change_id)

    def list_pending(self) -> list[PendingChange]:
        return self.approvals.list_pending()

    async def apply_approved_changes(self, sink: FileSink) -> ApplyResult:
        return await self.approvals.apply_approved(sink)
