"""Staged specification workflow: phase gate and edit approvals."""
from specgate.workflow.approvals import (
    ApplyResult,
    ApprovalQueue,
    EditOperation,
    FileEdit,
    PendingChange,
)
from specgate.workflow.controller import (
    AgentEvent,
    AgentReply,
    AgentResponse,
    Responder,
    WorkflowController,
)
from specgate.workflow.phases import PhaseGate, WorkflowPhase, WorkflowState

__all__ = [
    "AgentEvent",
    "AgentReply",
    "AgentResponse",
    "ApplyResult",
    "ApprovalQueue",
    "EditOperation",
    "FileEdit",
    "PendingChange",
    "PhaseGate",
    "Responder",
    "WorkflowController",
    "WorkflowPhase",
    "WorkflowState",
]
