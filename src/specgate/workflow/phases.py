"""Phase gate state machine for staged specification work."""
from enum import Enum

import structlog
from pydantic import BaseModel

from specgate.exceptions import ValidationError

logger = structlog.get_logger()


class WorkflowPhase(str, Enum):
    """Phases of a specification, in order."""

    REQUIREMENTS = "requirements"
    DESIGN = "design"
    TASKS = "tasks"
    IMPLEMENTATION = "implementation"


_NEXT_PHASE: dict[WorkflowPhase, WorkflowPhase] = {
    WorkflowPhase.REQUIREMENTS: WorkflowPhase.DESIGN,
    WorkflowPhase.DESIGN: WorkflowPhase.TASKS,
    WorkflowPhase.TASKS: WorkflowPhase.IMPLEMENTATION,
    WorkflowPhase.IMPLEMENTATION: WorkflowPhase.IMPLEMENTATION,
}


def coerce_phase(phase: WorkflowPhase | str) -> WorkflowPhase:
    """Convert a phase name into a WorkflowPhase.

    Raises:
        ValidationError: If the name is not a known phase.
    """
    try:
        return WorkflowPhase(phase)
    except ValueError as e:
        raise ValidationError(f"Unknown workflow phase: {phase}") from e


class WorkflowState(BaseModel):
    """Approval state of one specification.

    Attributes:
        spec_name: Specification the state belongs to.
        phase: Current phase.
        requirements_approved: Requirements signed off; gates design.
        design_approved: Design signed off; gates tasks.
        tasks_approved: Tasks signed off; gates implementation.
    """

    spec_name: str
    phase: WorkflowPhase = WorkflowPhase.REQUIREMENTS
    requirements_approved: bool = False
    design_approved: bool = False
    tasks_approved: bool = False


class PhaseGate:
    """Per-specification phase state machine with approval gates.

    States are created lazily on first reference and live for the
    session. Invalidating an earlier phase invalidates every phase built
    on top of it.
    """

    def __init__(self) -> None:
        self._states: dict[str, WorkflowState] = {}

    def state(self, spec_name: str) -> WorkflowState:
        """Return the state for a specification, creating it if needed."""
        state = self._states.get(spec_name)
        if state is None:
            state = WorkflowState(spec_name=spec_name)
            self._states[spec_name] = state
        return state

    def states(self) -> list[WorkflowState]:
        """Return every specification state referenced so far."""
        return list(self._states.values())

    def phase(self, spec_name: str) -> WorkflowPhase:
        """Return the current phase of a specification."""
        return self.state(spec_name).phase

    def can_transition(self, spec_name: str, target: WorkflowPhase | str) -> bool:
        """Check whether a specification may move to a phase.

        Requirements is always reachable; every later phase needs its
        predecessor approved.
        """
        target = coerce_phase(target)
        state = self.state(spec_name)
        if target is WorkflowPhase.REQUIREMENTS:
            return True
        if target is WorkflowPhase.DESIGN:
            return state.requirements_approved
        if target is WorkflowPhase.TASKS:
            return state.design_approved
        return state.tasks_approved

    def transition(self, spec_name: str, target: WorkflowPhase | str) -> bool:
        """Move a specification to a phase if the gate allows it.

        Returns:
            True if the phase changed or was already current.
        """
        target = coerce_phase(target)
        if not self.can_transition(spec_name, target):
            logger.info("phase_transition_blocked", spec=spec_name, target=target.value)
            return False
        self.state(spec_name).phase = target
        return True

    def approve_current_phase(self, spec_name: str) -> bool:
        """Approve the current phase and advance to the next.

        Approving in implementation keeps the phase unchanged.

        Returns:
            True once the approval is recorded.
        """
        state = self.state(spec_name)
        current = state.phase
        if current is WorkflowPhase.REQUIREMENTS:
            state.requirements_approved = True
        elif current is WorkflowPhase.DESIGN:
            state.design_approved = True
        elif current is WorkflowPhase.TASKS:
            state.tasks_approved = True

        state.phase = _NEXT_PHASE[current]
        logger.info(
            "phase_approved",
            spec=spec_name,
            approved=current.value,
            phase=state.phase.value,
        )
        return True

    def reset_phase_approval(
        self, spec_name: str, phase: WorkflowPhase | str
    ) -> WorkflowState:
        """Withdraw approval of a phase and of every phase after it.

        Resetting requirements returns to requirements. Resetting design
        clears design and tasks approvals and returns to design if the
        specification had moved past it. Resetting tasks clears only the
        tasks approval and returns to tasks from implementation.

        Implementation has no approval of its own, so resetting it leaves
        the state unchanged.

        Raises:
            ValidationError: If phase is not a known phase name.
        """
        phase = coerce_phase(phase)
        state = self.state(spec_name)
        if phase is WorkflowPhase.REQUIREMENTS:
            state.requirements_approved = False
            state.design_approved = False
            state.tasks_approved = False
            state.phase = WorkflowPhase.REQUIREMENTS
        elif phase is WorkflowPhase.DESIGN:
            state.design_approved = False
            state.tasks_approved = False
            if state.phase in (WorkflowPhase.TASKS, WorkflowPhase.IMPLEMENTATION):
                state.phase = WorkflowPhase.DESIGN
        elif phase is WorkflowPhase.TASKS:
            state.tasks_approved = False
            if state.phase is WorkflowPhase.IMPLEMENTATION:
                state.phase = WorkflowPhase.TASKS
        else:
            logger.debug("phase_reset_ignored", spec=spec_name, reset=phase.value)
            return state

        logger.info("phase_approval_reset", spec=spec_name, reset=phase.value, phase=state.phase.value)
        return state

    def is_phase_approved(self, spec_name: str, phase: WorkflowPhase | str) -> bool:
        """Check whether a phase has been approved.

        Implementation counts as approved once tasks are approved.
        """
        phase = coerce_phase(phase)
        state = self.state(spec_name)
        if phase is WorkflowPhase.REQUIREMENTS:
            return state.requirements_approved
        if phase is WorkflowPhase.DESIGN:
            return state.design_approved
        return state.tasks_approved
