"""Phase gate tests."""

import pytest

from specgate.exceptions import ValidationError
from specgate.workflow.phases import PhaseGate, WorkflowPhase


def test_new_spec_starts_in_requirements() -> None:
    """Specifications are created lazily in the requirements phase."""
    gate = PhaseGate()

    state = gate.state("checkout")

    assert state.phase is WorkflowPhase.REQUIREMENTS
    assert not state.requirements_approved
    assert gate.states() == [state]


def test_later_phases_require_previous_approval() -> None:
    """Design, tasks and implementation are gated by their predecessor."""
    gate = PhaseGate()

    assert gate.can_transition("checkout", WorkflowPhase.REQUIREMENTS)
    assert not gate.can_transition("checkout", WorkflowPhase.DESIGN)
    assert not gate.transition("checkout", "tasks")
    assert gate.phase("checkout") is WorkflowPhase.REQUIREMENTS


def test_approvals_advance_one_phase_at_a_time() -> None:
    """Each approval unlocks exactly the next phase."""
    gate = PhaseGate()

    assert gate.approve_current_phase("checkout")
    assert gate.phase("checkout") is WorkflowPhase.DESIGN
    assert not gate.can_transition("checkout", WorkflowPhase.TASKS)

    gate.approve_current_phase("checkout")
    gate.approve_current_phase("checkout")

    assert gate.phase("checkout") is WorkflowPhase.IMPLEMENTATION
    assert gate.can_transition("checkout", WorkflowPhase.IMPLEMENTATION)


def test_approving_implementation_keeps_phase() -> None:
    """Approving in implementation succeeds without moving."""
    gate = PhaseGate()
    for _ in range(3):
        gate.approve_current_phase("checkout")

    assert gate.approve_current_phase("checkout")
    assert gate.phase("checkout") is WorkflowPhase.IMPLEMENTATION


def test_reset_design_cascades_to_tasks() -> None:
    """Withdrawing design approval also withdraws tasks approval."""
    gate = PhaseGate()
    for _ in range(3):
        gate.approve_current_phase("checkout")

    state = gate.reset_phase_approval("checkout", WorkflowPhase.DESIGN)

    assert state.requirements_approved
    assert not state.design_approved
    assert not state.tasks_approved
    assert state.phase is WorkflowPhase.DESIGN
    assert not gate.can_transition("checkout", WorkflowPhase.TASKS)


def test_reset_requirements_returns_to_start() -> None:
    """Resetting requirements clears every approval."""
    gate = PhaseGate()
    gate.approve_current_phase("checkout")
    gate.approve_current_phase("checkout")

    state = gate.reset_phase_approval("checkout", "requirements")

    assert state.phase is WorkflowPhase.REQUIREMENTS
    assert not (state.requirements_approved or state.design_approved or state.tasks_approved)


def test_reset_tasks_only_moves_back_from_implementation() -> None:
    """Resetting tasks while in design leaves the phase alone."""
    gate = PhaseGate()
    gate.approve_current_phase("checkout")

    state = gate.reset_phase_approval("checkout", WorkflowPhase.TASKS)

    assert state.phase is WorkflowPhase.DESIGN
    assert state.requirements_approved


def test_specs_are_independent() -> None:
    """Approving one specification does not affect another."""
    gate = PhaseGate()
    gate.approve_current_phase("checkout")

    assert gate.phase("search") is WorkflowPhase.REQUIREMENTS


def test_invalid_phase_name_raises() -> None:
    """Unknown phase names are rejected."""
    gate = PhaseGate()

    with pytest.raises(ValidationError):
        gate.can_transition("checkout", "deploy")
    with pytest.raises(ValidationError):
        gate.reset_phase_approval("checkout", "deploy")


def test_reset_implementation_changes_nothing() -> None:
    """Implementation has no approval, so resetting it is a no-op."""
    gate = PhaseGate()
    for _ in range(3):
        gate.approve_current_phase("checkout")

    state = gate.reset_phase_approval("checkout", WorkflowPhase.IMPLEMENTATION)

    assert state.phase is WorkflowPhase.IMPLEMENTATION
    assert state.requirements_approved and state.design_approved and state.tasks_approved
