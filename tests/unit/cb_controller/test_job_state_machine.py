import pytest

from cb_controller.models.state import JobStateMachine, resolve_status
from cb_controller.models.types import JobStatus

pytestmark = pytest.mark.unit_controller


def test_forward_transitions_and_callbacks() -> None:
    seen = []
    machine = JobStateMachine()
    machine.register_callback(lambda state, reason: seen.append((state, reason)))

    machine.transition(JobStatus.RUNNING)
    machine.transition(JobStatus.COMPLETED, reason="5/5 iterations")

    assert machine.is_terminal()
    assert machine.snapshot() == (JobStatus.COMPLETED, "5/5 iterations")
    assert seen == [(JobStatus.RUNNING, None), (JobStatus.COMPLETED, "5/5 iterations")]


@pytest.mark.parametrize(
    "terminal",
    [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT, JobStatus.EMERGENCY_STOP],
)
def test_terminal_states_never_change(terminal) -> None:
    machine = JobStateMachine(terminal)
    for other in JobStatus:
        if other is terminal:
            continue
        assert not machine.can_transition(other)
        with pytest.raises(ValueError):
            machine.transition(other)
    assert machine.state is terminal


def test_running_cannot_regress() -> None:
    machine = JobStateMachine(JobStatus.RUNNING)
    with pytest.raises(ValueError):
        machine.transition(JobStatus.LAUNCHED)


def test_repeated_state_is_noop() -> None:
    machine = JobStateMachine(JobStatus.RUNNING)
    assert machine.transition(JobStatus.RUNNING) is JobStatus.RUNNING


def test_resolve_status_prefers_terminal_markers() -> None:
    assert resolve_status([]) is JobStatus.LAUNCHED
    assert resolve_status([JobStatus.LAUNCHED, JobStatus.RUNNING]) is JobStatus.RUNNING
    assert (
        resolve_status([JobStatus.RUNNING, JobStatus.TIMED_OUT, JobStatus.LAUNCHED])
        is JobStatus.TIMED_OUT
    )
    assert resolve_status([JobStatus.FAILED, JobStatus.COMPLETED]) is JobStatus.COMPLETED
    assert JobStateMachine.from_markers([JobStatus.RUNNING]).state is JobStatus.RUNNING
