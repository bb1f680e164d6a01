"""
Tests for the RunController — sequencing, confirmation and review.
"""

import threading

import pytest

from crewcli.adapters.base import ExecutionContext
from crewcli.adapters.mock import MockAdapter
from crewcli.core.engine.controller import RunController, RunStatus
from crewcli.core.engine.plan import PlanBuilder, PlanError
from crewcli.core.models.operation import Operation, OperationKind, OperationState, OperationStateError
from crewcli.core.models.receipt import Receipt


def _controller(builder: PlanBuilder, mock: MockAdapter, **kwargs) -> RunController:
    return RunController(builder.build({}), mock, **kwargs)


class _GatedAdapter(MockAdapter):
    """Mock whose commands containing ``gate`` block until ``release`` is set."""

    def __init__(self, gate: str, **kwargs):
        super().__init__(**kwargs)
        self.gate = gate
        self.release = threading.Event()

    def execute(self, context: ExecutionContext) -> Receipt:
        if self.gate in context.command:
            self.release.wait(timeout=5)
        return super().execute(context)


# ── Scenario Tests ───────────────────────────────────────────────────


class TestScenarios:
    def test_passing_check_skips_mutate(self, check_mutate_plan):
        mock = MockAdapter()
        mock.set_response("A", exit_code=0)
        with _controller(check_mutate_plan, mock) as run:
            assert run.advance() == RunStatus.COMPLETED

            check, mutate = run.operations
            assert check.state == OperationState.SUCCEEDED
            assert mutate.state == OperationState.SKIPPED
            assert mutate.output.message == "A exists"
            assert mock.commands == ["A"]

    def test_failing_check_prompts_then_mutate_succeeds(self, check_mutate_plan):
        mock = MockAdapter()
        mock.set_failure("A")
        mock.set_response("B", exit_code=0, output="created")
        with _controller(check_mutate_plan, mock) as run:
            assert run.advance() == RunStatus.PROMPT
            assert run.current.state == OperationState.AWAITING_CONFIRMATION

            assert run.confirm(True) == RunStatus.EXECUTING
            assert run.execute() == RunStatus.RUNNING
            assert run.operations[1].state == OperationState.SUCCEEDED
            assert run.advance() == RunStatus.COMPLETED

    def test_failing_standalone_mutate_halts(self):
        b = PlanBuilder()
        b.mutate("M")
        b.check("after")
        mock = MockAdapter()
        mock.set_failure("M", output="permission denied")
        with _controller(b, mock) as run:
            assert run.advance() == RunStatus.PROMPT
            run.confirm(True)
            assert run.execute() == RunStatus.FAILED

            assert run.operations[0].state == OperationState.FAILED
            assert run.advance() == RunStatus.FAILED
            assert run.operations[1].state == OperationState.UNSTARTED
            assert mock.commands == ["M"]


# ── Sequencing Tests ─────────────────────────────────────────────────


class TestSequencing:
    def test_failed_check_does_not_halt(self):
        b = PlanBuilder()
        b.check("C1")
        b.check("C2")
        mock = MockAdapter()
        mock.set_failure("C1")
        with _controller(b, mock) as run:
            assert run.advance() == RunStatus.COMPLETED
            assert [op.state for op in run.operations] == [
                OperationState.FAILED,
                OperationState.SUCCEEDED,
            ]

    def test_decline_aborts(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            assert run.confirm(False) == RunStatus.ABORTED
            assert run.operations[1].state == OperationState.AWAITING_CONFIRMATION
            assert run.advance() == RunStatus.ABORTED
            assert mock.call_count == 1

    def test_states_only_move_forward(self):
        b = PlanBuilder()
        c1 = b.check("C1")
        b.mutate("M1", depends_on=c1)
        c2 = b.check("C2")
        b.mutate("M2", depends_on=c2)
        mock = MockAdapter()
        mock.set_failure("C1")

        seen: dict[int, list[OperationState]] = {}

        def record(op: Operation) -> None:
            seen.setdefault(op.index, []).append(op.state)

        with _controller(b, mock, on_progress=record) as run:
            assert run.advance() == RunStatus.PROMPT
            run.confirm(True)
            run.execute()
            assert run.advance() == RunStatus.COMPLETED

        assert seen[1] == [
            OperationState.AWAITING_CONFIRMATION,
            OperationState.EXECUTING,
            OperationState.SUCCEEDED,
        ]
        assert seen[3] == [OperationState.SKIPPED]
        for op in run.operations:
            assert op.terminal

    def test_checks_run_once(self, check_mutate_plan):
        mock = MockAdapter()
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.advance()
        assert mock.commands.count("A") == 1

    def test_empty_plan_is_complete(self):
        with RunController([], MockAdapter()) as run:
            assert run.status == RunStatus.COMPLETED
            assert run.viewed is None

    def test_confirm_without_prompt(self, check_mutate_plan):
        with _controller(check_mutate_plan, MockAdapter()) as run:
            with pytest.raises(OperationStateError):
                run.confirm(True)

    def test_rejects_invalid_operations(self):
        ops = [Operation(index=0, kind=OperationKind.MUTATE, command="m", depends_on=0)]
        with pytest.raises(PlanError):
            RunController(ops, MockAdapter())

    def test_report(self, check_mutate_plan):
        with _controller(check_mutate_plan, MockAdapter()) as run:
            run.advance()
            report = run.report
        assert report.status == RunStatus.COMPLETED
        assert report.succeeded == 1
        assert report.skipped == 1
        assert report.to_dict()["total"] == 2


# ── Background Execution Tests ───────────────────────────────────────


class TestLaunch:
    def test_launch_and_wait(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        mock.set_response("B", exit_code=0, output="done")
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.confirm(True)
            future = run.launch()
            assert future.result().output == "done"
            assert run.wait() == RunStatus.RUNNING
            assert run.operations[1].state == OperationState.SUCCEEDED

    def test_poll_records_once_done(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        mock.set_response("B", exit_code=0)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.confirm(True)
            run.launch().result()
            assert run.poll() is True
            assert run.poll() is False
            assert run.status == RunStatus.RUNNING

    def test_cancel_refused_while_executing(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.confirm(True)
            assert run.cancel() is False
            assert run.status == RunStatus.EXECUTING

    def test_cancel_at_prompt(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            assert run.cancel() is True
            assert run.status == RunStatus.ABORTED

    def test_wait_without_launch(self, check_mutate_plan):
        with _controller(check_mutate_plan, MockAdapter()) as run:
            with pytest.raises(OperationStateError):
                run.wait()

    def test_execute_refused_while_launched(self, check_mutate_plan):
        mock = _GatedAdapter("B", default_exit_code=1)
        mock.set_response("B", exit_code=0)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.confirm(True)
            run.launch()
            with pytest.raises(OperationStateError, match="already running"):
                run.execute()

            mock.release.set()
            assert run.wait() == RunStatus.RUNNING
            assert mock.commands == ["A", "B"]

    def test_complete_refused_while_launched(self):
        b = PlanBuilder()
        b.mutate("M0")
        b.mutate("M1")
        mock = _GatedAdapter("M")
        with _controller(b, mock) as run:
            run.advance()
            run.confirm(True)
            run.launch()
            with pytest.raises(OperationStateError, match="already running"):
                run.complete(Receipt.success("external"))
            assert run.status == RunStatus.EXECUTING

            mock.release.set()
            run.wait()
            assert run.advance() == RunStatus.PROMPT
            assert run.cursor == 1

    def test_complete_with_external_receipt(self, check_mutate_plan):
        mock = MockAdapter(default_exit_code=1)
        with _controller(check_mutate_plan, mock) as run:
            run.advance()
            run.confirm(True)
            assert run.complete(Receipt.success("external", output="ok")) == RunStatus.RUNNING
            assert run.operations[1].state == OperationState.SUCCEEDED
            assert mock.commands == ["A"]


# ── Review Navigation Tests ──────────────────────────────────────────


class TestReview:
    def _four_checks(self) -> PlanBuilder:
        b = PlanBuilder()
        for name in ("C0", "C1", "C2", "C3"):
            b.check(name)
        return b

    def test_navigation_is_clamped(self):
        with _controller(self._four_checks(), MockAdapter()) as run:
            run.advance()
            assert run.view_index == 3

            run.view_at(0)
            assert run.view_previous().index == 0
            assert run.view_next().index == 1
            run.view_at(99)
            assert run.view_index == 3
            assert run.view_next().index == 3

    def test_cannot_view_past_reached(self):
        b = PlanBuilder()
        b.check("C0")
        b.mutate("M1")
        b.check("C2")
        with _controller(b, MockAdapter()) as run:
            assert run.advance() == RunStatus.PROMPT
            assert run.reached == 1
            run.view_at(5)
            assert run.view_index == 1

    def test_failure_shows_failed_operation(self):
        b = PlanBuilder()
        b.check("C0")
        b.mutate("M1")
        mock = MockAdapter()
        mock.set_failure("M1")
        with _controller(b, mock) as run:
            run.advance()
            run.view_at(0)
            run.confirm(True)
            run.execute()
            assert run.viewed.index == 1
