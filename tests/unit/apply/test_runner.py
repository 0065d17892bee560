"""Tests for sequential, fail-fast phase execution."""

from unittest.mock import MagicMock

import pytest

from constellation.apply.errors import PhaseFailedError, StateWriteError, UpdateError
from constellation.apply.flags import ApplyConfig, resolve_apply_config
from constellation.apply.phases import Phase, all_phases
from constellation.apply.runner import (
    PhaseEvent,
    PhaseEventKind,
    PhaseRunner,
    PhaseStatus,
    RunnerState,
)
from constellation.state.models import ClusterState, ClusterValues


def _recording_handlers(calls: list[Phase]) -> dict:
    def make(phase: Phase):
        def handler(state: ClusterState, config: ApplyConfig) -> None:
            calls.append(phase)

        return handler

    return {phase: make(phase) for phase in all_phases()}


class TestPhaseRunner:
    def test_runs_all_phases_in_order(self) -> None:
        calls: list[Phase] = []
        runner = PhaseRunner(_recording_handlers(calls))

        report = runner.run(ClusterState(), ApplyConfig())

        assert calls == list(all_phases())
        assert report.state == RunnerState.COMPLETED
        assert runner.state == RunnerState.COMPLETED
        assert runner.current_phase is None
        assert report.summary() == "SUCCEEDED=7 SKIPPED=0 FAILED=0"

    def test_skipped_phases_are_not_called(self) -> None:
        calls: list[Phase] = []
        runner = PhaseRunner(_recording_handlers(calls))
        config = resolve_apply_config(skip_phases="infrastructure,init")

        report = runner.run(ClusterState(), config)

        assert calls == [
            Phase.ATTESTATION_CONFIG,
            Phase.CERT_SANS,
            Phase.HELM,
            Phase.K8S,
            Phase.IMAGE,
        ]
        assert report.phases_with(PhaseStatus.SKIPPED) == [
            Phase.INFRASTRUCTURE,
            Phase.INIT,
        ]

    def test_skipping_every_phase_calls_nothing(self) -> None:
        calls: list[Phase] = []
        store = MagicMock()
        runner = PhaseRunner(_recording_handlers(calls), store=store)
        config = resolve_apply_config(skip_phases=[p.value for p in all_phases()])

        report = runner.run(ClusterState(), config)

        assert calls == []
        store.save.assert_not_called()
        assert report.state == RunnerState.COMPLETED
        assert report.summary() == "SUCCEEDED=0 SKIPPED=7 FAILED=0"

    def test_failure_aborts_remaining_phases(self) -> None:
        calls: list[Phase] = []
        handlers = _recording_handlers(calls)
        cause = UpdateError("kubeadm config unreadable", details="configmap missing")

        def failing(state: ClusterState, config: ApplyConfig) -> None:
            calls.append(Phase.CERT_SANS)
            raise cause

        handlers[Phase.CERT_SANS] = failing
        runner = PhaseRunner(handlers)
        config = resolve_apply_config(skip_phases="infrastructure,init")

        with pytest.raises(PhaseFailedError) as excinfo:
            runner.run(ClusterState(), config)

        error = excinfo.value
        assert error.phase == Phase.CERT_SANS
        assert error.error is cause
        assert error.__cause__ is cause
        assert error.details == "configmap missing"
        assert "certsans" in error.message
        assert calls == [Phase.ATTESTATION_CONFIG, Phase.CERT_SANS]
        assert runner.state == RunnerState.ABORTED
        assert runner.current_phase == Phase.CERT_SANS
        assert runner.report is not None
        assert runner.report.phases_with(PhaseStatus.FAILED) == [Phase.CERT_SANS]

    def test_returned_state_is_persisted_and_passed_on(self) -> None:
        store = MagicMock()
        seen: dict[Phase, ClusterState] = {}
        initialized = ClusterState().with_cluster_values(
            ClusterValues(cluster_id="id", owner_id="owner")
        )

        def record(phase: Phase):
            def handler(state: ClusterState, config: ApplyConfig) -> None:
                seen[phase] = state

            return handler

        handlers = {phase: record(phase) for phase in all_phases()}
        handlers[Phase.INIT] = lambda state, config: initialized
        runner = PhaseRunner(handlers, store=store)

        report = runner.run(ClusterState(), ApplyConfig())

        store.save.assert_called_once_with(initialized)
        assert seen[Phase.HELM] is initialized
        assert report.cluster_state is initialized

    def test_state_write_failure_aborts_run(self) -> None:
        calls: list[Phase] = []
        handlers = _recording_handlers(calls)
        handlers[Phase.INFRASTRUCTURE] = lambda state, config: ClusterState()
        store = MagicMock()
        store.save.side_effect = StateWriteError("read-only file system")
        runner = PhaseRunner(handlers, store=store)

        with pytest.raises(PhaseFailedError) as excinfo:
            runner.run(ClusterState(), ApplyConfig())

        assert excinfo.value.phase == Phase.INFRASTRUCTURE
        assert isinstance(excinfo.value.error, StateWriteError)
        assert calls == []

    def test_keyboard_interrupt_propagates_unchanged(self) -> None:
        calls: list[Phase] = []
        handlers = _recording_handlers(calls)

        def interrupted(state: ClusterState, config: ApplyConfig) -> None:
            raise KeyboardInterrupt

        handlers[Phase.HELM] = interrupted
        runner = PhaseRunner(handlers)

        with pytest.raises(KeyboardInterrupt):
            runner.run(ClusterState(), ApplyConfig())

        assert runner.state == RunnerState.ABORTED
        assert Phase.K8S not in calls

    def test_observers_see_every_transition(self) -> None:
        events: list[PhaseEvent] = []
        runner = PhaseRunner(_recording_handlers([]), observers=[events.append])
        config = resolve_apply_config(skip_phases="helm")

        runner.run(ClusterState(), config)

        helm_events = [e.kind for e in events if e.phase == Phase.HELM]
        init_events = [e.kind for e in events if e.phase == Phase.INIT]
        assert helm_events == [PhaseEventKind.SKIPPED]
        assert init_events == [PhaseEventKind.STARTED, PhaseEventKind.SUCCEEDED]

    def test_failed_event_carries_error(self) -> None:
        events: list[PhaseEvent] = []
        handlers = _recording_handlers([])
        cause = RuntimeError("boom")

        def failing(state: ClusterState, config: ApplyConfig) -> None:
            raise cause

        handlers[Phase.IMAGE] = failing
        runner = PhaseRunner(handlers, observers=[events.append])

        with pytest.raises(PhaseFailedError):
            runner.run(ClusterState(), ApplyConfig())

        assert events[-1].kind == PhaseEventKind.FAILED
        assert events[-1].error is cause

    def test_observer_failure_on_start_aborts_run(self) -> None:
        calls: list[Phase] = []

        def observer(event: PhaseEvent) -> None:
            if event.kind == PhaseEventKind.STARTED:
                raise RuntimeError("console closed")

        runner = PhaseRunner(_recording_handlers(calls), observers=[observer])

        with pytest.raises(PhaseFailedError) as excinfo:
            runner.run(ClusterState(), ApplyConfig())

        assert excinfo.value.phase == Phase.INFRASTRUCTURE
        assert calls == []
        assert runner.state == RunnerState.ABORTED
        assert runner.report is not None
        assert runner.report.phases_with(PhaseStatus.FAILED) == [Phase.INFRASTRUCTURE]

    def test_missing_handler_is_rejected(self) -> None:
        handlers = _recording_handlers([])
        del handlers[Phase.K8S]

        with pytest.raises(ValueError, match="k8s"):
            PhaseRunner(handlers)
