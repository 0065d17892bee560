"""Sequential, fail-fast execution of the apply phases.

The runner visits every phase in pipeline order. A skipped phase has no side
effects. An unskipped phase calls its handler with the current ClusterState
and the ApplyConfig; a handler that returns a new state replaces the current
one and the state is persisted before the next phase starts. The first
failure aborts the run: later phases are never called, nothing is retried,
and the persisted state is the one of the last successful phase.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from constellation.state.models import ClusterState

from .errors import PhaseFailedError
from .flags import ApplyConfig
from .interfaces import StateStore
from .phases import Phase, all_phases

PhaseHandler = Callable[[ClusterState, ApplyConfig], ClusterState | None]


class RunnerState(Enum):
    """Lifecycle of a PhaseRunner."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class PhaseStatus(Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PhaseEventKind(Enum):
    STARTED = "started"
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PhaseEvent:
    """Observation emitted while the runner progresses."""

    phase: Phase
    kind: PhaseEventKind
    error: BaseException | None = None
    duration_ms: int = 0


PhaseObserver = Callable[[PhaseEvent], None]


@dataclass
class PhaseOutcome:
    phase: Phase
    status: PhaseStatus
    duration_ms: int = 0
    error: str | None = None


@dataclass
class RunReport:
    """Result of a pipeline run."""

    state: RunnerState = RunnerState.PENDING
    outcomes: list[PhaseOutcome] = field(default_factory=list)
    cluster_state: ClusterState | None = None

    def add(self, outcome: PhaseOutcome) -> None:
        self.outcomes.append(outcome)

    def phases_with(self, status: PhaseStatus) -> list[Phase]:
        return [o.phase for o in self.outcomes if o.status == status]

    def summary(self) -> str:
        succeeded = len(self.phases_with(PhaseStatus.SUCCEEDED))
        skipped = len(self.phases_with(PhaseStatus.SKIPPED))
        failed = len(self.phases_with(PhaseStatus.FAILED))
        return f"SUCCEEDED={succeeded} SKIPPED={skipped} FAILED={failed}"


class PhaseRunner:
    """Runs the apply phases in order, honoring the skip set."""

    def __init__(
        self,
        handlers: Mapping[Phase, PhaseHandler],
        store: StateStore | None = None,
        observers: Iterable[PhaseObserver] = (),
    ) -> None:
        """Initialize the runner.

        Args:
            handlers: One handler per phase
            store: Persists the state after a phase returned a new one
            observers: Callbacks notified about every phase transition

        Raises:
            ValueError: If a phase has no handler
        """
        missing = [phase.value for phase in all_phases() if phase not in handlers]
        if missing:
            raise ValueError(f"No handler registered for phase(s): {', '.join(missing)}")
        self.handlers = dict(handlers)
        self.store = store
        self.observers = list(observers)
        self.state = RunnerState.PENDING
        self.current_phase: Phase | None = None
        self.report: RunReport | None = None

    def _emit(self, event: PhaseEvent) -> None:
        for observer in self.observers:
            observer(event)

    def run(self, cluster_state: ClusterState, config: ApplyConfig) -> RunReport:
        """Execute the pipeline.

        Args:
            cluster_state: State at the start of the run
            config: Resolved apply configuration

        Returns:
            Report of a completed run

        Raises:
            PhaseFailedError: If an unskipped phase or persisting its state
                failed. ``error`` holds the original exception.
            KeyboardInterrupt: Re-raised unchanged after aborting the run
        """
        report = RunReport(state=RunnerState.RUNNING, cluster_state=cluster_state)
        self.report = report
        self.state = RunnerState.RUNNING

        for phase in all_phases():
            self.current_phase = phase

            if config.skip_phases.contains(phase):
                logger.debug(f"Skipping phase {phase.value}")
                report.add(PhaseOutcome(phase=phase, status=PhaseStatus.SKIPPED))
                self._emit(PhaseEvent(phase=phase, kind=PhaseEventKind.SKIPPED))
                continue

            logger.debug(f"Running phase {phase.value}")
            t0 = time.monotonic()
            try:
                self._emit(PhaseEvent(phase=phase, kind=PhaseEventKind.STARTED))
                updated = self.handlers[phase](cluster_state, config)
                if updated is not None:
                    if self.store is not None:
                        self.store.save(updated)
                    cluster_state = updated
                    report.cluster_state = updated
            except Exception as e:
                duration_ms = int((time.monotonic() - t0) * 1000)
                self._abort(report, phase, duration_ms, e)
                raise PhaseFailedError(phase, e) from e
            except KeyboardInterrupt as e:
                duration_ms = int((time.monotonic() - t0) * 1000)
                self._abort(report, phase, duration_ms, e)
                raise

            duration_ms = int((time.monotonic() - t0) * 1000)
            report.add(
                PhaseOutcome(
                    phase=phase, status=PhaseStatus.SUCCEEDED, duration_ms=duration_ms
                )
            )
            self._emit(
                PhaseEvent(
                    phase=phase, kind=PhaseEventKind.SUCCEEDED, duration_ms=duration_ms
                )
            )
            logger.debug(f"Phase {phase.value} succeeded in {duration_ms}ms")

        self.current_phase = None
        self.state = RunnerState.COMPLETED
        report.state = RunnerState.COMPLETED
        logger.info(f"Apply completed: {report.summary()}")
        return report

    def _abort(
        self, report: RunReport, phase: Phase, duration_ms: int, error: BaseException
    ) -> None:
        self.state = RunnerState.ABORTED
        report.state = RunnerState.ABORTED
        report.add(
            PhaseOutcome(
                phase=phase,
                status=PhaseStatus.FAILED,
                duration_ms=duration_ms,
                error=str(error) or type(error).__name__,
            )
        )
        logger.error(f"Phase {phase.value} failed: {error!r}")
        self._emit(
            PhaseEvent(
                phase=phase,
                kind=PhaseEventKind.FAILED,
                error=error,
                duration_ms=duration_ms,
            )
        )
