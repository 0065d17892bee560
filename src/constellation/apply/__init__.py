"""The ``constellation apply`` orchestration engine.

- phases: Phase enumeration and the skip set
- flags: ApplyConfig resolution from command line flags
- backup: Pre-upgrade backup of Helm releases and custom resources
- runner: Sequential, fail-fast phase execution
- pipeline: Wiring of the phase collaborators (import it directly)
"""

from .backup import BackupArtifact, BackupCoordinator
from .errors import (
    ConfigValidationError,
    ConstellationError,
    InvalidPhaseNameError,
    PhaseFailedError,
)
from .flags import ApplyConfig, WaitMode, resolve_apply_config
from .phases import Phase, PhaseSet, all_phases
from .runner import PhaseRunner, RunnerState, RunReport

__all__ = [
    "Phase",
    "PhaseSet",
    "all_phases",
    "ApplyConfig",
    "WaitMode",
    "resolve_apply_config",
    "BackupArtifact",
    "BackupCoordinator",
    "PhaseRunner",
    "RunnerState",
    "RunReport",
    "ConstellationError",
    "ConfigValidationError",
    "InvalidPhaseNameError",
    "PhaseFailedError",
]
