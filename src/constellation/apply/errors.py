"""Error types raised by the apply pipeline.

Every error carries a short ``message`` and optional ``details`` so the CLI
can render a consistent panel (see ``with_error_handling``). The hierarchy
mirrors where an error originates:

- ConfigValidationError: bad flags, detected before any phase runs
- BackupError: pre-upgrade backup failed, the upgrade must not run
- PhaseError: a phase collaborator failed
- StateError: the cluster state could not be read or written
- PhaseFailedError: raised by the runner, wraps the failing phase's error
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .phases import Phase


class ConstellationError(Exception):
    """Base class for all errors surfaced to the operator."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


# =============================================================================
# Configuration
# =============================================================================


class ConfigValidationError(ConstellationError):
    """Raised when apply flags or configuration values are malformed."""


class InvalidPhaseNameError(ConfigValidationError):
    """Raised when --skip-phases names a phase that does not exist."""

    def __init__(self, invalid: Sequence[str], valid: Sequence[str]):
        self.invalid = list(invalid)
        self.valid = list(valid)
        super().__init__(
            f"Invalid phase name(s): {', '.join(self.invalid)}",
            details=f"Valid phases are: {', '.join(self.valid)}",
        )


# =============================================================================
# Backup
# =============================================================================


class BackupError(ConstellationError):
    """Raised when the pre-upgrade backup could not be completed."""


class ChartBackupError(BackupError):
    """Saving the current Helm charts failed."""


class CRDBackupError(BackupError):
    """Backing up custom resource definitions failed."""


class CRBackupError(BackupError):
    """Backing up custom resources failed."""


# =============================================================================
# Phase collaborators
# =============================================================================


class PhaseError(ConstellationError):
    """Base class for errors returned by phase collaborators."""


class ProvisionError(PhaseError):
    """Infrastructure provisioning failed."""


class InitError(PhaseError):
    """Cluster initialization failed."""


class PolicyError(PhaseError):
    """Reconciling the attestation policy failed."""


class UpdateError(PhaseError):
    """Updating the API server certificate SANs failed."""


class HelmApplyError(PhaseError):
    """Rendering or applying a Helm release failed."""


class HelmTimeoutError(PhaseError):
    """Helm releases did not become ready within the upgrade timeout."""


class UpgradeError(PhaseError):
    """Upgrading Kubernetes components or node images failed."""


# =============================================================================
# State store
# =============================================================================


class StateError(ConstellationError):
    """Base class for state store errors."""


class StateNotFoundError(StateError):
    """No state file exists in the workspace."""


class StateWriteError(StateError):
    """Persisting the state file failed."""


# =============================================================================
# Runner
# =============================================================================


class PhaseFailedError(ConstellationError):
    """Raised by the runner when an unskipped phase fails.

    ``error`` is the collaborator's exception, unchanged.
    """

    def __init__(self, phase: Phase, error: BaseException):
        self.phase = phase
        self.error = error
        details = getattr(error, "details", None)
        super().__init__(
            f"Phase '{phase.value}' failed: {error}",
            details=details,
        )
