"""Resolution of ``apply`` flags into an immutable ApplyConfig."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from .errors import ConfigValidationError
from .phases import PhaseSet

DEFAULT_UPGRADE_TIMEOUT = timedelta(minutes=5)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}
_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off", ""})


class WaitMode(Enum):
    """How the Helm upgrade waits for released resources."""

    NONE = "none"  # return once the API server accepted the release
    ATOMIC = "atomic"  # wait for readiness, roll back on failure or timeout


@dataclass(frozen=True)
class ApplyConfig:
    """Resolved configuration for a single apply invocation.

    Attributes:
        skip_phases: Phases the operator opted out of
        helm_wait_mode: Wait behaviour of the Helm upgrade
        upgrade_timeout: Deadline handed to the Helm upgrade
        force: Skip version compatibility checks during upgrades
    """

    skip_phases: PhaseSet = field(default_factory=PhaseSet)
    helm_wait_mode: WaitMode = WaitMode.ATOMIC
    upgrade_timeout: timedelta = DEFAULT_UPGRADE_TIMEOUT
    force: bool = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ApplyConfig:
        """Resolve an ApplyConfig from flag-style keys.

        Recognized keys: ``skip-phases``, ``skip-helm-wait``, ``timeout``,
        ``force``. Missing keys fall back to their defaults.
        """
        return resolve_apply_config(
            skip_phases=raw.get("skip-phases"),
            skip_helm_wait=parse_bool(
                "skip-helm-wait", raw.get("skip-helm-wait", False)
            ),
            timeout=raw.get("timeout"),
            force=parse_bool("force", raw.get("force", False)),
        )


def parse_bool(name: str, value: Any) -> bool:
    """Interpret a boolean flag value given as a bool or a string.

    Raises:
        ConfigValidationError: If the value is not a recognized boolean
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise ConfigValidationError(
        f"Invalid value for {name}: {value!r}",
        details="Use true or false",
    )


def parse_duration(value: str | int | float | timedelta) -> timedelta:
    """Parse a duration such as ``"5m"``, ``"90s"`` or ``"1h30m"``.

    Plain numbers are interpreted as seconds.

    Raises:
        ConfigValidationError: If the value is malformed or not positive
    """
    if isinstance(value, timedelta):
        duration = value
    elif isinstance(value, bool):
        raise ConfigValidationError(f"Invalid timeout: {value!r}")
    elif isinstance(value, (int, float)):
        duration = timedelta(seconds=value)
    else:
        text = value.strip()
        if re.fullmatch(r"\d+(\.\d+)?", text):
            duration = timedelta(seconds=float(text))
        else:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ConfigValidationError(
                    f"Invalid timeout: {value!r}",
                    details="Use a duration like 90s, 5m or 1h30m",
                )
            duration = sum(
                (float(number) * _DURATION_UNITS[unit] for number, unit in parts),
                timedelta(),
            )

    if duration <= timedelta(0):
        raise ConfigValidationError(f"Timeout must be positive, got {value!r}")
    if duration < timedelta(milliseconds=1):
        raise ConfigValidationError(f"Timeout must be at least 1ms, got {value!r}")
    return duration


def format_duration(duration: timedelta) -> str:
    """Format a timedelta as a Go duration for command line tools.

    Whole seconds are written as ``<n>s``, anything finer as ``<n>ms``.
    """
    milliseconds = round(duration.total_seconds() * 1000)
    if milliseconds % 1000 == 0:
        return f"{milliseconds // 1000}s"
    return f"{milliseconds}ms"


def resolve_apply_config(
    skip_phases: str | Sequence[str] | None = None,
    skip_helm_wait: bool = False,
    timeout: str | int | float | timedelta | None = None,
    force: bool = False,
) -> ApplyConfig:
    """Validate raw apply flags and build the ApplyConfig.

    Args:
        skip_phases: Comma separated phase names to skip
        skip_helm_wait: Don't wait for Helm releases to become ready
        timeout: Helm upgrade timeout (default 5 minutes)
        force: Skip compatibility checks

    Raises:
        InvalidPhaseNameError: If a skip phase is unknown
        ConfigValidationError: If the timeout is malformed
    """
    phases = PhaseSet.parse(skip_phases)
    wait_mode = WaitMode.NONE if skip_helm_wait else WaitMode.ATOMIC
    upgrade_timeout = (
        DEFAULT_UPGRADE_TIMEOUT if timeout is None else parse_duration(timeout)
    )
    return ApplyConfig(
        skip_phases=phases,
        helm_wait_mode=wait_mode,
        upgrade_timeout=upgrade_timeout,
        force=force,
    )
