"""Apply pipeline phases and the set of phases an operator chose to skip."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from enum import Enum

from .errors import InvalidPhaseNameError

PHASE_SEPARATOR = ","


class Phase(Enum):
    """One stage of the apply pipeline.

    Declaration order is the execution order.
    """

    INFRASTRUCTURE = "infrastructure"
    INIT = "init"
    ATTESTATION_CONFIG = "attestationconfig"
    CERT_SANS = "certsans"
    HELM = "helm"
    K8S = "k8s"
    IMAGE = "image"

    def __str__(self) -> str:
        return self.value


def all_phases() -> tuple[Phase, ...]:
    """Return every phase in pipeline order."""
    return tuple(Phase)


class PhaseSet:
    """An immutable set of phases over the closed ``Phase`` enumeration."""

    __slots__ = ("_phases",)

    def __init__(self, phases: Iterable[Phase] = ()) -> None:
        members = frozenset(phases)
        for phase in members:
            if not isinstance(phase, Phase):
                raise TypeError(f"PhaseSet members must be Phase, got {phase!r}")
        self._phases = members

    @classmethod
    def parse(cls, names: str | Sequence[str] | None) -> PhaseSet:
        """Build a PhaseSet from comma separated phase names.

        Args:
            names: A single comma separated string, or a sequence of such
                strings (one per repeated flag). Matching is case-insensitive
                and empty tokens are ignored.

        Returns:
            The parsed set

        Raises:
            InvalidPhaseNameError: If any token is not a known phase
        """
        if not names:
            return cls()
        if isinstance(names, str):
            names = [names]

        by_name = {phase.value: phase for phase in Phase}
        parsed: set[Phase] = set()
        invalid: list[str] = []
        for entry in names:
            for token in entry.split(PHASE_SEPARATOR):
                token = token.strip()
                if not token:
                    continue
                phase = by_name.get(token.lower())
                if phase is None:
                    invalid.append(token)
                else:
                    parsed.add(phase)

        if invalid:
            raise InvalidPhaseNameError(invalid, [p.value for p in all_phases()])
        return cls(parsed)

    def contains(self, phase: Phase) -> bool:
        return phase in self._phases

    def add(self, *phases: Phase) -> PhaseSet:
        """Return a new set with ``phases`` added."""
        return PhaseSet(self._phases.union(phases))

    def __contains__(self, phase: object) -> bool:
        return phase in self._phases

    def __iter__(self) -> Iterator[Phase]:
        return (phase for phase in all_phases() if phase in self._phases)

    def __len__(self) -> int:
        return len(self._phases)

    def __bool__(self) -> bool:
        return bool(self._phases)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PhaseSet):
            return NotImplemented
        return self._phases == other._phases

    def __hash__(self) -> int:
        return hash(self._phases)

    def __str__(self) -> str:
        return PHASE_SEPARATOR.join(phase.value for phase in self)

    def __repr__(self) -> str:
        return f"PhaseSet({str(self)!r})"
