"""
Case Phase Resolver

Classifies a case into a coarse lifecycle phase from live counters.
The phase is never stored; it is recomputed on every request.

    collecting   -> nothing to review yet
    reviewing    -> claims exist, drafting still locked
    draft-ready  -> readiness high enough AND at least one accepted claim
"""

from dataclasses import dataclass
from enum import Enum


DRAFT_READY_PERCENT = 80


class CasePhase(str, Enum):
    COLLECTING = "collecting"
    REVIEWING = "reviewing"
    DRAFT_READY = "draft-ready"


@dataclass(frozen=True)
class PhaseInput:
    """Counters for one case. Range checking is the caller's job."""
    accepted_claims: int
    total_claims: int
    readiness_percent: int


def resolve_case_phase(
    phase_input: PhaseInput,
    draft_ready_percent: int = DRAFT_READY_PERCENT,
) -> CasePhase:
    """
    First match wins:
    1. readiness >= threshold and at least one accepted claim -> draft-ready
    2. any claims at all -> reviewing
    3. otherwise -> collecting

    A high readiness score can come from timeline events alone, so it
    never unlocks drafting without an accepted claim.
    """
    if phase_input.readiness_percent >= draft_ready_percent and phase_input.accepted_claims > 0:
        return CasePhase.DRAFT_READY

    if phase_input.total_claims > 0:
        return CasePhase.REVIEWING

    return CasePhase.COLLECTING


def can_draft(phase: CasePhase) -> bool:
    """Whether the drafting workflow is open for a case in `phase`."""
    return phase == CasePhase.DRAFT_READY
