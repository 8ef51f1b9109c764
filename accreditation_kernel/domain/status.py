"""
Module: accreditation_kernel.domain.status
Responsibility: The closed set of accreditation statuses, history actions,
    and the transition table that binds each named operation to exactly one
    predecessor state.
Architecture position: Kernel > Domain.  Pure, zero I/O.

Invariants enforced:
    - DRAFT -> PENDING -> APPROVED <-> REVOKED, PENDING -> REJECTED,
      PENDING -> DRAFT.  No other edge exists and no edge skips a state.
    - REJECTED is terminal: a new record is required for another cycle.
    - Editing an APPROVED record demotes it to PENDING.
"""

from dataclasses import dataclass
from enum import Enum


class AccreditationStatus(str, Enum):
    """Lifecycle status of an accreditation record."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"


class HistoryAction(str, Enum):
    """Action recorded on a history entry."""

    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVOKED = "REVOKED"
    REINSTATED = "REINSTATED"
    UPDATED = "UPDATED"
    RETURNED_TO_DRAFT = "RETURNED_TO_DRAFT"


@dataclass(frozen=True)
class Transition:
    """One edge of the status graph, keyed by the action that performs it."""

    action: HistoryAction
    from_status: AccreditationStatus
    to_status: AccreditationStatus
    operation: str


TRANSITIONS: dict[HistoryAction, Transition] = {
    t.action: t
    for t in (
        Transition(HistoryAction.SUBMITTED, AccreditationStatus.DRAFT, AccreditationStatus.PENDING, "submit"),
        Transition(HistoryAction.APPROVED, AccreditationStatus.PENDING, AccreditationStatus.APPROVED, "approve"),
        Transition(HistoryAction.REJECTED, AccreditationStatus.PENDING, AccreditationStatus.REJECTED, "reject"),
        Transition(HistoryAction.REVOKED, AccreditationStatus.APPROVED, AccreditationStatus.REVOKED, "revoke"),
        Transition(HistoryAction.REINSTATED, AccreditationStatus.REVOKED, AccreditationStatus.APPROVED, "reinstate"),
        Transition(
            HistoryAction.RETURNED_TO_DRAFT,
            AccreditationStatus.PENDING,
            AccreditationStatus.DRAFT,
            "return_to_draft",
        ),
    )
}

# Status an APPROVED record falls back to when its content is edited.
EDIT_DEMOTES = {AccreditationStatus.APPROVED: AccreditationStatus.PENDING}

def allowed_edges() -> set[tuple[AccreditationStatus, AccreditationStatus]]:
    """Every (from, to) pair reachable through a named operation or an edit."""
    edges = {(t.from_status, t.to_status) for t in TRANSITIONS.values()}
    edges.update(EDIT_DEMOTES.items())
    return edges


def transition_for(action: HistoryAction) -> Transition:
    """The named transition ``action`` performs.

    CREATED and UPDATED are history-only actions and have none.
    """
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise ValueError(f"{action.value} is not a status transition") from None
