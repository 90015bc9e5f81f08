"""Listing status state machine.

Authorization is checked before the transition graph, so an actor asking
for a status they may never set gets an AuthorizationError even when the
transition itself would also be invalid.
"""

from datetime import datetime
from typing import Any, Optional

from src.models.actor import Actor
from src.models.listing import ListingStatus
from src.utils.errors import AuthorizationError, ValidationError

S = ListingStatus

TRANSITIONS: dict[ListingStatus, frozenset[ListingStatus]] = {
    S.DRAFT: frozenset({S.PENDING, S.ARCHIVED}),
    S.PENDING: frozenset({S.APPROVED, S.ACTIVE, S.HOLD, S.REJECTED, S.SOLD, S.ARCHIVED}),
    S.APPROVED: frozenset({S.ACTIVE, S.HOLD, S.SOLD, S.REJECTED, S.ARCHIVED}),
    S.ACTIVE: frozenset({S.HOLD, S.SOLD, S.REJECTED, S.ARCHIVED}),
    S.HOLD: frozenset({S.ACTIVE, S.SOLD, S.ARCHIVED}),
    S.REJECTED: frozenset({S.PENDING, S.ARCHIVED}),
    S.SOLD: frozenset({S.ARCHIVED}),
    S.ARCHIVED: frozenset(),
}

# Statuses only a moderator may set
MODERATOR_STATUSES = frozenset({S.ACTIVE, S.APPROVED, S.REJECTED, S.SOLD})

# What an owner may do to their own listing, besides archiving it
OWNER_TRANSITIONS = frozenset({
    (S.ACTIVE, S.HOLD),
    (S.HOLD, S.ACTIVE),
    (S.DRAFT, S.PENDING),
    (S.REJECTED, S.PENDING),
})


def parse_status(value: Any) -> ListingStatus:
    try:
        return ListingStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid status: {value}",
            details={"allowed": [status.value for status in ListingStatus]},
        )


def can_transition(current: ListingStatus, target: ListingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def owner_may_transition(current: ListingStatus, target: ListingStatus) -> bool:
    return target == S.ARCHIVED or (current, target) in OWNER_TRANSITIONS


def authorize_transition(
    actor: Actor,
    owner_id: Optional[str],
    current: ListingStatus,
    target: ListingStatus,
) -> None:
    if actor.is_moderator:
        return
    if not actor.owns(owner_id):
        raise AuthorizationError("Not authorized to change this listing's status")
    if not owner_may_transition(current, target):
        if target in MODERATOR_STATUSES:
            raise AuthorizationError(f"Only a moderator can set status '{target.value}'")
        raise AuthorizationError(f"Owners cannot move a listing from '{current.value}' to '{target.value}'")


def validate_transition(current: ListingStatus, target: ListingStatus) -> None:
    if not can_transition(current, target):
        raise ValidationError(
            f"Invalid status transition: {current.value} -> {target.value}",
            details={"from": current.value, "to": target.value},
        )


def check_transition(
    actor: Actor,
    owner_id: Optional[str],
    current: ListingStatus,
    target: ListingStatus,
) -> None:
    """Raise AuthorizationError or ValidationError if ``actor`` may not move the listing."""
    authorize_transition(actor, owner_id, current, target)
    validate_transition(current, target)


def transition_updates(actor: Actor, target: ListingStatus, now: datetime) -> dict[str, Any]:
    """Fields written alongside a status change."""
    updates: dict[str, Any] = {"status": target.value, "updated_at": now}
    if actor.is_moderator and target in MODERATOR_STATUSES:
        updates["approved_by"] = actor.id
        updates["approved_at"] = now
    if target == S.ARCHIVED:
        updates["archived_at"] = now
    return updates
