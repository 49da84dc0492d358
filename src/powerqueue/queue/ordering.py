"""
Order index: fractional keys for manual drag-reorder.

A moved contact gets a key strictly between its new neighbors, so a reorder
is a single write. Keys that can no longer be split (float precision, or a
gap below the configured minimum) trigger a renumbering pass over the whole
manual order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from powerqueue.contacts.schemas import ContactRecord
from powerqueue.shared.exceptions import NotFoundError
from powerqueue.shared.logging import get_logger

logger = get_logger(__name__)


def epoch_ms(now: datetime) -> float:
    return float(int(now.timestamp() * 1000))


def manual_sort_key(contact: ContactRecord) -> tuple[float, datetime]:
    # Collisions on order_key fall back to creation time.
    return (contact.order_key, contact.created_at)


def manual_order(contacts: Sequence[ContactRecord]) -> list[ContactRecord]:
    return sorted(contacts, key=manual_sort_key)


def order_key_between(
    prev_key: float | None,
    next_key: float | None,
    now_ms: float,
) -> float:
    """Key for a slot between two neighbors (either may be absent)."""
    if prev_key is None and next_key is not None:
        return next_key - 1
    if prev_key is not None and next_key is None:
        return prev_key + 1
    if prev_key is not None and next_key is not None:
        return (prev_key + next_key) / 2
    return now_ms


def needs_rebalance(
    prev_key: float | None,
    next_key: float | None,
    candidate: float,
    min_gap: float,
) -> bool:
    if prev_key is not None and candidate <= prev_key:
        return True
    if next_key is not None and candidate >= next_key:
        return True
    if prev_key is not None and next_key is not None and next_key - prev_key < min_gap:
        return True
    return False


def neighbors_for_move(
    ordered: Sequence[ContactRecord],
    contact_id: str,
    new_index: int,
) -> tuple[float | None, float | None]:
    """Neighbor keys after moving `contact_id` to `new_index` (array-move)."""
    ids = [c.id for c in ordered]
    if contact_id not in ids:
        raise NotFoundError(f"Contact not found: {contact_id}")
    others = [c for c in ordered if c.id != contact_id]
    index = max(0, min(new_index, len(others)))
    prev_contact = others[index - 1] if index > 0 else None
    next_contact = others[index] if index < len(others) else None
    return (
        prev_contact.order_key if prev_contact else None,
        next_contact.order_key if next_contact else None,
    )


@dataclass(frozen=True)
class ReorderPlan:
    """Order-key writes needed to place one contact."""

    contact_id: str
    new_key: float
    updates: dict[str, float] = field(default_factory=dict)
    rebalanced: bool = False


def plan_reorder(
    contacts: Sequence[ContactRecord],
    contact_id: str,
    prev_key: float | None,
    next_key: float | None,
    now_ms: float,
    min_gap: float = 1e-6,
    step: float = 1024.0,
) -> ReorderPlan:
    """Work out the key writes that place `contact_id` between the neighbors."""
    ordered = manual_order(contacts)
    if not any(c.id == contact_id for c in ordered):
        raise NotFoundError(f"Contact not found: {contact_id}")

    candidate = order_key_between(prev_key, next_key, now_ms)
    if not needs_rebalance(prev_key, next_key, candidate, min_gap):
        return ReorderPlan(
            contact_id=contact_id,
            new_key=candidate,
            updates={contact_id: candidate},
        )

    others = [c for c in ordered if c.id != contact_id]
    if prev_key is None:
        insert_at = 0
    else:
        insert_at = sum(1 for c in others if c.order_key <= prev_key)
    sequence = [c.id for c in others]
    sequence.insert(insert_at, contact_id)

    current = {c.id: c.order_key for c in ordered}
    new_keys = {cid: step * (i + 1) for i, cid in enumerate(sequence)}
    updates = {cid: key for cid, key in new_keys.items() if current.get(cid) != key}
    # The moved contact is always written, even if its key happens to match.
    updates[contact_id] = new_keys[contact_id]

    logger.info(
        "Order keys renumbered",
        extra={
            "contact_id": contact_id,
            "contacts": len(sequence),
            "writes": len(updates),
        },
    )
    return ReorderPlan(
        contact_id=contact_id,
        new_key=new_keys[contact_id],
        updates=updates,
        rebalanced=True,
    )
