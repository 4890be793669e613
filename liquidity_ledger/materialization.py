"""
materialization.py - Converting virtual rollover shares into concrete balances

Splits are lazy: when an epoch splits, each LP's balance stays recorded
against the original epoch. An LP's *virtual* position is what that balance
becomes once projected through the split chain:

    at split epoch e with O = pre_split_total_shares, L = total_shares:
        s_locked   = s * L // O      stays in e
        s_rollover = s - s_locked    moves to e.rollover_epoch_id

Materializing walks the chain from the LP's progress pointer, applies this
projection hop by hop, and records where it stopped. A single call walks at
most MAX_MATERIALIZE_HOPS links; further calls pick up from the new pointer.

compute_materialization is pure: it takes the epoch arena and one LP's
balances and returns a plan. The same walk with no hop cap drives the
read-only virtual views.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .core import NO_EPOCH, Epoch, InconsistentSplitState


@dataclass(frozen=True, slots=True)
class MaterializationStep:
    """One converted split link for one LP."""
    epoch_id: int
    rollover_epoch_id: int
    original_shares: int
    locked_shares: int
    rollover_shares: int


@dataclass(frozen=True, slots=True)
class MaterializationPlan:
    """
    Outcome of walking one LP's position along the split chain.

    Attributes:
        start_epoch_id: Progress pointer the walk started from.
        end_epoch_id: Progress pointer after the walk.
        hops: Split links traversed (including links where the LP held nothing).
        steps: Links where the LP actually held shares and balances changed.
        balances: The LP's resulting epoch -> shares map.
    """
    start_epoch_id: int
    end_epoch_id: int
    hops: int
    steps: Tuple[MaterializationStep, ...]
    balances: Mapping[int, int]

    @property
    def is_noop(self) -> bool:
        return self.start_epoch_id == self.end_epoch_id and not self.steps


def compute_materialization(
    epochs: Mapping[int, Epoch],
    balances: Mapping[int, int],
    start_epoch_id: int,
    max_hops: Optional[int],
) -> MaterializationPlan:
    """
    Walk the split chain from start_epoch_id. Pure function.

    Args:
        epochs: Epoch arena (epoch_id -> Epoch).
        balances: One LP's concrete balances (epoch_id -> scaled shares).
        start_epoch_id: The LP's current progress pointer.
        max_hops: Split links to walk at most; None walks to the end of the chain.

    Returns:
        MaterializationPlan. Input mappings are not modified.

    Raises:
        InconsistentSplitState: If a split epoch has zero pre-split shares or
            points at a rollover epoch that does not exist.
    """
    projected: Dict[int, int] = dict(balances)
    steps = []
    current = start_epoch_id
    hops = 0

    while max_hops is None or hops < max_hops:
        epoch = epochs.get(current)
        if epoch is None or not epoch.split:
            break
        if epoch.pre_split_total_shares == 0:
            raise InconsistentSplitState(
                f"epoch {current} is split but has zero pre-split shares"
            )
        rollover_id = epoch.rollover_epoch_id
        if rollover_id == NO_EPOCH:
            break
        if rollover_id not in epochs:
            raise InconsistentSplitState(
                f"epoch {current} rolls over into missing epoch {rollover_id}"
            )

        held = projected.get(current, 0)
        if held > 0:
            locked = held * epoch.total_shares // epoch.pre_split_total_shares
            rollover = held - locked
            projected[current] = locked
            projected[rollover_id] = projected.get(rollover_id, 0) + rollover
            steps.append(MaterializationStep(
                epoch_id=current,
                rollover_epoch_id=rollover_id,
                original_shares=held,
                locked_shares=locked,
                rollover_shares=rollover,
            ))

        current = rollover_id
        hops += 1

    return MaterializationPlan(
        start_epoch_id=start_epoch_id,
        end_epoch_id=current,
        hops=hops,
        steps=tuple(steps),
        balances=projected,
    )
