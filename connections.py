"""Belts and pipes joining an output port to an input port."""

import math
import uuid
from dataclasses import dataclass, field
from enum import IntEnum

from recipes import Item


class BeltTier(IntEnum):
    """conveyor belt and pipeline marks"""

    MK1 = 1
    MK2 = 2
    MK3 = 3
    MK4 = 4
    MK5 = 5
    PIPE_MK1 = 10
    PIPE_MK2 = 11


# The capacities of the conveyors and pipelines in the game, per minute
_CAPACITIES = {
    BeltTier.MK1: 60.0,
    BeltTier.MK2: 120.0,
    BeltTier.MK3: 270.0,
    BeltTier.MK4: 480.0,
    BeltTier.MK5: 780.0,
    BeltTier.PIPE_MK1: 300.0,
    BeltTier.PIPE_MK2: 600.0,
}


def get_belt_capacity(belt: int) -> float:
    """Get the maximum throughput of a belt or pipe tier.

    Precondition:
        belt is an int (a BeltTier or any other value)

    Postcondition:
        returns the items/minute capacity for known tiers
        returns math.inf for unknown tiers

    Args:
        belt: belt or pipe tier

    Returns:
        items per minute the connection can carry
    """
    return _CAPACITIES.get(belt, math.inf)


def new_id() -> str:
    """Generate a fresh identity for a graph element."""
    return uuid.uuid4().hex


@dataclass(eq=False)
class Connection:
    """a belt or pipe from an output port to an input port"""

    source_node_id: str
    source_port_id: str
    target_node_id: str
    target_port_id: str
    item: Item | None = None
    belt: int = BeltTier.MK1
    id: str = field(default_factory=new_id)

    # Computed by the flow calculator
    actual_flow: float = 0.0
    requested_flow: float = 0.0
    is_bottleneck: bool = False
    is_cross_boundary: bool = False

    @property
    def max_capacity(self) -> float:
        return get_belt_capacity(self.belt)

    @property
    def usage_ratio(self) -> float:
        """Fraction of the capacity in use; 0.0 when the capacity is unbounded."""
        capacity = self.max_capacity
        if capacity <= 0 or math.isinf(capacity):
            return 0.0
        return self.actual_flow / capacity

    @property
    def capacity_label(self) -> str:
        capacity = self.max_capacity
        shown = "unbounded" if math.isinf(capacity) else f"{capacity:g}/min"
        return f"Mk.{int(self.belt)} ({shown})"

    def reset(self):
        """Clear the computed state before a calculation pass."""
        self.actual_flow = 0.0
        self.requested_flow = 0.0
        self.is_bottleneck = False
        self.is_cross_boundary = False
