"""
Impact events reported by the physics world and the momentum break rule.

A body breaks when the momentum it carries into a contact, its mass times the
approach speed along the contact normal, reaches the configured threshold.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List

import numpy as np


@dataclass
class ImpactEvent:
    """One contact of a tracked body during a physics step."""
    body_id: int
    other_id: int               # body touched (the ground plane included)
    world_point: np.ndarray     # (3,) contact point on the body, world space
    local_point: np.ndarray     # (3,) same point in the body's frame
    normal: np.ndarray          # (3,) unit contact normal pointing into the body
    impact_velocity: float      # approach speed along the normal (>= 0)
    mass: float

    @property
    def momentum(self) -> float:
        return self.mass * self.impact_velocity

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "body_id": self.body_id,
            "other_id": self.other_id,
            "world_point": np.asarray(self.world_point).tolist(),
            "local_point": np.asarray(self.local_point).tolist(),
            "normal": np.asarray(self.normal).tolist(),
            "impact_velocity": float(self.impact_velocity),
            "mass": float(self.mass),
            "momentum": float(self.momentum),
        }


def exceeds_momentum_threshold(event: ImpactEvent, threshold: float) -> bool:
    """True when the impact carries enough momentum to break the body."""
    return event.momentum >= threshold


def select_break_events(
    events: Iterable[ImpactEvent],
    threshold: float,
) -> List[ImpactEvent]:
    """Strongest qualifying event per body, in the order bodies first qualify.

    A body touching several things in one step breaks once, at the contact
    with the largest momentum.
    """
    strongest: Dict[int, ImpactEvent] = {}
    for event in events:
        if not exceeds_momentum_threshold(event, threshold):
            continue
        current = strongest.get(event.body_id)
        if current is None or event.momentum > current.momentum:
            strongest[event.body_id] = event
    return list(strongest.values())
