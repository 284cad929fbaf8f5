"""
Fragment producer interface.

The physics world does not know how a body breaks; it hands an ImpactContext
to a FragmentProducer and adds whatever fragments come back.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from fragment_assembler import (
    Fragment,
    FragmentationConfig,
    RigidBodyState,
    fragment_polyhedron,
)
from polyhedron import Polyhedron

logger = logging.getLogger(__name__)


@dataclass
class ImpactContext:
    """Everything a producer needs to break one body."""
    polyhedron: Polyhedron      # body-space geometry
    state: RigidBodyState
    local_point: np.ndarray     # (3,) impact point in body space
    direction: np.ndarray       # (3,) propagation axis in body space
    generation: int = 0


class FragmentProducer(ABC):
    """Abstract base class for fracture strategies.

    Implementations must:
    - Leave the context's polyhedron untouched
    - Return fragments whose states are already placed in world space
    - Return an empty list when the body should stay whole
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Producer name identifier (e.g., 'voronoi')."""
        ...

    @abstractmethod
    def produce_fragments(self, context: ImpactContext) -> List[Fragment]:
        """Break the body described by ``context``.

        Args:
            context: Impacted body, its state and the impact in body space.

        Returns:
            Fragments of the body, possibly empty.

        Raises:
            ClipInvariantError: Only when the producer runs in strict mode.
        """
        ...


class VoronoiFragmentProducer(FragmentProducer):
    """Prism-cell split around the impact point with seeded randomness."""

    def __init__(self, config: Optional[FragmentationConfig] = None):
        self.config = config or FragmentationConfig()
        self.rng = np.random.default_rng(self.config.random_seed)

    @property
    def name(self) -> str:
        return "voronoi"

    def produce_fragments(self, context: ImpactContext) -> List[Fragment]:
        direction = np.asarray(context.direction, dtype=float)
        if not np.any(direction):
            direction = np.asarray(self.config.up_axis, dtype=float)
        fragments = fragment_polyhedron(
            context.polyhedron,
            context.state,
            context.local_point,
            up=direction,
            config=self.config,
            rng=self.rng,
            generation=context.generation,
        )
        logger.debug(
            "%s producer: generation %d body -> %d fragments",
            self.name, context.generation, len(fragments),
        )
        return fragments
