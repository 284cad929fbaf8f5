"""
Physics world for breakable convex bodies.

Uses PyBullet to simulate convex polyhedra under gravity. Each step reports
the contacts of tracked bodies as impact events; bodies that hit hard enough
are broken between steps by a FragmentProducer.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pybullet as p
import pybullet_data

from fragment_assembler import FragmentationConfig, RigidBodyState
from fragment_producer import FragmentProducer, ImpactContext, VoronoiFragmentProducer
from impact import ImpactEvent, select_break_events
from polyhedron import Polyhedron

logger = logging.getLogger(__name__)


@dataclass
class WorldConfig:
    """Configuration for the physics world."""
    gravity: Tuple[float, float, float] = (0.0, 0.0, -9.81)
    time_step: float = 1 / 240
    ground: bool = True             # static plane at z = 0
    gui: bool = False
    fall_limit: float = -10.0       # bodies below this height are removed


@dataclass
class TrackedBody:
    """Bookkeeping for a body owned by the world."""
    polyhedron: Polyhedron
    generation: int = 0
    inertia: np.ndarray = field(default_factory=lambda: np.zeros(3))
    force: np.ndarray = field(default_factory=lambda: np.zeros(3))


class FractureWorld:
    """
    PyBullet world whose bodies break on hard impacts.
    """

    def __init__(self, config: Optional[WorldConfig] = None,
                 fragmentation: Optional[FragmentationConfig] = None,
                 producer: Optional[FragmentProducer] = None):
        """
        Initialize the world and connect to a physics server.

        Args:
            config: World parameters (gravity, step, ground, GUI)
            fragmentation: Break threshold, generation cap and split parameters
            producer: Fracture strategy (default: Voronoi prism split)
        """
        self.config = config or WorldConfig()
        self.fragmentation = fragmentation or FragmentationConfig()
        self.producer = producer or VoronoiFragmentProducer(self.fragmentation)
        self.physics_client = None
        self.plane_id = None
        self.bodies: Dict[int, TrackedBody] = {}
        self.sim_time = 0.0
        self._connect()

    # ─── Connection ──────────────────────────────────────────────────────────

    def _connect(self):
        """Connect to physics server."""
        if self.config.gui:
            self.physics_client = p.connect(p.GUI)
            if self.physics_client < 0:
                self.physics_client = p.connect(p.DIRECT)
        else:
            self.physics_client = p.connect(p.DIRECT)

        p.setGravity(*self.config.gravity, physicsClientId=self.physics_client)
        p.setPhysicsEngineParameter(
            fixedTimeStep=self.config.time_step,
            physicsClientId=self.physics_client
        )

        if self.config.ground:
            p.setAdditionalSearchPath(pybullet_data.getDataPath())
            self.plane_id = p.loadURDF("plane.urdf", physicsClientId=self.physics_client)

    def close(self):
        """Disconnect from physics server."""
        if self.physics_client is not None:
            if p.getConnectionInfo(self.physics_client)["isConnected"]:
                p.disconnect(self.physics_client)
            self.physics_client = None
        self.bodies.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ─── Bodies ──────────────────────────────────────────────────────────────

    @property
    def body_ids(self) -> List[int]:
        return list(self.bodies)

    def add_body(self, polyhedron: Polyhedron, state: RigidBodyState,
                 generation: int = 0) -> int:
        """
        Add a convex body to the world.

        Args:
            polyhedron: Body-space geometry (convex)
            state: Pose, mass and velocities
            generation: Number of times the body's ancestors were broken

        Returns:
            PyBullet body ID
        """
        shape = p.createCollisionShape(
            p.GEOM_MESH,
            vertices=polyhedron.vertices.tolist(),
            physicsClientId=self.physics_client
        )
        body_id = p.createMultiBody(
            baseMass=float(state.mass),
            baseCollisionShapeIndex=shape,
            basePosition=state.position.tolist(),
            baseOrientation=state.orientation.tolist(),
            physicsClientId=self.physics_client
        )
        p.resetBaseVelocity(
            body_id,
            linearVelocity=state.velocity.tolist(),
            angularVelocity=state.angular_velocity.tolist(),
            physicsClientId=self.physics_client
        )
        self.bodies[body_id] = TrackedBody(
            polyhedron=polyhedron,
            generation=generation,
            inertia=state.inertia.copy(),
            force=state.force.copy(),
        )
        logger.debug("Added body %d (generation %d, mass %.3f)", body_id, generation, state.mass)
        return body_id

    def remove_body(self, body_id: int):
        """Remove a tracked body from the world."""
        del self.bodies[body_id]
        p.removeBody(body_id, physicsClientId=self.physics_client)

    def body_state(self, body_id: int) -> RigidBodyState:
        """Current rigid-body state of a tracked body."""
        tracked = self.bodies[body_id]
        pos, orn = p.getBasePositionAndOrientation(body_id, physicsClientId=self.physics_client)
        lin, ang = p.getBaseVelocity(body_id, physicsClientId=self.physics_client)
        mass = p.getDynamicsInfo(body_id, -1, physicsClientId=self.physics_client)[0]
        return RigidBodyState(
            position=np.array(pos),
            orientation=np.array(orn),
            mass=mass,
            velocity=np.array(lin),
            angular_velocity=np.array(ang),
            inertia=tracked.inertia.copy(),
            force=tracked.force.copy(),
        )

    # ─── Stepping ────────────────────────────────────────────────────────────

    def step(self) -> List[ImpactEvent]:
        """
        Advance one fixed step and report contacts of tracked bodies.

        The approach speed of each contact is measured with the velocities
        from before the step, since the solver has already separated the
        bodies by the time the contact is reported.

        Returns:
            One ImpactEvent per tracked body per contact point
        """
        before = {body_id: self.body_state(body_id) for body_id in self.bodies}
        p.stepSimulation(physicsClientId=self.physics_client)
        self.sim_time += self.config.time_step
        if self.config.gui:
            time.sleep(self.config.time_step)

        events = []
        contacts = p.getContactPoints(physicsClientId=self.physics_client) or ()
        for contact in contacts:
            body_a, body_b = contact[1], contact[2]
            pos_a, pos_b = np.array(contact[5]), np.array(contact[6])
            normal_b = np.array(contact[7])  # points from B towards A

            speed = (
                _point_velocity(before.get(body_b), pos_b)
                - _point_velocity(before.get(body_a), pos_a)
            ) @ normal_b
            speed = max(float(speed), 0.0)

            if body_a in self.bodies:
                events.append(self._make_event(body_a, body_b, pos_a, normal_b, speed, before[body_a]))
            if body_b in self.bodies:
                events.append(self._make_event(body_b, body_a, pos_b, -normal_b, speed, before[body_b]))
        return events

    def _make_event(self, body_id: int, other_id: int, point: np.ndarray,
                    normal: np.ndarray, speed: float,
                    state: RigidBodyState) -> ImpactEvent:
        pos, orn = p.getBasePositionAndOrientation(body_id, physicsClientId=self.physics_client)
        current = RigidBodyState(position=np.array(pos), orientation=np.array(orn))
        return ImpactEvent(
            body_id=body_id,
            other_id=other_id,
            world_point=point,
            local_point=current.world_to_local(point),
            normal=normal,
            impact_velocity=speed,
            mass=state.mass,
        )

    def break_body(self, event: ImpactEvent) -> List[int]:
        """
        Replace a body with its fragments.

        Args:
            event: Impact on the body, as reported by step()

        Returns:
            IDs of the fragment bodies (empty when the body stays whole)
        """
        tracked = self.bodies.get(event.body_id)
        if tracked is None:
            return []
        if tracked.generation >= self.fragmentation.max_generations:
            logger.debug("Body %d at generation %d is not broken", event.body_id, tracked.generation)
            return []

        state = self.body_state(event.body_id)
        context = ImpactContext(
            polyhedron=tracked.polyhedron,
            state=state,
            local_point=np.asarray(event.local_point, dtype=float),
            direction=state.rotation_matrix().T @ np.asarray(event.normal, dtype=float),
            generation=tracked.generation,
        )
        fragments = self.producer.produce_fragments(context)
        if not fragments:
            return []

        self.remove_body(event.body_id)
        new_ids = [self.add_body(f.polyhedron, f.state, f.generation) for f in fragments]
        logger.info(
            "Broke body %d (momentum %.2f) into %d fragments",
            event.body_id, event.momentum, len(new_ids),
        )
        return new_ids

    def remove_fallen(self) -> List[int]:
        """Remove tracked bodies below the fall limit."""
        fallen = []
        for body_id in list(self.bodies):
            pos, _ = p.getBasePositionAndOrientation(body_id, physicsClientId=self.physics_client)
            if pos[2] < self.config.fall_limit:
                self.remove_body(body_id)
                fallen.append(body_id)
        if fallen:
            logger.debug("Removed %d fallen bodies", len(fallen))
        return fallen

    def update(self) -> List[int]:
        """
        Step once, then break every body whose impact passes the threshold.

        Returns:
            IDs of fragment bodies created during this update
        """
        events = self.step()
        self.remove_fallen()
        created = []
        for event in select_break_events(events, self.fragmentation.momentum_threshold):
            created.extend(self.break_body(event))
        return created

    def run(self, duration: float) -> int:
        """Update for ``duration`` seconds of sim time; returns fragments created."""
        steps = int(round(duration / self.config.time_step))
        created = 0
        for _ in range(steps):
            created += len(self.update())
        return created


def _point_velocity(state: Optional[RigidBodyState], point: np.ndarray) -> np.ndarray:
    """Velocity of a world point rigidly attached to a body (zero for static ones)."""
    if state is None:
        return np.zeros(3)
    return state.velocity + np.cross(state.angular_velocity, point - state.position)
