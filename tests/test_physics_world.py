"""Tests for the PyBullet fracture world."""
import numpy as np
import pytest

p = pytest.importorskip("pybullet")

from fragment_assembler import FragmentationConfig, RigidBodyState
from impact import ImpactEvent
from physics_world import FractureWorld, WorldConfig


def _event(body_id, mass, speed=10.0):
    return ImpactEvent(
        body_id=body_id,
        other_id=-1,
        world_point=np.array([0.0, 0.0, 0.0]),
        local_point=np.array([0.0, 0.0, -1.0]),
        normal=np.array([0.0, 0.0, 1.0]),
        impact_velocity=speed,
        mass=mass,
    )


@pytest.fixture
def world():
    w = FractureWorld(WorldConfig(), fragmentation=FragmentationConfig(random_seed=0))
    yield w
    w.close()


class TestBodies:
    """Test adding, reading and removing bodies."""

    def test_add_body_state(self, world, cube):
        state = RigidBodyState(position=[0.0, 0.0, 3.0], mass=5.0, velocity=[1.0, 0.0, 0.0])
        body_id = world.add_body(cube, state)
        read = world.body_state(body_id)
        assert read.mass == pytest.approx(5.0)
        np.testing.assert_allclose(read.position, [0.0, 0.0, 3.0], atol=1e-6)
        np.testing.assert_allclose(read.velocity, [1.0, 0.0, 0.0], atol=1e-6)
        assert world.body_ids == [body_id]

    def test_remove_body(self, world, cube):
        body_id = world.add_body(cube, RigidBodyState(position=[0.0, 0.0, 3.0]))
        world.remove_body(body_id)
        assert world.body_ids == []

    def test_remove_body_frees_server_body(self, world, cube):
        client = world.physics_client
        baseline = p.getNumBodies(physicsClientId=client)
        for _ in range(3):
            body_id = world.add_body(cube, RigidBodyState(position=[0.0, 0.0, 3.0]))
            assert p.getNumBodies(physicsClientId=client) == baseline + 1
            world.remove_body(body_id)
            assert p.getNumBodies(physicsClientId=client) == baseline
        assert world.body_ids == []

    def test_context_manager_disconnects(self, cube):
        with FractureWorld(WorldConfig(ground=False)) as w:
            w.add_body(cube, RigidBodyState())
        assert w.physics_client is None
        assert w.body_ids == []


class TestBreaking:
    """Test replacing bodies with fragments."""

    def test_break_body(self, world, cube):
        body_id = world.add_body(cube, RigidBodyState(position=[0.0, 0.0, 1.0], mass=8.0))
        new_ids = world.break_body(_event(body_id, 8.0))
        assert 1 <= len(new_ids) <= 4
        assert body_id not in world.body_ids or body_id in new_ids
        total_mass = sum(world.body_state(i).mass for i in new_ids)
        assert total_mass == pytest.approx(8.0, rel=1e-4)
        assert all(world.bodies[i].generation == 1 for i in new_ids)

    def test_generation_limit(self, cube):
        config = FragmentationConfig(max_generations=1, random_seed=0)
        with FractureWorld(WorldConfig(), fragmentation=config) as w:
            body_id = w.add_body(cube, RigidBodyState(position=[0.0, 0.0, 1.0]), generation=1)
            assert w.break_body(_event(body_id, 1.0)) == []
            assert w.body_ids == [body_id]

    def test_unknown_body_is_ignored(self, world):
        assert world.break_body(_event(12345, 1.0)) == []


class TestStepping:
    """Test impacts reported by stepping."""

    def test_free_fall_has_no_events(self, cube):
        with FractureWorld(WorldConfig(ground=False)) as w:
            w.add_body(cube, RigidBodyState(position=[0.0, 0.0, 5.0]))
            assert w.step() == []
            assert w.sim_time == pytest.approx(1 / 240)

    def test_fallen_bodies_removed(self, cube):
        with FractureWorld(WorldConfig(ground=False, fall_limit=-1.0)) as w:
            w.add_body(cube, RigidBodyState(position=[0.0, 0.0, 0.0]))
            w.run(1.0)
            assert w.body_ids == []

    def test_hard_drop_breaks_body(self, world, cube):
        state = RigidBodyState(position=[0.0, 0.0, 1.5], mass=10.0, velocity=[0.0, 0.0, -6.0])
        world.add_body(cube, state)
        created = world.run(0.5)
        assert created > 0
        assert len(world.body_ids) > 1

    def test_soft_landing_keeps_body(self, cube):
        config = FragmentationConfig(momentum_threshold=1e6)
        with FractureWorld(WorldConfig(), fragmentation=config) as w:
            body_id = w.add_body(cube, RigidBodyState(position=[0.0, 0.0, 1.2], mass=1.0))
            assert w.run(0.5) == 0
            assert w.body_ids == [body_id]
