#!/usr/bin/env python3
"""
Break a convex shape into fragments around an impact point.

Loads a shape in the geometry interchange format (or the convex hull of a
mesh file), splits it into prism cells around the impact, and writes the
fragments with their rigid-body states.

Usage:
    python scripts/fracture_shape.py
    python scripts/fracture_shape.py --input assets/plate_convex.json --impact 0.2,0,0.19 --seeds 6
    python scripts/fracture_shape.py --input rock.stl --seed 7 --export-meshes --simulate
"""
import sys
import argparse
import logging
from pathlib import Path

import numpy as np

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fragment_assembler import FragmentationConfig, RigidBodyState, fragment_polyhedron
from geometry_io import (
    GeometryFormatError,
    export_fragment_meshes,
    fragments_scene,
    load_shape,
    write_fragments_json,
)

DEFAULT_SHAPE = Path(__file__).parent.parent / "assets" / "plate_convex.json"


def _vector(text: str) -> np.ndarray:
    try:
        values = [float(v) for v in text.split(",")]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected x,y,z but got {text!r}")
    if len(values) != 3:
        raise argparse.ArgumentTypeError(f"Expected 3 components but got {len(values)}")
    return np.array(values)


def _run_drop_test(polyhedron, config: FragmentationConfig, height: float,
                   mass: float, duration: float):
    from physics_world import FractureWorld, WorldConfig

    state = RigidBodyState(position=[0.0, 0.0, height], mass=mass)
    with FractureWorld(WorldConfig(), fragmentation=config) as world:
        world.add_body(polyhedron, state)
        created = world.run(duration)
        print(f"\nDrop test: {created} fragments created, "
              f"{len(world.body_ids)} bodies after {world.sim_time:.2f} s")


def main():
    parser = argparse.ArgumentParser(
        description="Break a convex shape into fragments around an impact point.",
    )
    parser.add_argument(
        "--input", default=str(DEFAULT_SHAPE),
        help="Shape file: interchange JSON or any mesh trimesh reads (default: plate)",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output directory (default: <input_dir>/<input_stem>_fragments/)",
    )
    parser.add_argument(
        "--impact", type=_vector, default=np.zeros(3),
        help="Impact point in body space as x,y,z (default: 0,0,0)",
    )
    parser.add_argument(
        "--up", type=_vector, default=np.array([0.0, 0.0, 1.0]),
        help="Propagation axis as x,y,z (default: 0,0,1)",
    )
    parser.add_argument(
        "--seeds", type=int, default=4,
        help="Number of seed points (default: 4)",
    )
    parser.add_argument(
        "--radius", type=float, default=None,
        help="Seed scatter radius (default: half the bounding radius)",
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for reproducible fragments",
    )
    parser.add_argument(
        "--mass", type=float, default=10.0,
        help="Mass of the source body in kg (default: 10)",
    )
    parser.add_argument(
        "--center-mode", default="seed", choices=["seed", "centroid"],
        help="Fragment origin: its seed point or its centroid (default: seed)",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Fail on the first cell that cannot be clipped",
    )
    parser.add_argument(
        "--export-meshes", action="store_true",
        help="Export one world-space mesh per fragment",
    )
    parser.add_argument(
        "--format", default="stl", choices=["stl", "obj", "ply", "glb"],
        help="Mesh format for --export-meshes (default: stl)",
    )
    parser.add_argument(
        "--simulate", action="store_true",
        help="Drop the shape in a PyBullet world and break it on impact",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    # Logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Resolve paths
    input_path = Path(args.input).resolve()
    if not input_path.is_file():
        parser.error(f"Input file not found: {input_path}")
    if args.seeds < 0:
        parser.error(f"--seeds must be non-negative, got {args.seeds}")
    if args.radius is not None and args.radius < 0:
        parser.error(f"--radius must be non-negative, got {args.radius}")
    if args.output:
        output_dir = Path(args.output).resolve()
    else:
        output_dir = input_path.parent / f"{input_path.stem}_fragments"
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        source = load_shape(input_path)
    except GeometryFormatError as exc:
        parser.error(str(exc))

    issues = source.validate()
    if issues:
        print(f"Shape warnings: {issues}")

    config = FragmentationConfig(
        seed_count=args.seeds,
        seed_radius=args.radius,
        up_axis=tuple(args.up),
        center_mode=args.center_mode,
        strict=args.strict,
        random_seed=args.seed,
    )
    state = RigidBodyState(mass=args.mass)

    print(f"Fracturing {input_path.name} ({source.vertex_count} vertices, "
          f"{source.face_count} faces, volume {source.volume:.4f}) ...")
    fragments = fragment_polyhedron(source, state, args.impact, up=args.up, config=config)

    # Summary
    total = sum(f.volume for f in fragments)
    print(f"\nResult: {len(fragments)} fragments, "
          f"{100.0 * total / source.volume:.1f}% of source volume")
    for f in fragments:
        print(f"  seed {f.seed_index}: {f.polyhedron.face_count} faces, "
              f"volume {f.volume:.4f}, mass {f.state.mass:.3f}")

    json_path = output_dir / "fragments.json"
    write_fragments_json(json_path, fragments, metadata={
        "input": str(input_path),
        "impact": args.impact.tolist(),
        "up": args.up.tolist(),
        "seed_count": args.seeds,
        "random_seed": args.seed,
        "source_volume": float(source.volume),
    })
    print(f"\nFragments saved to {json_path}")

    if args.export_meshes and fragments:
        paths = export_fragment_meshes(fragments, output_dir / "meshes", file_type=args.format)
        scene_path = output_dir / "fragments.glb"
        fragments_scene(fragments).export(str(scene_path))
        print(f"Exported {len(paths)} meshes and {scene_path.name}")

    if args.simulate:
        _run_drop_test(source, config, height=2.0, mass=args.mass, duration=2.0)


if __name__ == "__main__":
    main()
