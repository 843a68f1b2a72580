"""
Quadric Mesh Decimation - Command Line
======================================

Simplifies a mesh file (or a generated sample mesh) and writes the
result, optionally printing a quality report.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from quadric_decimation.evaluation import MeshEvaluator
from quadric_decimation.mesh_decimator import MeshDecimator
from quadric_decimation.utils import (
    SAMPLE_MESHES,
    create_sample_mesh,
    load_mesh,
    print_mesh_info,
    save_mesh,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Mesh simplification using Quadric Error Metrics (QEM)"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--mesh", "-m", type=str, default=None,
        help="Path to input mesh file"
    )
    source.add_argument(
        "--sample", type=str, choices=SAMPLE_MESHES, default="sphere",
        help="Generated mesh to use when no file is given (default: sphere)"
    )
    parser.add_argument(
        "--output", "-o", type=str, default="output",
        help="Output directory for results"
    )
    parser.add_argument(
        "--ratio", "-r", type=float, default=0.5,
        help="Ratio of triangles to keep, in (0, 1] (default: 0.5)"
    )
    parser.add_argument(
        "--aggressiveness", "-a", type=float, default=7,
        help="Threshold growth exponent (default: 7)"
    )
    parser.add_argument(
        "--iterations", "-n", type=int, default=100,
        help="Maximum number of sweeps (default: 100)"
    )
    parser.add_argument(
        "--chunk-size", type=int, default=1000,
        help="Items per scheduler chunk (default: 1000)"
    )
    parser.add_argument(
        "--border-bias", action="store_true",
        help="Penalize collapses of triangles with border corners"
    )
    parser.add_argument(
        "--evaluate", "-e", action="store_true",
        help="Print distance and orientation metrics"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log per-iteration progress"
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("MESH DECIMATION")
    print("Using Quadric Error Metrics (QEM)")
    print("=" * 60)

    if args.mesh:
        print(f"\nLoading mesh from: {args.mesh}")
        if not Path(args.mesh).is_file():
            print(f"Error: {args.mesh} does not exist", file=sys.stderr)
            return 1
        try:
            mesh = load_mesh(args.mesh)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        mesh_name = Path(args.mesh).stem
    else:
        mesh = create_sample_mesh(args.sample)
        mesh_name = args.sample

    print_mesh_info(mesh, mesh_name)

    try:
        decimator = MeshDecimator(chunk_size=args.chunk_size,
                                  border_bias=args.border_bias)
        start_time = time.time()
        simplified = decimator.simplify(mesh, args.ratio,
                                        aggressiveness=args.aggressiveness,
                                        iterations=args.iterations)
        runtime = time.time() - start_time
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"\n  Faces: {len(mesh.faces)} -> {len(simplified.faces)}")
    print(f"  Vertices: {len(mesh.vertices)} -> {len(simplified.vertices)}")
    print(f"  Collapses: {len(decimator.get_collapse_history())}")
    print(f"  Runtime: {runtime:.3f}s")

    if args.evaluate:
        evaluator = MeshEvaluator()
        metrics = evaluator.compute_all_metrics(mesh, simplified)
        metrics['runtime'] = runtime
        print("\n" + evaluator.generate_report(metrics, f"QEM ({args.ratio * 100:.0f}% target)"))

    output_path = output_dir / f"{mesh_name}_simplified_{int(args.ratio * 100)}pct.ply"
    save_mesh(simplified, str(output_path))
    print(f"Saved: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
