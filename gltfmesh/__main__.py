# gltfmesh/__main__.py
from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from typing import List, Optional

from . import shapes
from .errors import MeshError
from .expr import compile_math_expr, curve_from_expressions
from .topology import TopologyBuilder, TopologyMode
from .writer import GltfWriter

_DEF_HELP = """
Examples:
  python -m gltfmesh --shape spiral --points 1000 --rotations 40 --out test_line_strip.glb
  python -m gltfmesh --shape circle --segments 128 --out circle.gltf --pretty
  python -m gltfmesh --shape sphere --segments 32 --out sphere.gltf --embed
  python -m gltfmesh --shape ribbon --twist 3.14 --out ribbon.glb
  python -m gltfmesh --shape curve --x "cos(t)" --y "sin(t)" --z "t/10" --t1 "8*pi" --out helix.glb
  python -m gltfmesh --shape spiral --out s.glb --extras '["some","additional","data"]'
"""


def _build_shape(args: argparse.Namespace) -> TopologyBuilder:
    color_type = "ubyte" if args.ubyte_colors else "float"
    if args.shape == "spiral":
        return shapes.spiral_sphere(args.points, args.rotations, name=args.name or "test_line_strip",
                                    color_type=color_type)
    if args.shape == "circle":
        return shapes.circle(args.segments, args.radius, name=args.name or "circle")
    if args.shape == "disc":
        return shapes.disc(args.segments, args.radius, name=args.name or "disc")
    if args.shape == "ribbon":
        return shapes.ribbon(args.segments, args.length, args.width, twist=args.twist, name=args.name or "ribbon")
    if args.shape == "sphere":
        return shapes.triangle_sphere(args.radius, args.segments, args.rings, name=args.name or "triangle_sphere")
    if args.shape == "points":
        return shapes.point_grid(args.gridx, args.gridy, args.spacing, name=args.name or "point_grid")
    if args.shape == "curve":
        builder = TopologyBuilder(args.name or "curve", TopologyMode.LINE_STRIP, color_type=color_type)
        return curve_from_expressions(
            builder, args.x, args.y, args.z,
            t_range=(args.t0, args.t1), segments=args.segments, hue_range=(0.0, 1.0),
        )
    raise SystemExit("Unknown shape")


def _parse_t(value: str) -> float:
    # --t0/--t1 accept constant expressions like "2*pi"
    try:
        f = compile_math_expr(value, vars=())
    except MeshError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    t = f()
    if not math.isfinite(t):
        raise argparse.ArgumentTypeError(f"Not a finite number: {value}")
    return t


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="gltfmesh", description="gltfmesh: procedural glTF mesh generator",
                                epilog=_DEF_HELP, formatter_class=argparse.RawTextHelpFormatter)
    p.add_argument("--shape", required=True, choices=["spiral", "circle", "disc", "ribbon", "sphere", "points", "curve"])
    p.add_argument("--out", required=True, help="Output path (.gltf or .glb)")
    p.add_argument("--name", help="Mesh/node name (default: shape specific)")
    p.add_argument("--embed", action="store_true", help="Embed the buffer in a .gltf as a base64 data URI")
    p.add_argument("--pretty", action="store_true", help="Pretty-print the .gltf JSON (indent=2)")
    p.add_argument("--ubyte-colors", action="store_true", help="Store colors as normalized unsigned bytes")
    p.add_argument("--extras", help="JSON value stored as the primitive's extras")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    # shape params
    p.add_argument("--points", type=int, default=1000)
    p.add_argument("--rotations", type=int, default=40)
    p.add_argument("--segments", type=int, default=32)
    p.add_argument("--rings", type=int)
    p.add_argument("--radius", type=float, default=1.0)
    p.add_argument("--length", type=float, default=2.0)
    p.add_argument("--width", type=float, default=0.5)
    p.add_argument("--twist", type=float, default=0.0)
    p.add_argument("--gridx", type=int, default=10)
    p.add_argument("--gridy", type=int, default=10)
    p.add_argument("--spacing", type=float, default=0.1)
    # curve params
    p.add_argument("--x", default="cos(t)")
    p.add_argument("--y", default="sin(t)")
    p.add_argument("--z", default="0")
    p.add_argument("--t0", type=_parse_t, default=0.0)
    p.add_argument("--t1", type=_parse_t, default=2 * math.pi)
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    extras = None
    if args.extras is not None:
        try:
            extras = json.loads(args.extras)
        except ValueError as exc:
            print(f"error: --extras is not valid JSON: {exc}", file=sys.stderr)
            return 2

    writer = GltfWriter(embed_buffer=args.embed, pretty=args.pretty)
    try:
        builder = _build_shape(args)
        node = builder.build(writer)
        if extras is not None:
            node.primitive["extras"] = extras
        writer.write_gltf(args.out)
    except MeshError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
