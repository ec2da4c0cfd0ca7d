# gltfmesh/shapes.py
from __future__ import annotations

import math
from typing import List, Optional

from .errors import InvalidArgumentError
from .topology import TopologyBuilder, TopologyMode
from .vertex import Vec3, hsb_color

"""
Procedural drivers for TopologyBuilder, one per topology family.

Each function returns a filled but unbuilt builder; pass it to
builder.build(writer) to add it to a document. Vertices are never shared
between primitives unless the topology mode itself shares them (strips,
loops and fans).
"""


def _require(name: str, n: int, minimum: int) -> None:
    if n < minimum:
        raise InvalidArgumentError(f"{name} must be >= {minimum} (got {n})")


def spiral_sphere(points: int = 1000, rotations: int = 40, *, name: str = "test_line_strip",
                  color_type: str = "float") -> TopologyBuilder:
    """
    A single line strip winding `rotations` times around the unit sphere
    from pole to pole, colored by hue along its length.
    """
    _require("points", points, 1)
    builder = TopologyBuilder(name, TopologyMode.LINE_STRIP, color_type=color_type)
    for i in range(points + 1):
        part = i / points

        # spherical coordinates
        phi = part * rotations * math.pi
        theta = part * math.pi

        radius = math.sin(theta)
        x = radius * math.cos(phi)
        y = radius * math.sin(phi)
        z = math.cos(theta)

        builder.new_vertex((x, y, z)).set_color(hsb_color(part, 0.6, 0.5))
    return builder


def circle(segments: int = 64, radius: float = 1.0, *, name: str = "circle") -> TopologyBuilder:
    """Closed circle in the XY plane as a LINE_LOOP (no repeated first vertex)."""
    _require("segments", segments, 2)
    builder = TopologyBuilder(name, TopologyMode.LINE_LOOP)
    for i in range(segments):
        a = 2.0 * math.pi * i / segments
        builder.new_vertex((radius * math.cos(a), radius * math.sin(a), 0.0))
        builder.set_color(hsb_color(i / segments, 0.8, 0.9))
    return builder


def disc(segments: int = 32, radius: float = 1.0, *, name: str = "disc") -> TopologyBuilder:
    """Filled disc facing +Z as a TRIANGLE_FAN around its center."""
    _require("segments", segments, 3)
    builder = TopologyBuilder(name, TopologyMode.TRIANGLE_FAN)
    builder.new_vertex((0.0, 0.0, 0.0)).set_normal((0.0, 0.0, 1.0))
    # closing the fan repeats the first rim position as its own vertex
    for i in range(segments + 1):
        a = 2.0 * math.pi * i / segments
        builder.new_vertex((radius * math.cos(a), radius * math.sin(a), 0.0)).set_normal((0.0, 0.0, 1.0))
    return builder


def ribbon(segments: int = 16, length: float = 2.0, width: float = 0.5, *, twist: float = 0.0,
           name: str = "ribbon") -> TopologyBuilder:
    """
    Flat strip along +X as a TRIANGLE_STRIP, optionally twisted `twist`
    radians about its axis over the full length. Texcoords run u along the
    length and v across it.
    """
    _require("segments", segments, 1)
    builder = TopologyBuilder(name, TopologyMode.TRIANGLE_STRIP)
    half = width / 2.0
    for i in range(segments + 1):
        u = i / segments
        x = -length / 2.0 + u * length
        a = twist * u
        dy, dz = half * math.cos(a), half * math.sin(a)
        builder.new_vertex((x, -dy, -dz)).set_texcoord((u, 0.0))
        builder.new_vertex((x, dy, dz)).set_texcoord((u, 1.0))
    return builder


def triangle_sphere(radius: float = 1.0, segments: int = 16, rings: Optional[int] = None, *,
                    name: str = "triangle_sphere") -> TopologyBuilder:
    """
    UV sphere as a TRIANGLES list with smooth normals. Each triangle gets its
    own three vertices, 6 x segments x (rings - 1) in total.
    """
    if rings is None:
        rings = max(2, segments // 2)
    _require("segments", segments, 3)
    _require("rings", rings, 2)

    grid: List[List[Vec3]] = []
    for i in range(rings + 1):
        theta = i / rings * math.pi  # 0..pi
        st, ct = math.sin(theta), math.cos(theta)
        row: List[Vec3] = []
        for j in range(segments + 1):
            phi = j / segments * 2.0 * math.pi
            row.append((st * math.cos(phi), st * math.sin(phi), ct))
        grid.append(row)

    builder = TopologyBuilder(name, TopologyMode.TRIANGLES)

    def emit(n: Vec3) -> None:
        builder.new_vertex((radius * n[0], radius * n[1], radius * n[2])).set_normal(n)

    for i in range(rings):
        for j in range(segments):
            a, b = grid[i][j], grid[i][j + 1]
            c, d = grid[i + 1][j], grid[i + 1][j + 1]
            # skip the degenerate half of the quads touching a pole
            if i != 0:
                for p in (a, c, b):
                    emit(p)
            if i != rings - 1:
                for p in (b, c, d):
                    emit(p)
    return builder


def point_grid(nx: int = 10, ny: int = 10, spacing: float = 0.1, *, name: str = "point_grid") -> TopologyBuilder:
    """nx x ny POINTS on the XY plane, centered on the origin."""
    _require("nx", nx, 1)
    _require("ny", ny, 1)
    builder = TopologyBuilder(name, TopologyMode.POINTS)
    x0 = -(nx - 1) * spacing / 2.0
    y0 = -(ny - 1) * spacing / 2.0
    for j in range(ny):
        for i in range(nx):
            builder.new_vertex((x0 + i * spacing, y0 + j * spacing, 0.0))
            builder.set_color((i / max(1, nx - 1), j / max(1, ny - 1), 0.5))
    return builder
