# gltfmesh/vertex.py
from __future__ import annotations

import colorsys
import math
from typing import Optional, Sequence, Tuple

from .errors import InvalidArgumentError

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Vec4 = Tuple[float, float, float, float]


# ----------------------------
# Small local vector utilities
# ----------------------------

def v_dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def v_len(a: Vec3) -> float:
    return math.sqrt(v_dot(a, a))


def v_norm(a: Vec3) -> Vec3:
    l = v_len(a)
    if l == 0.0:
        return (0.0, 0.0, 0.0)
    return (a[0] / l, a[1] / l, a[2] / l)


def _finite_tuple(value: Sequence[float], size: int, what: str) -> Tuple[float, ...]:
    try:
        items = tuple(float(c) for c in value)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{what} must be {size} numbers (got {value!r})") from e
    if len(items) != size:
        raise InvalidArgumentError(f"{what} must have {size} components (got {len(items)})")
    for c in items:
        if not math.isfinite(c):
            raise InvalidArgumentError(f"{what} components must be finite (got {value!r})")
    return items


def as_position(value: Sequence[float]) -> Vec3:
    return _finite_tuple(value, 3, "position")  # type: ignore[return-value]


def as_color(value: Sequence[float]) -> Vec4:
    """RGB or RGBA in [0, 1]. A missing alpha becomes 1.0."""
    try:
        n = len(value)
    except TypeError as e:
        raise InvalidArgumentError(f"color must be a sequence (got {value!r})") from e
    if n == 3:
        rgba = _finite_tuple(value, 3, "color") + (1.0,)
    else:
        rgba = _finite_tuple(value, 4, "color")
    for c in rgba:
        if c < 0.0 or c > 1.0:
            raise InvalidArgumentError(f"color components must be in [0, 1] (got {value!r})")
    return rgba  # type: ignore[return-value]


def hsb_color(hue: float, saturation: float, brightness: float) -> Vec4:
    """HSB/HSV to RGBA. Hue wraps around, so any real value is accepted."""
    h = hue - math.floor(hue)
    r, g, b = colorsys.hsv_to_rgb(h, saturation, brightness)
    return (r, g, b, 1.0)


class MeshVertex:
    """
    One vertex of a mesh under construction.

    Vertices are created by TopologyBuilder.new_vertex() and belong to that
    builder. Setters return the vertex so calls can be chained:

        builder.new_vertex((0, 0, 0)).set_color((1, 0, 0)).set_normal((0, 0, 1))

    Once the owning builder has been built every setter raises
    InvalidArgumentError.
    """

    __slots__ = ("index", "position", "color", "normal", "texcoord", "_frozen")

    def __init__(self, index: int, position: Sequence[float]) -> None:
        self.index = index
        self.position: Vec3 = as_position(position)
        self.color: Optional[Vec4] = None
        self.normal: Optional[Vec3] = None
        self.texcoord: Optional[Vec2] = None
        self._frozen = False

    def __repr__(self) -> str:
        return f"MeshVertex(index={self.index}, position={self.position})"

    def _check_mutable(self) -> None:
        if self._frozen:
            raise InvalidArgumentError(f"vertex {self.index} belongs to a builder that was already built")

    def set_color(self, color: Sequence[float]) -> "MeshVertex":
        self._check_mutable()
        self.color = as_color(color)
        return self

    def set_color_hsb(self, hue: float, saturation: float, brightness: float) -> "MeshVertex":
        return self.set_color(hsb_color(hue, saturation, brightness))

    def set_normal(self, normal: Sequence[float]) -> "MeshVertex":
        # stored unit length; glTF validators reject anything else
        self._check_mutable()
        n = _finite_tuple(normal, 3, "normal")
        if v_len(n) == 0.0:  # type: ignore[arg-type]
            raise InvalidArgumentError(f"normal must not be zero-length (vertex {self.index})")
        self.normal = v_norm(n)  # type: ignore[arg-type]
        return self

    def set_texcoord(self, texcoord: Sequence[float]) -> "MeshVertex":
        self._check_mutable()
        self.texcoord = _finite_tuple(texcoord, 2, "texcoord")  # type: ignore[assignment]
        return self
