# gltfmesh/topology.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidArgumentError, InvalidStateError
from .vertex import MeshVertex, Vec3, Vec4, as_position

if TYPE_CHECKING:
    from .writer import GltfWriter, NodeHandle

_log = logging.getLogger(__name__)


class TopologyMode(IntEnum):
    """Connectivity rule of a primitive. Values are the glTF `mode` codes."""

    POINTS = 0
    LINES = 1
    LINE_LOOP = 2
    LINE_STRIP = 3
    TRIANGLES = 4
    TRIANGLE_STRIP = 5
    TRIANGLE_FAN = 6

    @property
    def min_vertices(self) -> int:
        if self is TopologyMode.POINTS:
            return 1
        if self in (TopologyMode.LINES, TopologyMode.LINE_LOOP, TopologyMode.LINE_STRIP):
            return 2
        return 3

    @property
    def group_size(self) -> int:
        """Vertices consumed per primitive for list modes, 1 for everything else."""
        if self is TopologyMode.LINES:
            return 2
        if self is TopologyMode.TRIANGLES:
            return 3
        return 1


COLOR_TYPES = ("float", "ubyte")

# glTF reserves the maximum value of an index type for primitive restart
_MAX_UINT16_INDEX = 65534


def index_count(mode: TopologyMode, vertex_count: int) -> int:
    g = mode.group_size
    return (vertex_count // g) * g


def derive_indices(mode: TopologyMode, vertex_count: int) -> np.ndarray:
    """
    Index buffer for `vertex_count` insertion-ordered vertices drawn with `mode`.

    Every mode is drawn in insertion order without merging coincident
    positions, so the indices are a run 0..k-1. LINES and TRIANGLES drop a
    trailing incomplete segment/triangle; the strip, loop and fan modes
    already share vertices by definition and reference every vertex.
    """
    count = index_count(mode, vertex_count)
    dtype = "<u2" if vertex_count - 1 <= _MAX_UINT16_INDEX else "<u4"
    return np.arange(count, dtype=dtype)


@dataclass(frozen=True)
class MeshDefinition:
    """Everything the writer needs to emit one node -> mesh -> primitive."""

    name: str
    mode: TopologyMode
    vertex_count: int
    # semantic -> (vertex_count, components) array, in declaration order
    attributes: Dict[str, np.ndarray]
    indices: Optional[np.ndarray]
    position_min: Vec3
    position_max: Vec3
    translation: Optional[Vec3] = None
    rotation: Optional[Vec4] = None
    scale: Optional[Vec3] = None


class TopologyBuilder:
    """
    Accumulates vertices for a single mesh and turns them into a glTF
    primitive of the chosen topology mode.

    Example:
        builder = TopologyBuilder("line", TopologyMode.LINE_STRIP)
        for x in range(3):
            builder.new_vertex((x, 0, 0)).set_color((1, 1, 1))
        node = builder.build(writer)

    A builder is single use: after build() no more vertices can be added
    and the vertices become read-only.
    """

    def __init__(self, name: str, mode: TopologyMode, *, color_type: str = "float", indexed: bool = True) -> None:
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError("mesh name must be a non-empty string")
        try:
            mode = TopologyMode(mode)
        except ValueError as e:
            raise InvalidArgumentError(f"unknown topology mode: {mode!r}") from e
        if color_type not in COLOR_TYPES:
            raise InvalidArgumentError(f"color_type must be one of {COLOR_TYPES} (got {color_type!r})")

        self.name = name
        self.mode = mode
        self.color_type = color_type
        self.indexed = indexed
        self._vertices: List[MeshVertex] = []
        self._translation: Optional[Vec3] = None
        self._rotation: Optional[Vec4] = None
        self._scale: Optional[Vec3] = None
        self._built = False

    def __len__(self) -> int:
        return len(self._vertices)

    def __repr__(self) -> str:
        return f"TopologyBuilder(name={self.name!r}, mode={self.mode.name}, vertices={len(self._vertices)})"

    def get_name(self) -> str:
        return self.name

    @property
    def built(self) -> bool:
        return self._built

    @property
    def vertices(self) -> Tuple[MeshVertex, ...]:
        return tuple(self._vertices)

    def _check_mutable(self) -> None:
        if self._built:
            raise InvalidArgumentError(f"builder {self.name!r} was already built")

    # ---- vertices ----
    def new_vertex(self, position: Sequence[float]) -> MeshVertex:
        self._check_mutable()
        vertex = MeshVertex(len(self._vertices), position)
        self._vertices.append(vertex)
        return vertex

    def _vertex(self, index: Optional[int]) -> MeshVertex:
        self._check_mutable()
        if not self._vertices:
            raise InvalidArgumentError("no vertex has been added yet")
        if index is None:
            return self._vertices[-1]
        if not (0 <= index < len(self._vertices)):
            raise InvalidArgumentError(f"vertex index out of range: {index}")
        return self._vertices[index]

    def set_color(self, color: Sequence[float], index: Optional[int] = None) -> MeshVertex:
        """Color the vertex at `index`, or the most recently added one."""
        return self._vertex(index).set_color(color)

    def set_normal(self, normal: Sequence[float], index: Optional[int] = None) -> MeshVertex:
        return self._vertex(index).set_normal(normal)

    def set_texcoord(self, texcoord: Sequence[float], index: Optional[int] = None) -> MeshVertex:
        return self._vertex(index).set_texcoord(texcoord)

    # ---- node transform ----
    def set_translation(self, translation: Sequence[float]) -> "TopologyBuilder":
        self._check_mutable()
        t = as_position(translation)
        self._translation = None if t == (0.0, 0.0, 0.0) else t
        return self

    def set_rotation(self, rotation: Sequence[float]) -> "TopologyBuilder":
        """Unit quaternion (x, y, z, w). Non-unit input is normalized."""
        self._check_mutable()
        try:
            q = tuple(float(c) for c in rotation)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"rotation must be 4 numbers (got {rotation!r})") from e
        if len(q) != 4 or not all(math.isfinite(c) for c in q):
            raise InvalidArgumentError(f"rotation must be 4 finite numbers (got {rotation!r})")
        l = math.sqrt(sum(c * c for c in q))
        if l == 0.0:
            raise InvalidArgumentError("rotation quaternion must not be zero")
        q = tuple(c / l for c in q)
        self._rotation = None if q == (0.0, 0.0, 0.0, 1.0) else q  # type: ignore[assignment]
        return self

    def set_scale(self, sx: float, sy: Optional[float] = None, sz: Optional[float] = None) -> "TopologyBuilder":
        self._check_mutable()
        if sy is None:
            sy = sx
        if sz is None:
            sz = sx
        s = as_position((sx, sy, sz))
        self._scale = None if s == (1.0, 1.0, 1.0) else s
        return self

    # ---- finalize ----
    def _uniform(self, attr: str) -> bool:
        """True if every vertex has `attr`, False if none has. Mixed is an error."""
        present = sum(1 for v in self._vertices if getattr(v, attr) is not None)
        if present == 0:
            return False
        if present != len(self._vertices):
            raise InvalidStateError(
                f"mesh {self.name!r}: {attr} set on {present} of {len(self._vertices)} vertices "
                f"(must be all or none)"
            )
        return True

    def definition(self) -> MeshDefinition:
        """Validate the vertices and derive the packed mesh data."""
        if self._built:
            raise InvalidStateError(f"builder {self.name!r} was already built")
        n = len(self._vertices)
        if n < self.mode.min_vertices:
            raise InvalidStateError(
                f"mesh {self.name!r}: {self.mode.name} needs at least {self.mode.min_vertices} "
                f"vertices (got {n})"
            )
        g = self.mode.group_size
        if not self.indexed and n % g:
            raise InvalidStateError(
                f"mesh {self.name!r}: non-indexed {self.mode.name} needs a multiple of {g} vertices (got {n})"
            )

        positions = np.array([v.position for v in self._vertices], dtype="<f4")
        attributes: Dict[str, np.ndarray] = {"POSITION": positions}

        if self._uniform("color"):
            colors = np.array([v.color for v in self._vertices], dtype="<f4")
            if self.color_type == "ubyte":
                colors = np.round(colors * 255.0).astype("u1")
            attributes["COLOR_0"] = colors
        if self._uniform("normal"):
            attributes["NORMAL"] = np.array([v.normal for v in self._vertices], dtype="<f4")
        if self._uniform("texcoord"):
            attributes["TEXCOORD_0"] = np.array([v.texcoord for v in self._vertices], dtype="<f4")

        # bounds of the float32 values that actually land in the buffer
        pmin = tuple(float(c) for c in positions.min(axis=0))
        pmax = tuple(float(c) for c in positions.max(axis=0))

        return MeshDefinition(
            name=self.name,
            mode=self.mode,
            vertex_count=n,
            attributes=attributes,
            indices=derive_indices(self.mode, n) if self.indexed else None,
            position_min=pmin,  # type: ignore[arg-type]
            position_max=pmax,  # type: ignore[arg-type]
            translation=self._translation,
            rotation=self._rotation,
            scale=self._scale,
        )

    def build(self, writer: "GltfWriter") -> "NodeHandle":
        definition = self.definition()
        handle = writer.append_mesh(definition)
        self._built = True
        for v in self._vertices:
            v._frozen = True
        _log.debug("built %r: %d vertices -> node %d", self.name, definition.vertex_count, handle.index)
        return handle
