# gltfmesh/writer.py
from __future__ import annotations

import base64
import json
import logging
import os
import stat
import struct
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote

import numpy as np

from .errors import ExportIOError, FormatError, InvalidArgumentError
from .topology import MeshDefinition

_log = logging.getLogger(__name__)

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
CHUNK_TYPE_JSON = b"JSON"
CHUNK_TYPE_BIN = b"BIN\x00"

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

COMPONENT_TYPES: Dict[str, int] = {
    "u1": UNSIGNED_BYTE,
    "u2": UNSIGNED_SHORT,
    "u4": UNSIGNED_INT,
    "f4": FLOAT,
}

COMPONENT_SIZES: Dict[int, int] = {
    UNSIGNED_BYTE: 1,
    UNSIGNED_SHORT: 2,
    UNSIGNED_INT: 4,
    FLOAT: 4,
}

TYPE_NAMES: Dict[int, str] = {1: "SCALAR", 2: "VEC2", 3: "VEC3", 4: "VEC4"}
TYPE_COMPONENT_COUNT: Dict[str, int] = {v: k for k, v in TYPE_NAMES.items()}

PathLike = Union[str, "os.PathLike[str]"]


def _pad4(n: int) -> int:
    # 4 satisfies every component type and the vertex attribute alignment rule
    return (n + 3) & ~3


def _component_type(arr: np.ndarray) -> int:
    key = arr.dtype.kind + str(arr.dtype.itemsize)
    if key not in COMPONENT_TYPES:
        raise FormatError(f"unsupported array dtype for an accessor: {arr.dtype}")
    return COMPONENT_TYPES[key]


@dataclass
class NodeHandle:
    """
    The entities created by one GltfWriter.append_mesh() call.

    `node`, `mesh` and `primitive` are the live dicts inside the writer's
    document, so anything set on them (typically "extras") is written by the
    next flush.
    """

    index: int
    node: Dict[str, Any]
    mesh_index: int
    mesh: Dict[str, Any]
    primitive: Dict[str, Any]

    def get_mesh(self) -> int:
        return self.mesh_index


class GltfWriter:
    """
    Owns a glTF 2.0 document and its single binary buffer.

    Builders hand their output to append_mesh(); write_gltf() flushes the
    whole document. The file layout follows the destination suffix:

      .glb   one binary container (JSON chunk + BIN chunk)
      .gltf  JSON document plus a sibling .bin, or a base64 data URI when
             embed_buffer=True

    Flushing never changes the document, so a writer can be flushed any
    number of times and keep accepting meshes in between.
    """

    def __init__(self, *, generator: str = "gltfmesh", embed_buffer: bool = False, pretty: bool = False) -> None:
        self.embed_buffer = embed_buffer
        self.pretty = pretty
        self._bin = bytearray()
        self._lock = threading.Lock()
        self._gltf: Dict[str, Any] = {
            "asset": {"version": "2.0", "generator": generator},
            "scene": 0,
            "scenes": [{"nodes": []}],
            "nodes": [],
            "meshes": [],
            "accessors": [],
            "bufferViews": [],
            "buffers": [{"byteLength": 0}],
        }

    # ---- graph access ----
    def get_gltf(self) -> Dict[str, Any]:
        return self._gltf

    @property
    def binary(self) -> bytes:
        return bytes(self._bin)

    # ---- buffer packing ----
    def _add_buffer_view(self, blob: bytes, target: int, byte_stride: Optional[int] = None) -> int:
        offset = _pad4(len(self._bin))
        if offset > len(self._bin):
            self._bin.extend(b"\x00" * (offset - len(self._bin)))
        self._bin.extend(blob)

        view: Dict[str, Any] = {
            "buffer": 0,
            "byteOffset": offset,
            "byteLength": len(blob),
        }
        if byte_stride is not None:
            view["byteStride"] = byte_stride
        view["target"] = target
        views = self._gltf["bufferViews"]
        views.append(view)
        self._gltf["buffers"][0]["byteLength"] = len(self._bin)
        return len(views) - 1

    def _add_accessor(self, arr: np.ndarray, target: int, *, bounds: bool = False) -> int:
        component_type = _component_type(arr)
        components = 1 if arr.ndim == 1 else arr.shape[1]
        if components not in TYPE_NAMES:
            raise FormatError(f"unsupported component count: {components}")
        count = arr.shape[0]
        element_size = components * COMPONENT_SIZES[component_type]
        blob = np.ascontiguousarray(arr, dtype=arr.dtype.newbyteorder("<")).tobytes()
        if len(blob) != count * element_size:
            raise FormatError(f"accessor byte length {len(blob)} != {count} x {element_size}")

        stride = element_size if target == ARRAY_BUFFER else None
        view_i = self._add_buffer_view(blob, target, stride)

        acc: Dict[str, Any] = {
            "bufferView": view_i,
            "componentType": component_type,
            "count": count,
            "type": TYPE_NAMES[components],
        }
        if component_type == UNSIGNED_BYTE and target == ARRAY_BUFFER:
            acc["normalized"] = True
        if bounds:
            acc["min"] = [float(c) for c in arr.min(axis=0)]
            acc["max"] = [float(c) for c in arr.max(axis=0)]
        accessors = self._gltf["accessors"]
        accessors.append(acc)
        return len(accessors) - 1

    def _check_definition(self, d: MeshDefinition) -> None:
        # everything _add_accessor can reject is checked here, before any bytes are packed
        if "POSITION" not in d.attributes:
            raise FormatError(f"mesh {d.name!r} has no POSITION attribute")
        for semantic, arr in d.attributes.items():
            _component_type(arr)
            if arr.ndim != 2 or arr.shape[1] not in TYPE_NAMES:
                raise FormatError(f"mesh {d.name!r}: {semantic} has unsupported shape {arr.shape}")
            if arr.shape[0] != d.vertex_count:
                raise FormatError(
                    f"mesh {d.name!r}: {semantic} has {arr.shape[0]} elements, expected {d.vertex_count}"
                )
        if d.indices is not None:
            if _component_type(d.indices) not in (UNSIGNED_SHORT, UNSIGNED_INT) or d.indices.ndim != 1:
                raise FormatError(f"mesh {d.name!r}: indices must be a 1-D uint16 or uint32 array")
            if d.indices.size and int(d.indices.max()) >= d.vertex_count:
                raise FormatError(f"mesh {d.name!r}: index {int(d.indices.max())} >= vertex count {d.vertex_count}")

    def append_mesh(self, definition: MeshDefinition) -> NodeHandle:
        """Pack a mesh definition into the buffer and add primitive, mesh and node."""
        self._check_definition(definition)
        with self._lock:
            attrs: Dict[str, int] = {}
            for semantic, arr in definition.attributes.items():
                attrs[semantic] = self._add_accessor(arr, ARRAY_BUFFER, bounds=(semantic == "POSITION"))

            primitive: Dict[str, Any] = {"attributes": attrs}
            if definition.indices is not None:
                primitive["indices"] = self._add_accessor(definition.indices, ELEMENT_ARRAY_BUFFER)
            primitive["mode"] = int(definition.mode)

            meshes: List[Dict[str, Any]] = self._gltf["meshes"]
            mesh = {"name": definition.name, "primitives": [primitive]}
            meshes.append(mesh)
            mesh_i = len(meshes) - 1

            node: Dict[str, Any] = {"name": definition.name, "mesh": mesh_i}
            if definition.translation is not None:
                node["translation"] = list(definition.translation)
            if definition.rotation is not None:
                node["rotation"] = list(definition.rotation)
            if definition.scale is not None:
                node["scale"] = list(definition.scale)
            nodes: List[Dict[str, Any]] = self._gltf["nodes"]
            nodes.append(node)
            node_i = len(nodes) - 1
            self._gltf["scenes"][0]["nodes"].append(node_i)

        _log.debug(
            "appended mesh %r: %d vertices, mode %s, buffer now %d bytes",
            definition.name, definition.vertex_count, definition.mode.name, len(self._bin),
        )
        return NodeHandle(index=node_i, node=node, mesh_index=mesh_i, mesh=mesh, primitive=primitive)

    # ---- validation ----
    def validate(self) -> None:
        """Raise FormatError if the buffer views or accessors are inconsistent."""
        total = len(self._bin)
        views = self._gltf["bufferViews"]
        spans = []
        for i, view in enumerate(views):
            start = view["byteOffset"]
            end = start + view["byteLength"]
            if start < 0 or end > total:
                raise FormatError(f"bufferView {i} [{start}, {end}) exceeds buffer length {total}")
            spans.append((start, end, i))
        spans.sort()
        for (s0, e0, i0), (s1, e1, i1) in zip(spans, spans[1:]):
            if s1 < e0:
                raise FormatError(f"bufferViews {i0} and {i1} overlap")

        for i, acc in enumerate(self._gltf["accessors"]):
            view_i = acc.get("bufferView")
            if not isinstance(view_i, int) or not (0 <= view_i < len(views)):
                raise FormatError(f"accessor {i} references missing bufferView {view_i}")
            view = views[view_i]
            element_size = TYPE_COMPONENT_COUNT[acc["type"]] * COMPONENT_SIZES[acc["componentType"]]
            stride = view.get("byteStride", element_size)
            needed = acc.get("byteOffset", 0) + stride * (acc["count"] - 1) + element_size
            if acc["count"] < 1 or needed > view["byteLength"]:
                raise FormatError(f"accessor {i} count {acc['count']} does not fit bufferView {view_i}")

    # ---- serialization ----
    def _document(self, uri: Optional[str]) -> Dict[str, Any]:
        doc = dict(self._gltf)
        # glTF arrays must not be empty, so an empty writer drops them
        for key in ("nodes", "meshes", "accessors", "bufferViews"):
            if not doc[key]:
                doc.pop(key)
        if not self._gltf["nodes"]:
            doc["scenes"] = [{}]
        if not self._bin:
            doc.pop("buffers")
            return doc
        buf: Dict[str, Any] = {"byteLength": len(self._bin)}
        if uri is not None:
            buf["uri"] = uri
        doc["buffers"] = [buf]
        return doc

    def _dumps(self, doc: Dict[str, Any], pretty: bool) -> str:
        try:
            return json.dumps(
                doc,
                ensure_ascii=False,
                allow_nan=False,
                indent=2 if pretty else None,
                separators=None if pretty else (",", ":"),
            )
        except (TypeError, ValueError) as exc:
            raise FormatError(f"document is not serializable as JSON: {exc}") from exc

    def gltf_json(self, bin_uri: Optional[str] = None) -> str:
        """
        The .gltf document text. With embed_buffer the buffer becomes a base64
        data URI and `bin_uri` is ignored.
        """
        self.validate()
        if self.embed_buffer and self._bin:
            bin_uri = "data:application/octet-stream;base64," + base64.b64encode(bytes(self._bin)).decode("ascii")
        return self._dumps(self._document(bin_uri), self.pretty)

    def glb_bytes(self) -> bytes:
        """The complete .glb container."""
        self.validate()
        json_bytes = self._dumps(self._document(None), False).encode("utf-8")
        json_pad = _pad4(len(json_bytes)) - len(json_bytes)
        json_chunk = json_bytes + (b" " * json_pad)

        bin_bytes = bytes(self._bin)
        bin_pad = _pad4(len(bin_bytes)) - len(bin_bytes)
        bin_chunk = bin_bytes + (b"\x00" * bin_pad)

        total_len = 12 + 8 + len(json_chunk)
        if bin_chunk:
            total_len += 8 + len(bin_chunk)

        out = bytearray()
        out += GLB_MAGIC
        out += struct.pack("<I", GLB_VERSION)
        out += struct.pack("<I", total_len)

        out += struct.pack("<I", len(json_chunk))
        out += CHUNK_TYPE_JSON
        out += json_chunk

        if bin_chunk:
            out += struct.pack("<I", len(bin_chunk))
            out += CHUNK_TYPE_BIN
            out += bin_chunk
        return bytes(out)

    def write_gltf(self, destination: PathLike) -> Path:
        """
        Flush the document to `destination` (.gltf or .glb). Returns the path
        of the main file written.
        """
        path = Path(destination)
        suffix = path.suffix.lower()
        if suffix == ".glb":
            _atomic_write([(path, self.glb_bytes())])
        elif suffix == ".gltf":
            if self.embed_buffer or not self._bin:
                _atomic_write([(path, self.gltf_json().encode("utf-8"))])
            else:
                bin_path = path.with_suffix(".bin")
                text = self.gltf_json(quote(bin_path.name))
                _atomic_write([(bin_path, bytes(self._bin)), (path, text.encode("utf-8"))])
        else:
            raise InvalidArgumentError(f"unsupported output extension {path.suffix!r} (expected .gltf or .glb)")

        _log.info(
            "Finished generating: %s (%d nodes, %d bytes of buffer data)",
            path, len(self._gltf["nodes"]), len(self._bin),
        )
        return path


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


_UMASK = _current_umask()


def _file_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


def _atomic_write(files: List[Tuple[Path, bytes]]) -> None:
    """
    Write every (path, data) pair to a temp file next to its path, then
    rename them all into place. Nothing is renamed unless every temp file
    was written.
    """
    pending: List[Tuple[str, Path]] = []
    path = files[0][0]
    try:
        for path, data in files:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
            pending.append((tmp_name, path))
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            # mkstemp creates 0600, a plain open() would honor the umask
            os.chmod(tmp_name, _file_mode(path))
        while pending:
            tmp_name, path = pending[0]
            os.replace(tmp_name, path)
            pending.pop(0)
    except OSError as exc:
        raise ExportIOError(f"failed to write {path}: {exc}") from exc
    finally:
        for tmp_name, _ in pending:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
