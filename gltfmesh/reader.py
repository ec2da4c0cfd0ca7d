# gltfmesh/reader.py
from __future__ import annotations

import base64
import json
import struct
from pathlib import Path
from typing import Any, Dict, Tuple
from urllib.parse import unquote

import numpy as np

from .errors import ExportIOError, FormatError
from .writer import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    COMPONENT_SIZES,
    GLB_MAGIC,
    GLB_VERSION,
    TYPE_COMPONENT_COUNT,
    PathLike,
)

_DTYPES: Dict[int, str] = {
    5121: "<u1",
    5123: "<u2",
    5125: "<u4",
    5126: "<f4",
}

_DATA_URI_PREFIX = "data:application/octet-stream;base64,"


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ExportIOError(f"failed to read {path}: {exc}") from exc


def _parse_json(data: bytes, what: str) -> Dict[str, Any]:
    try:
        gltf = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise FormatError(f"invalid {what}: {exc}") from exc
    if not isinstance(gltf, dict):
        raise FormatError(f"invalid {what}: JSON root is not an object")
    return gltf


def parse_glb(data: bytes) -> Tuple[Dict[str, Any], bytes]:
    if len(data) < 12:
        raise FormatError("Invalid GLB: file too small")

    magic, version, total_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise FormatError("Invalid GLB: bad magic")
    if version != GLB_VERSION:
        raise FormatError(f"Unsupported GLB version: {version} (expected {GLB_VERSION})")
    if total_length != len(data):
        raise FormatError("Invalid GLB: length mismatch")

    json_chunk = None
    bin_chunk = None

    offset = 12
    while offset < total_length:
        if offset + 8 > total_length:
            raise FormatError("Invalid GLB: truncated chunk header")
        chunk_length, chunk_type = struct.unpack_from("<I4s", data, offset)
        offset += 8
        if offset + chunk_length > total_length:
            raise FormatError("Invalid GLB: truncated chunk data")
        chunk_data = data[offset : offset + chunk_length]
        offset += chunk_length

        if chunk_type == CHUNK_TYPE_JSON and json_chunk is None:
            json_chunk = chunk_data
        elif chunk_type == CHUNK_TYPE_BIN and bin_chunk is None:
            bin_chunk = chunk_data

    if json_chunk is None:
        raise FormatError("Invalid GLB: missing JSON chunk")

    return _parse_json(json_chunk, "GLB JSON chunk"), bin_chunk or b""


def read_glb(path: PathLike) -> Tuple[Dict[str, Any], bytes]:
    """Read a .glb container into (document, BIN chunk)."""
    return parse_glb(_read_bytes(Path(path)))


def read_gltf(path: PathLike) -> Tuple[Dict[str, Any], bytes]:
    """
    Read a .gltf or .glb file into (document, buffer 0 bytes).

    For .gltf the buffer is taken from a base64 data URI or from a file
    relative to the document.
    """
    path = Path(path)
    if path.suffix.lower() == ".glb":
        return read_glb(path)

    gltf = _parse_json(_read_bytes(path), f"glTF document {path.name}")
    buffers = gltf.get("buffers", [])
    if not buffers:
        return gltf, b""
    uri = buffers[0].get("uri")
    if not isinstance(uri, str):
        raise FormatError("buffer 0 has no uri")
    if uri.startswith("data:"):
        if not uri.startswith(_DATA_URI_PREFIX):
            raise FormatError("only application/octet-stream base64 data URIs are supported")
        try:
            data = base64.b64decode(uri[len(_DATA_URI_PREFIX):], validate=True)
        except ValueError as exc:
            raise FormatError(f"invalid base64 buffer: {exc}") from exc
    else:
        data = _read_bytes(path.parent / unquote(uri))

    if len(data) < buffers[0].get("byteLength", 0):
        raise FormatError(f"buffer 0 is shorter than its byteLength ({len(data)} bytes)")
    return gltf, data


def read_accessor(gltf: Dict[str, Any], binary: bytes, index: int) -> np.ndarray:
    """
    Decode accessor `index` into a numpy array of shape (count,) for SCALAR
    accessors and (count, components) otherwise. Values are returned as
    stored; normalized integers are not rescaled.
    """
    accessors = gltf.get("accessors", [])
    buffer_views = gltf.get("bufferViews", [])

    if not (0 <= index < len(accessors)):
        raise FormatError(f"Accessor index out of range: {index}")
    accessor = accessors[index]

    component_type = accessor.get("componentType")
    if component_type not in _DTYPES:
        raise FormatError(f"Unsupported accessor.componentType: {component_type}")
    type_str = accessor.get("type")
    if type_str not in TYPE_COMPONENT_COUNT:
        raise FormatError(f"Unsupported accessor.type: {type_str}")
    count = accessor.get("count")
    if not isinstance(count, int) or count <= 0:
        raise FormatError(f"Invalid accessor.count: {count}")

    view_index = accessor.get("bufferView")
    if not isinstance(view_index, int) or not (0 <= view_index < len(buffer_views)):
        raise FormatError(f"bufferView index out of range: {view_index}")
    view = buffer_views[view_index]

    components = TYPE_COMPONENT_COUNT[type_str]
    element_size = components * COMPONENT_SIZES[component_type]
    stride = view.get("byteStride", element_size)
    if not isinstance(stride, int) or stride < element_size:
        raise FormatError(f"Invalid bufferView.byteStride: {stride}")

    base = int(view.get("byteOffset", 0)) + int(accessor.get("byteOffset", 0))
    end = base + (count - 1) * stride + element_size
    if end > len(binary) or end - int(view.get("byteOffset", 0)) > view.get("byteLength", 0):
        raise FormatError(f"Accessor {index} points outside its bufferView")

    dtype = np.dtype(_DTYPES[component_type])
    if stride == element_size:
        arr = np.frombuffer(binary, dtype=dtype, count=count * components, offset=base)
    else:
        rows = [
            np.frombuffer(binary, dtype=dtype, count=components, offset=base + i * stride)
            for i in range(count)
        ]
        arr = np.concatenate(rows)
    if components == 1:
        return arr.copy()
    return arr.reshape(count, components).copy()
