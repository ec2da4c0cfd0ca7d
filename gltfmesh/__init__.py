"""
gltfmesh: build meshes vertex by vertex and export them as glTF 2.0.

    from gltfmesh import GltfWriter, TopologyBuilder, TopologyMode

    writer = GltfWriter()
    builder = TopologyBuilder("line", TopologyMode.LINE_STRIP)
    for x in (0.0, 1.0, 2.0):
        builder.new_vertex((x, 0.0, 0.0)).set_color((1.0, 0.5, 0.0))
    node = builder.build(writer)
    node.primitive["extras"] = ["some", "additional", "data"]
    writer.write_gltf("line.glb")
"""
from .errors import (
    ExportIOError,
    FormatError,
    InvalidArgumentError,
    InvalidStateError,
    MeshError,
)
from .vertex import MeshVertex, hsb_color
from .topology import MeshDefinition, TopologyBuilder, TopologyMode, derive_indices, index_count
from .writer import GltfWriter, NodeHandle
from .reader import read_accessor, read_glb, read_gltf

__version__ = "0.1.0"

__all__ = [
    "ExportIOError",
    "FormatError",
    "GltfWriter",
    "InvalidArgumentError",
    "InvalidStateError",
    "MeshDefinition",
    "MeshError",
    "MeshVertex",
    "NodeHandle",
    "TopologyBuilder",
    "TopologyMode",
    "derive_indices",
    "hsb_color",
    "index_count",
    "read_accessor",
    "read_glb",
    "read_gltf",
]
