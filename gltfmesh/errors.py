# gltfmesh/errors.py
from __future__ import annotations


class MeshError(Exception):
    """Base class for every error raised by gltfmesh."""


class InvalidArgumentError(MeshError, ValueError):
    """Malformed vertex data, or a builder mutated after build()."""


class InvalidStateError(MeshError, RuntimeError):
    """A builder cannot produce a valid mesh from what it holds."""


class ExportIOError(MeshError, OSError):
    pass


class FormatError(MeshError):
    """The document graph (or a file being read) is not valid glTF."""
