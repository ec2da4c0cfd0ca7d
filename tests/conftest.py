import pytest

from gltfmesh import GltfWriter, TopologyBuilder, TopologyMode


@pytest.fixture
def writer():
    return GltfWriter()


@pytest.fixture
def line_strip():
    builder = TopologyBuilder("line", TopologyMode.LINE_STRIP)
    for x in (0.0, 1.0, 2.0):
        builder.new_vertex((x, 0.0, 0.0))
    return builder
