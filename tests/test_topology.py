import math

import numpy as np
import pytest

from gltfmesh import (
    InvalidArgumentError,
    InvalidStateError,
    TopologyBuilder,
    TopologyMode,
    derive_indices,
    index_count,
)


def _filled(mode, n, name="mesh"):
    builder = TopologyBuilder(name, mode)
    for i in range(n):
        builder.new_vertex((float(i), float(i % 3), 0.0))
    return builder


def test_mode_codes_match_gltf():
    assert [int(m) for m in TopologyMode] == [0, 1, 2, 3, 4, 5, 6]
    assert TopologyMode.LINE_STRIP == 3
    assert TopologyMode.TRIANGLE_FAN == 6


@pytest.mark.parametrize("mode", list(TopologyMode))
@pytest.mark.parametrize("n", [3, 4, 5, 7, 10])
def test_vertex_and_index_counts(mode, n):
    d = _filled(mode, n).definition()
    expected = {
        TopologyMode.POINTS: n,
        TopologyMode.LINES: n - n % 2,
        TopologyMode.LINE_LOOP: n,
        TopologyMode.LINE_STRIP: n,
        TopologyMode.TRIANGLES: n - n % 3,
        TopologyMode.TRIANGLE_STRIP: n,
        TopologyMode.TRIANGLE_FAN: n,
    }[mode]
    assert d.vertex_count == n
    assert d.attributes["POSITION"].shape == (n, 3)
    assert len(d.indices) == expected == index_count(mode, n)
    assert list(d.indices) == list(range(expected))
    assert d.indices.max() < n


def test_line_strip_indices_and_bounds(line_strip):
    d = line_strip.definition()
    assert list(d.indices) == [0, 1, 2]
    assert d.position_min == (0.0, 0.0, 0.0)
    assert d.position_max == (2.0, 0.0, 0.0)
    assert d.mode is TopologyMode.LINE_STRIP


def test_coincident_positions_are_not_merged():
    builder = TopologyBuilder("dup", TopologyMode.LINE_STRIP)
    for _ in range(4):
        builder.new_vertex((1.0, 1.0, 1.0))
    d = builder.definition()
    assert d.vertex_count == 4
    assert list(d.indices) == [0, 1, 2, 3]


@pytest.mark.parametrize("mode", [TopologyMode.LINES, TopologyMode.LINE_LOOP, TopologyMode.LINE_STRIP])
def test_line_modes_need_two_vertices(mode, writer):
    for n in (0, 1):
        with pytest.raises(InvalidStateError):
            _filled(mode, n).build(writer)
    assert _filled(mode, 2).build(writer).index >= 0


@pytest.mark.parametrize("mode", [TopologyMode.TRIANGLES, TopologyMode.TRIANGLE_STRIP, TopologyMode.TRIANGLE_FAN])
def test_triangle_modes_need_three_vertices(mode, writer):
    with pytest.raises(InvalidStateError):
        _filled(mode, 2).build(writer)
    _filled(mode, 3).build(writer)


def test_points_need_one_vertex(writer):
    with pytest.raises(InvalidStateError):
        _filled(TopologyMode.POINTS, 0).build(writer)
    _filled(TopologyMode.POINTS, 1).build(writer)


def test_failed_build_leaves_writer_untouched(writer):
    with pytest.raises(InvalidStateError):
        _filled(TopologyMode.LINE_STRIP, 1).build(writer)
    assert writer.get_gltf()["nodes"] == []
    assert writer.binary == b""


def test_non_uniform_attribute_is_rejected():
    builder = _filled(TopologyMode.LINE_STRIP, 3)
    builder.set_color((1.0, 0.0, 0.0), index=0)
    with pytest.raises(InvalidStateError):
        builder.definition()


def test_attributes_in_declaration_order():
    builder = TopologyBuilder("attrs", TopologyMode.TRIANGLES)
    for i in range(3):
        v = builder.new_vertex((i, 0, 0))
        v.set_texcoord((i / 2, 0.0)).set_normal((0, 0, 5)).set_color((0.0, 1.0, 0.0))
    d = builder.definition()
    assert list(d.attributes) == ["POSITION", "COLOR_0", "NORMAL", "TEXCOORD_0"]
    assert d.attributes["COLOR_0"].shape == (3, 4)
    assert d.attributes["COLOR_0"][0].tolist() == [0.0, 1.0, 0.0, 1.0]
    # normals are stored unit length
    assert d.attributes["NORMAL"][0].tolist() == [0.0, 0.0, 1.0]
    assert d.attributes["TEXCOORD_0"].dtype == np.dtype("<f4")


def test_ubyte_colors():
    builder = TopologyBuilder("c", TopologyMode.LINE_STRIP, color_type="ubyte")
    builder.new_vertex((0, 0, 0)).set_color((1.0, 0.5, 0.0))
    builder.new_vertex((1, 0, 0)).set_color((0.0, 0.0, 1.0, 0.0))
    colors = builder.definition().attributes["COLOR_0"]
    assert colors.dtype == np.uint8
    assert colors.tolist() == [[255, 128, 0, 255], [0, 0, 255, 0]]


def test_builder_is_single_use(line_strip, writer):
    vertex = line_strip.vertices[0]
    line_strip.build(writer)
    assert line_strip.built
    with pytest.raises(InvalidArgumentError):
        line_strip.new_vertex((3.0, 0.0, 0.0))
    with pytest.raises(InvalidArgumentError):
        vertex.set_color((1.0, 1.0, 1.0))
    with pytest.raises(InvalidArgumentError):
        line_strip.set_translation((1, 2, 3))
    with pytest.raises(InvalidStateError):
        line_strip.build(writer)
    assert len(writer.get_gltf()["nodes"]) == 1


@pytest.mark.parametrize("position", [
    (math.nan, 0.0, 0.0),
    (0.0, math.inf, 0.0),
    (1.0, 2.0),
    (1.0, 2.0, 3.0, 4.0),
    ("a", 0.0, 0.0),
    None,
])
def test_bad_positions(position):
    builder = TopologyBuilder("bad", TopologyMode.POINTS)
    with pytest.raises(InvalidArgumentError):
        builder.new_vertex(position)
    assert len(builder) == 0


def test_bad_vertex_attributes():
    builder = TopologyBuilder("bad", TopologyMode.POINTS)
    v = builder.new_vertex((0, 0, 0))
    with pytest.raises(InvalidArgumentError):
        v.set_color((1.5, 0.0, 0.0))
    with pytest.raises(InvalidArgumentError):
        v.set_color((1.0, 0.0))
    with pytest.raises(InvalidArgumentError):
        v.set_normal((0.0, 0.0, 0.0))
    with pytest.raises(InvalidArgumentError):
        v.set_texcoord((0.0, math.nan))
    with pytest.raises(InvalidArgumentError):
        builder.set_color((0.0, 0.0, 0.0), index=5)


def test_setter_before_any_vertex():
    builder = TopologyBuilder("empty", TopologyMode.POINTS)
    with pytest.raises(InvalidArgumentError):
        builder.set_color((1.0, 1.0, 1.0))


def test_constructor_validation():
    with pytest.raises(InvalidArgumentError):
        TopologyBuilder("", TopologyMode.POINTS)
    with pytest.raises(InvalidArgumentError):
        TopologyBuilder("x", 9)
    with pytest.raises(InvalidArgumentError):
        TopologyBuilder("x", TopologyMode.POINTS, color_type="half")
    assert TopologyBuilder("x", 3).mode is TopologyMode.LINE_STRIP


def test_index_type_follows_vertex_count():
    assert derive_indices(TopologyMode.POINTS, 3).dtype == np.dtype("<u2")
    assert derive_indices(TopologyMode.POINTS, 65535).dtype == np.dtype("<u2")
    big = derive_indices(TopologyMode.POINTS, 65536)
    assert big.dtype == np.dtype("<u4")
    assert big[-1] == 65535


def test_non_indexed():
    builder = _filled(TopologyMode.TRIANGLES, 4)
    builder.indexed = False
    with pytest.raises(InvalidStateError):
        builder.definition()

    builder = TopologyBuilder("flat", TopologyMode.TRIANGLES, indexed=False)
    for i in range(6):
        builder.new_vertex((i, 0, 0))
    assert builder.definition().indices is None


def test_transform_identity_is_omitted():
    builder = _filled(TopologyMode.POINTS, 1)
    builder.set_translation((0, 0, 0)).set_rotation((0, 0, 0, 1)).set_scale(1.0)
    d = builder.definition()
    assert d.translation is None and d.rotation is None and d.scale is None

    builder.set_translation((1, 2, 3)).set_rotation((0, 0, 2, 0)).set_scale(2.0, 3.0)
    d = builder.definition()
    assert d.translation == (1.0, 2.0, 3.0)
    assert d.rotation == (0.0, 0.0, 1.0, 0.0)
    assert d.scale == (2.0, 3.0, 2.0)

    with pytest.raises(InvalidArgumentError):
        builder.set_rotation((0, 0, 0, 0))
