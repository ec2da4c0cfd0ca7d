import pytest

from gltfmesh import read_gltf
from gltfmesh.__main__ import main


def test_spiral_with_extras(tmp_path):
    out = tmp_path / "test_line_strip.glb"
    rc = main(["--shape", "spiral", "--points", "20", "--rotations", "2",
               "--out", str(out), "--extras", '["some","additional","data"]'])
    assert rc == 0
    gltf, _ = read_gltf(out)
    prim = gltf["meshes"][0]["primitives"][0]
    assert prim["mode"] == 3
    assert prim["extras"] == ["some", "additional", "data"]
    assert gltf["accessors"][prim["attributes"]["POSITION"]]["count"] == 21


@pytest.mark.parametrize("shape, mode", [
    ("circle", 2), ("disc", 6), ("ribbon", 5), ("sphere", 4), ("points", 0), ("curve", 3),
])
def test_every_shape(tmp_path, shape, mode):
    out = tmp_path / f"{shape}.gltf"
    assert main(["--shape", shape, "--segments", "8", "--out", str(out), "--t1", "2*pi"]) == 0
    gltf, data = read_gltf(out)
    assert gltf["meshes"][0]["primitives"][0]["mode"] == mode
    assert len(data) == gltf["buffers"][0]["byteLength"]


def test_errors_exit_with_status_2(tmp_path, capsys):
    assert main(["--shape", "curve", "--x", "1/t", "--out", str(tmp_path / "c.glb")]) == 2
    assert "error:" in capsys.readouterr().err
    assert main(["--shape", "curve", "--x", "min()", "--out", str(tmp_path / "c.glb")]) == 2
    assert "error:" in capsys.readouterr().err

    assert main(["--shape", "circle", "--out", str(tmp_path / "c.obj")]) == 2
    assert main(["--shape", "circle", "--out", str(tmp_path / "c.glb"), "--extras", "{bad"]) == 2


@pytest.mark.parametrize("expr", ["min()", "sin(t, t)", "pow(t, 2, 3)", "9**9**9**9"])
def test_bad_curve_expressions_exit_with_status_2(tmp_path, capsys, expr):
    assert main(["--shape", "curve", "--x", expr, "--out", str(tmp_path / "c.glb")]) == 2
    assert "error:" in capsys.readouterr().err
    assert not (tmp_path / "c.glb").exists()
