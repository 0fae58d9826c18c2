import io

import numpy as np
import pytest

from ply2obj.decoder import decode_ply
from ply2obj.encoder import face_reference, format_float, mesh_to_obj, write_obj
from ply2obj.models import Mesh


def triangle_mesh():
    mesh = Mesh.allocate(3)
    mesh.positions[:] = [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    mesh.triangles = np.array([[0, 1, 2]], dtype=np.int64)
    return mesh


def body_lines(obj_text):
    return [line for line in obj_text.splitlines() if line and not line.startswith("#")]


def test_triangle_scenario(triangle_ply):
    _, mesh = decode_ply(io.BytesIO(triangle_ply))
    obj_text = mesh_to_obj(mesh)

    assert body_lines(obj_text) == ["v 0 0 0", "v 1 0 0", "v 0 1 0", "f 1 2 3"]
    assert "# Vertices: 3\n" in obj_text
    assert "# Faces: 1\n" in obj_text
    assert "# Has" not in obj_text


def test_header_markers():
    mesh = triangle_mesh()
    mesh.vertex_has_normal[0] = True
    mesh.vertex_has_color[1] = True
    mesh.vertex_has_texcoord[2] = True

    lines = mesh_to_obj(mesh).splitlines()

    assert lines[:7] == [
        "# Converted from PLY to OBJ by ply2obj",
        "# Vertices: 3",
        "# Faces: 1",
        "# Has Normals",
        "# Has Vertex Colors (appended to 'v' lines as r g b)",
        "# Has Texture Coordinates",
        "",
    ]


def test_partial_normals_get_placeholder():
    mesh = triangle_mesh()
    mesh.normals[1] = [0, -1, 0]
    mesh.vertex_has_normal[1] = True

    lines = body_lines(mesh_to_obj(mesh))

    assert [line for line in lines if line.startswith("vn")] == ["vn 0 0 1", "vn 0 -1 0", "vn 0 0 1"]
    assert not any(line.startswith("vt") for line in lines)
    assert lines[-1] == "f 1//1 2//2 3//3"


def test_partial_texcoords_get_placeholder():
    mesh = triangle_mesh()
    mesh.texcoords[0] = [0.5, 0.25]
    mesh.vertex_has_texcoord[0] = True

    lines = body_lines(mesh_to_obj(mesh))

    assert [line for line in lines if line.startswith("vt")] == ["vt 0.5 0.25", "vt 0 0", "vt 0 0"]
    assert lines[-1] == "f 1/1 2/2 3/3"


def test_block_order_with_normals_and_texcoords():
    mesh = triangle_mesh()
    mesh.vertex_has_normal[:] = True
    mesh.vertex_has_texcoord[:] = True

    lines = body_lines(mesh_to_obj(mesh))
    prefixes = [line.split()[0] for line in lines]

    assert prefixes == ["v"] * 3 + ["vt"] * 3 + ["vn"] * 3 + ["f"]
    assert lines[-1] == "f 1/1/1 2/2/2 3/3/3"


def test_colors_follow_each_vertex():
    mesh = triangle_mesh()
    mesh.colors[0] = [1.0, 0.5, 0.0]
    mesh.vertex_has_color[0] = True

    lines = body_lines(mesh_to_obj(mesh))

    assert lines[:3] == ["v 0 0 0 1 0.5 0", "v 1 0 0", "v 0 1 0"]


@pytest.mark.parametrize("value, text", [
    (0.0, "0"),
    (1.0, "1"),
    (-2.5, "-2.5"),
    (1 / 255, "0.00392157"),
    (123456789.0, "1.23457e+08"),
    (np.float32(0.1), "0.1"),
])
def test_format_float(value, text):
    assert format_float(value) == text


@pytest.mark.parametrize("texcoords, normals, text", [
    (False, False, "5"),
    (True, False, "5/5"),
    (False, True, "5//5"),
    (True, True, "5/5/5"),
])
def test_face_reference(texcoords, normals, text):
    assert face_reference(4, texcoords, normals) == text


def test_write_obj_uses_unix_newlines(tmp_path):
    path = tmp_path / "out.obj"
    write_obj(triangle_mesh(), str(path))

    data = path.read_bytes()
    assert b"\r" not in data
    assert data.endswith(b"f 1 2 3\n")
