import asyncio

import pytest
from fastapi.testclient import TestClient

from ply2obj import config, main
from ply2obj.converter import convert_ply_file
from ply2obj.main import app


@pytest.fixture
def client():
    return TestClient(app)


def upload(client, path, name, content):
    return client.post(path, files={"file": (name, content, "application/octet-stream")})


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["supported_formats"] == [".ply"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_convert_to_json(client, triangle_ply):
    response = upload(client, "/convert", "triangle.ply", triangle_ply)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["metadata"]["vertexCount"] == 3
    assert body["metadata"]["faceCount"] == 1

    mesh = body["meshes"][0]
    assert mesh["name"] == "triangle"
    assert mesh["vertices"] == [0, 0, 0, 1, 0, 0, 0, 1, 0]
    assert mesh["indices"] == [0, 1, 2]
    assert mesh["normals"] == []
    assert mesh["colors"] == []


def test_convert_to_json_fills_missing_normals(client, ascii_ply):
    fields = [("x", "float"), ("y", "float"), ("z", "float"), ("nx", "float"), ("ny", "float"), ("nz", "float")]
    data = ascii_ply(fields, ["0 0 0 1 0 0", "1 0 0", "0 1 0"], ["3 0 1 2"])

    mesh = upload(client, "/convert", "partial.ply", data).json()["meshes"][0]

    assert mesh["normals"] == [1, 0, 0, 0, 0, 1, 0, 0, 1]


def test_convert_to_obj(client, triangle_ply):
    response = upload(client, "/convert/obj", "triangle.ply", triangle_ply)

    assert response.status_code == 200
    assert response.headers["x-vertex-count"] == "3"
    assert 'filename="triangle.obj"' in response.headers["content-disposition"]
    assert response.text.splitlines()[-1] == "f 1 2 3"


def test_unsupported_extension(client, triangle_ply):
    response = upload(client, "/convert", "triangle.stl", triangle_ply)

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "Unsupported file format" in response.json()["error"]


def test_empty_file(client):
    response = upload(client, "/convert", "empty.ply", b"")

    assert response.status_code == 400
    assert response.json()["error"] == "Empty file received"


def test_file_too_large(client, triangle_ply, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_SIZE", 10)

    assert upload(client, "/convert", "triangle.ply", triangle_ply).status_code == 413


def test_format_error(client):
    response = upload(client, "/convert/obj", "bad.ply", b"ply\nformat ascii 1.0\n")

    assert response.status_code == 400
    assert "end_header" in response.json()["error"]


def test_truncated_payload(client, triangle_ply):
    response = upload(client, "/convert", "short.ply", triangle_ply[:-10])

    assert response.status_code == 422


def test_conversion_runs_off_the_event_loop(client, triangle_ply, monkeypatch):
    calls = []

    def convert_outside_loop(content, file_name):
        with pytest.raises(RuntimeError):
            asyncio.get_running_loop()
        calls.append(file_name)
        return convert_ply_file(content, file_name)

    monkeypatch.setattr(main, "convert_ply_file", convert_outside_loop)

    response = upload(client, "/convert/obj", "triangle.ply", triangle_ply)

    assert response.status_code == 200
    assert calls == ["triangle.ply"]
