import numpy as np
import pytest

PLY_DTYPES = {
    "char": "i1",
    "uchar": "u1",
    "short": "i2",
    "ushort": "u2",
    "int": "i4",
    "uint": "u4",
    "float": "f4",
    "double": "f8",
    "int8": "i1",
    "uint8": "u1",
    "int16": "i2",
    "uint16": "u2",
    "int32": "i4",
    "uint32": "u4",
    "float32": "f4",
    "float64": "f8",
}

TRIANGLE_PLY = (
    "ply\n"
    "format ascii 1.0\n"
    "element vertex 3\n"
    "property float x\n"
    "property float y\n"
    "property float z\n"
    "element face 1\n"
    "property list uchar int vertex_indices\n"
    "end_header\n"
    "0 0 0\n"
    "1 0 0\n"
    "0 1 0\n"
    "3 0 1 2\n"
)


def pack(value, ply_type, endian):
    return np.array(value, dtype=endian + PLY_DTYPES[ply_type]).tobytes()


def make_ascii_ply(vertex_fields, vertex_lines, face_lines=None, list_types=("uchar", "int")):
    """ASCII PLY text; vertex_fields is a list of (name, type)"""
    lines = ["ply", "format ascii 1.0", f"element vertex {len(vertex_lines)}"]
    lines += [f"property {ply_type} {name}" for name, ply_type in vertex_fields]
    if face_lines is not None:
        lines.append(f"element face {len(face_lines)}")
        lines.append(f"property list {list_types[0]} {list_types[1]} vertex_indices")
    lines.append("end_header")
    lines += vertex_lines
    lines += face_lines or []
    return ("\n".join(lines) + "\n").encode("ascii")


def make_binary_ply(vertex_fields, vertices, faces=None, endian="<", count_type="uchar", item_type="int"):
    """Binary PLY bytes in the byte order given by endian ('<' or '>')"""
    ply_format = "binary_little_endian" if endian == "<" else "binary_big_endian"
    lines = ["ply", f"format {ply_format} 1.0", f"element vertex {len(vertices)}"]
    lines += [f"property {ply_type} {name}" for name, ply_type in vertex_fields]
    if faces is not None:
        lines.append(f"element face {len(faces)}")
        lines.append(f"property list {count_type} {item_type} vertex_indices")
    lines.append("end_header")

    body = bytearray()
    for vertex in vertices:
        for (_, ply_type), value in zip(vertex_fields, vertex):
            body += pack(value, ply_type, endian)
    for face in faces or []:
        body += pack(len(face), count_type, endian)
        body += np.array(face, dtype=endian + PLY_DTYPES[item_type]).tobytes()

    return ("\n".join(lines) + "\n").encode("ascii") + bytes(body)


@pytest.fixture
def triangle_ply():
    return TRIANGLE_PLY.encode("ascii")


@pytest.fixture
def ascii_ply():
    return make_ascii_ply


@pytest.fixture
def binary_ply():
    return make_binary_ply


@pytest.fixture
def packer():
    return pack
