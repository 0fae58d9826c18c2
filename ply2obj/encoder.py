"""
OBJ writer
Serializes a decoded Mesh into OBJ text with one vt/vn slot per vertex
"""
import io
import logging
from typing import Iterator, TextIO

from .models import Mesh

logger = logging.getLogger(__name__)

GENERATOR_COMMENT = "# Converted from PLY to OBJ by ply2obj"

PLACEHOLDER_TEXCOORD = "vt 0 0"
PLACEHOLDER_NORMAL = "vn 0 0 1"


def format_float(value: float) -> str:
    """Six significant digits with a '.' decimal point, independent of locale"""
    return "%g" % value


def face_reference(index: int, has_texcoords: bool, has_normals: bool) -> str:
    """1-based `v`, `v/vt`, `v//vn` or `v/vt/vn` reference for a zero-based vertex index"""
    i = index + 1
    if has_texcoords and has_normals:
        return f"{i}/{i}/{i}"
    if has_texcoords:
        return f"{i}/{i}"
    if has_normals:
        return f"{i}//{i}"
    return str(i)


def iter_obj_lines(mesh: Mesh) -> Iterator[str]:
    """Yield the lines of the OBJ document, without line terminators"""
    has_normals = mesh.has_normals
    has_colors = mesh.has_colors
    has_texcoords = mesh.has_texcoords

    yield GENERATOR_COMMENT
    yield f"# Vertices: {mesh.vertex_count}"
    yield f"# Faces: {mesh.triangle_count}"
    if has_normals:
        yield "# Has Normals"
    if has_colors:
        yield "# Has Vertex Colors (appended to 'v' lines as r g b)"
    if has_texcoords:
        yield "# Has Texture Coordinates"
    yield ""

    # Colors follow each vertex's own flag, not the mesh-level one
    for position, color, colored in zip(mesh.positions, mesh.colors, mesh.vertex_has_color):
        line = "v " + " ".join(format_float(c) for c in position)
        if colored:
            line += " " + " ".join(format_float(c) for c in color)
        yield line
    yield ""

    if has_texcoords:
        for texcoord, present in zip(mesh.texcoords, mesh.vertex_has_texcoord):
            if present:
                yield f"vt {format_float(texcoord[0])} {format_float(texcoord[1])}"
            else:
                yield PLACEHOLDER_TEXCOORD
        yield ""

    if has_normals:
        for normal, present in zip(mesh.normals, mesh.vertex_has_normal):
            if present:
                yield "vn " + " ".join(format_float(c) for c in normal)
            else:
                yield PLACEHOLDER_NORMAL
        yield ""

    for v0, v1, v2 in mesh.triangles.tolist():
        yield "f " + " ".join(face_reference(i, has_texcoords, has_normals) for i in (v0, v1, v2))


def encode_obj(mesh: Mesh, stream: TextIO) -> None:
    """Write the OBJ document for mesh to an open text stream"""
    for line in iter_obj_lines(mesh):
        stream.write(line)
        stream.write("\n")


def mesh_to_obj(mesh: Mesh) -> str:
    """Render the OBJ document for mesh as a string"""
    buffer = io.StringIO()
    encode_obj(mesh, buffer)
    return buffer.getvalue()


def write_obj(mesh: Mesh, file_path: str) -> None:
    """Write mesh to an OBJ file, using '\\n' line endings on every platform"""
    with open(file_path, "w", encoding="ascii", newline="\n") as stream:
        encode_obj(mesh, stream)
    logger.debug(f"Wrote {mesh.vertex_count} vertices and {mesh.triangle_count} triangles to {file_path}")
