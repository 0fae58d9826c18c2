"""
PLY payload decoder
Reads vertex and face records described by a parsed header into a Mesh
"""
import logging
import math
import sys
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict

from .errors import PlyFormatError, PlyReadError
from .models import FieldTag, Mesh, PlyFormat, PlyHeader, PropertyDescriptor
from .schema import parse_header, scalar_dtype

logger = logging.getLogger(__name__)

# tag -> (mesh column, axis, mesh presence-flag column or None)
ATTRIBUTE_SLOTS: Dict[FieldTag, Tuple[str, int, Optional[str]]] = {
    FieldTag.POSITION_X: ("positions", 0, None),
    FieldTag.POSITION_Y: ("positions", 1, None),
    FieldTag.POSITION_Z: ("positions", 2, None),
    FieldTag.NORMAL_X: ("normals", 0, "vertex_has_normal"),
    FieldTag.NORMAL_Y: ("normals", 1, "vertex_has_normal"),
    FieldTag.NORMAL_Z: ("normals", 2, "vertex_has_normal"),
    FieldTag.COLOR_R: ("colors", 0, "vertex_has_color"),
    FieldTag.COLOR_G: ("colors", 1, "vertex_has_color"),
    FieldTag.COLOR_B: ("colors", 2, "vertex_has_color"),
    FieldTag.TEXCOORD_U: ("texcoords", 0, "vertex_has_texcoord"),
    FieldTag.TEXCOORD_V: ("texcoords", 1, "vertex_has_texcoord"),
}

COLOR_FIELDS = {FieldTag.COLOR_R, FieldTag.COLOR_G, FieldTag.COLOR_B}
BYTE_COLOR_TYPES = {"uchar", "uint8"}

FACE_COUNT_TYPES = {"uchar", "uint8", "ushort", "uint16", "uint", "uint32"}
FACE_ITEM_TYPES = {
    "char", "int8", "uchar", "uint8",
    "short", "int16", "ushort", "uint16",
    "int", "int32", "uint", "uint32",
}

FLOAT32_MAX = float(np.finfo(np.float32).max)


class ByteOrder(BaseModel):
    """Declared file byte order against the running host's byte order"""
    model_config = ConfigDict(frozen=True)

    file_little_endian: bool
    host_little_endian: bool

    @classmethod
    def for_format(cls, ply_format: PlyFormat, host_little_endian: Optional[bool] = None) -> "ByteOrder":
        if host_little_endian is None:
            host_little_endian = sys.byteorder == "little"
        return cls(
            file_little_endian=ply_format is not PlyFormat.BINARY_BIG_ENDIAN,
            host_little_endian=host_little_endian,
        )

    @property
    def swap(self) -> bool:
        return self.file_little_endian != self.host_little_endian


def triangulate(indices: Sequence[int]) -> List[Tuple[int, int, int]]:
    """Fan-triangulate a polygon around its first index; fewer than 3 indices yield nothing"""
    first = int(indices[0]) if len(indices) else 0
    return [
        (first, int(indices[j]), int(indices[j + 1]))
        for j in range(1, len(indices) - 1)
    ]


# ----------------------------------------------------------------------------
# Binary helpers
# ----------------------------------------------------------------------------

def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise PlyReadError(f"Unexpected end of file while reading {what}")
    return data


def _read_values(stream: BinaryIO, dtype: np.dtype, count: int, byte_order: ByteOrder, what: str) -> np.ndarray:
    """Read count values of dtype, reversing bytes when file and host order differ"""
    if count == 0:
        return np.empty(0, dtype=dtype)
    values = np.frombuffer(_read_exact(stream, dtype.itemsize * count, what), dtype=dtype, count=count)
    if byte_order.swap:
        values = values.byteswap()
    return values


def _skip(stream: BinaryIO, size: int, what: str) -> None:
    # Read rather than seek: a seek past EOF succeeds and would hide truncation
    if size > 0:
        _read_exact(stream, size, what)


def _remaining_bytes(stream: BinaryIO) -> Optional[int]:
    """Bytes left after the current position, or None for non-seekable streams"""
    if not stream.seekable():
        return None
    position = stream.tell()
    end = stream.seek(0, 2)
    stream.seek(position)
    return end - position


def _minimum_payload_size(header: PlyHeader) -> int:
    """Fewest bytes a payload matching the declared element counts can occupy"""
    if not header.format.is_binary:
        # Every ASCII record takes at least its line terminator
        return header.vertex_count + header.face_count

    vertex_size = sum(
        scalar_dtype(prop.data_type).itemsize
        for prop in header.vertex_properties
        if not prop.is_list
    )
    face_size = 1 if header.face_count else 0
    return header.vertex_count * vertex_size + header.face_count * face_size


def _check_payload_size(stream: BinaryIO, header: PlyHeader) -> None:
    remaining = _remaining_bytes(stream)
    if remaining is None:
        return
    needed = _minimum_payload_size(header)
    if needed > remaining:
        raise PlyReadError(
            f"File declares {header.vertex_count} vertices and {header.face_count} faces "
            f"needing at least {needed} bytes, but only {remaining} remain"
        )


def _face_list_dtypes(prop: PropertyDescriptor) -> Tuple[np.dtype, np.dtype]:
    if prop.count_type not in FACE_COUNT_TYPES:
        raise PlyFormatError(f"Unsupported binary type for face vertex count: {prop.count_type}")
    if prop.item_type not in FACE_ITEM_TYPES:
        raise PlyFormatError(f"Unsupported binary type for face vertex index: {prop.item_type}")
    return scalar_dtype(prop.count_type), scalar_dtype(prop.item_type)


def _color_scale(prop: PropertyDescriptor) -> float:
    return 255.0 if prop.data_type in BYTE_COLOR_TYPES else 1.0


# ----------------------------------------------------------------------------
# Vertices
# ----------------------------------------------------------------------------

def _decode_binary_vertices(stream: BinaryIO, header: PlyHeader, mesh: Mesh, byte_order: ByteOrder) -> None:
    count = header.vertex_count
    if count == 0 or not header.vertex_properties:
        return

    fields = []
    for prop in header.vertex_properties:
        if prop.is_list:
            raise PlyFormatError(f"List property '{prop.name}' on vertex element is not supported in binary files")
        fields.append((f"p{prop.ordinal}", scalar_dtype(prop.data_type)))
    record = np.dtype(fields)

    # Field dtypes are host-native; each column is swapped after extraction
    buffer = _read_exact(stream, record.itemsize * count, f"{count} vertices")
    records = np.frombuffer(buffer, dtype=record, count=count)

    for prop in header.vertex_properties:
        slot = ATTRIBUTE_SLOTS.get(prop.tag)
        if slot is None:
            logger.debug(f"Skipping vertex property '{prop.name}' ({prop.data_type})")
            continue

        column = records[f"p{prop.ordinal}"]
        if byte_order.swap:
            column = column.byteswap()
        values = column.astype(np.float64)
        if prop.tag in COLOR_FIELDS:
            values = values / _color_scale(prop)

        column_name, axis, flag_name = slot
        getattr(mesh, column_name)[:, axis] = values
        if flag_name:
            getattr(mesh, flag_name)[:] = True


def _parse_ascii_value(token: str, prop: PropertyDescriptor) -> float:
    if prop.tag in COLOR_FIELDS and prop.data_type in BYTE_COLOR_TYPES:
        value = int(token)
        if not 0 <= value <= 255:
            raise OverflowError(token)
        return value / 255.0

    value = float(token)
    if math.isfinite(value) and abs(value) > FLOAT32_MAX:
        raise OverflowError(token)
    return value


def _read_body_line(stream: BinaryIO) -> Optional[str]:
    raw = stream.readline()
    if not raw:
        return None
    return raw.decode("ascii", errors="replace")


def _decode_ascii_vertices(stream: BinaryIO, header: PlyHeader, mesh: Mesh) -> None:
    count = header.vertex_count
    slots = [
        (prop, ATTRIBUTE_SLOTS[prop.tag])
        for prop in header.vertex_properties
        if prop.tag in ATTRIBUTE_SLOTS
    ]

    for i in range(count):
        line = _read_body_line(stream)
        if line is None:
            raise PlyReadError(f"Unexpected end of file in ASCII vertex data (vertex {i}/{count})")

        tokens = line.split()
        if not tokens:
            if i < count - 1:
                raise PlyFormatError(f"Blank line in ASCII vertex data (vertex {i}/{count})")
            continue

        for prop, (column_name, axis, flag_name) in slots:
            if prop.ordinal >= len(tokens):
                continue
            token = tokens[prop.ordinal]
            try:
                value = _parse_ascii_value(token, prop)
            except OverflowError:
                logger.warning(f"ASCII vertex {i} property '{prop.name}' value out of range: {token}")
                continue
            except ValueError:
                logger.warning(f"ASCII vertex {i} property '{prop.name}' invalid value: {token}")
                continue

            getattr(mesh, column_name)[i, axis] = value
            if flag_name:
                getattr(mesh, flag_name)[i] = True


# ----------------------------------------------------------------------------
# Faces
# ----------------------------------------------------------------------------

def _decode_binary_faces(stream: BinaryIO, header: PlyHeader, byte_order: ByteOrder) -> List[Tuple[int, int, int]]:
    index_prop = header.face_index_property
    count_dtype, item_dtype = _face_list_dtypes(index_prop)
    triangles: List[Tuple[int, int, int]] = []
    degenerate = 0

    for i in range(header.face_count):
        for prop in header.face_properties:
            if prop.ordinal != index_prop.ordinal:
                if prop.is_list:
                    n = int(_read_values(stream, scalar_dtype(prop.count_type), 1, byte_order, f"face {i} '{prop.name}' count")[0])
                    _skip(stream, n * scalar_dtype(prop.item_type).itemsize, f"face {i} '{prop.name}'")
                else:
                    _skip(stream, scalar_dtype(prop.data_type).itemsize, f"face {i} '{prop.name}'")
                continue

            n = int(_read_values(stream, count_dtype, 1, byte_order, f"face {i} vertex count")[0])
            if n < 3:
                # Indices still have to be consumed to stay aligned with the next record
                _skip(stream, n * item_dtype.itemsize, f"face {i} indices")
                degenerate += 1
                continue

            indices = _read_values(stream, item_dtype, n, byte_order, f"face {i} indices")
            triangles.extend(triangulate(indices))

    if degenerate:
        logger.debug(f"Skipped {degenerate} faces with fewer than 3 vertices")
    return triangles


def _ascii_int(tokens: List[str], position: int, face: int, what: str) -> int:
    if position >= len(tokens):
        raise PlyFormatError(f"ASCII face {face}: missing {what}")
    try:
        return int(tokens[position])
    except ValueError:
        raise PlyFormatError(f"ASCII face {face}: invalid {what}: {tokens[position]}") from None


def _decode_ascii_faces(stream: BinaryIO, header: PlyHeader) -> List[Tuple[int, int, int]]:
    index_prop = header.face_index_property
    count = header.face_count
    triangles: List[Tuple[int, int, int]] = []
    degenerate = 0

    for i in range(count):
        line = _read_body_line(stream)
        if line is None:
            raise PlyReadError(f"Unexpected end of file in ASCII face data (face {i}/{count})")

        tokens = line.split()
        if not tokens:
            if i < count - 1:
                raise PlyFormatError(f"Blank line in ASCII face data (face {i}/{count})")
            continue

        position = 0
        for prop in header.face_properties:
            if prop.ordinal != index_prop.ordinal:
                if prop.is_list:
                    position += 1 + _ascii_int(tokens, position, i, f"'{prop.name}' count")
                else:
                    position += 1
                continue

            n = _ascii_int(tokens, position, i, "vertex count")
            if n < 3:
                degenerate += 1
                break

            indices = [_ascii_int(tokens, position + 1 + j, i, f"vertex index {j}") for j in range(n)]
            position += 1 + n
            triangles.extend(triangulate(indices))

    if degenerate:
        logger.debug(f"Skipped {degenerate} faces with fewer than 3 vertices")
    return triangles


def _check_indices(triangles: np.ndarray, vertex_count: int) -> None:
    if triangles.size == 0:
        return
    low, high = int(triangles.min()), int(triangles.max())
    if low < 0 or high >= vertex_count:
        bad = low if low < 0 else high
        raise PlyFormatError(
            f"Face references vertex index {bad}, but the file declares {vertex_count} vertices"
        )


# ----------------------------------------------------------------------------
# Entry points
# ----------------------------------------------------------------------------

def decode_payload(stream: BinaryIO, header: PlyHeader, host_little_endian: Optional[bool] = None) -> Mesh:
    """
    Decode vertex and face records following a parsed header

    Args:
        stream: Binary stream positioned right after `end_header`
        header: Parsed header
        host_little_endian: Host byte order; detected from the interpreter when None

    Returns:
        Decoded mesh with fan-triangulated faces

    Raises:
        PlyReadError: the stream is shorter than the declared element counts require
    """
    byte_order = ByteOrder.for_format(header.format, host_little_endian)

    _check_payload_size(stream, header)
    try:
        mesh = Mesh.allocate(header.vertex_count)
    except MemoryError:
        raise PlyFormatError(f"Too many vertices declared to load: {header.vertex_count}") from None

    if header.format.is_binary:
        _decode_binary_vertices(stream, header, mesh, byte_order)
    else:
        _decode_ascii_vertices(stream, header, mesh)

    triangles: List[Tuple[int, int, int]] = []
    if header.face_count > 0:
        if header.format.is_binary:
            triangles = _decode_binary_faces(stream, header, byte_order)
        else:
            triangles = _decode_ascii_faces(stream, header)

    mesh.triangles = np.array(triangles, dtype=np.int64).reshape(-1, 3)
    _check_indices(mesh.triangles, mesh.vertex_count)
    return mesh


def decode_ply(stream: BinaryIO, host_little_endian: Optional[bool] = None) -> Tuple[PlyHeader, Mesh]:
    """Parse the header and payload of a PLY document from an open binary stream"""
    header = parse_header(stream)
    logger.debug(
        f"PLY header: {header.format.value}, {header.vertex_count} vertices, {header.face_count} faces"
    )
    return header, decode_payload(stream, header, host_little_endian)


def read_ply(file_path: str, host_little_endian: Optional[bool] = None) -> Mesh:
    """Read a PLY file from disk into a Mesh"""
    with open(file_path, "rb") as stream:
        _, mesh = decode_ply(stream, host_little_endian)
    return mesh
