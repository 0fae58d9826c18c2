"""
PLY header parsing
Tokenizes the header into element/property descriptors and resolves every
vertex property name to the attribute it feeds
"""
import logging
from typing import BinaryIO, Dict, List, Optional

import numpy as np

from .errors import PlyFormatError
from .models import ElementSchema, FieldTag, PlyFormat, PlyHeader, PropertyDescriptor

logger = logging.getLogger(__name__)

# PLY scalar type names (both spellings) -> numpy dtype in native byte order
SCALAR_TYPES: Dict[str, np.dtype] = {
    "char": np.dtype(np.int8),
    "int8": np.dtype(np.int8),
    "uchar": np.dtype(np.uint8),
    "uint8": np.dtype(np.uint8),
    "short": np.dtype(np.int16),
    "int16": np.dtype(np.int16),
    "ushort": np.dtype(np.uint16),
    "uint16": np.dtype(np.uint16),
    "int": np.dtype(np.int32),
    "int32": np.dtype(np.int32),
    "uint": np.dtype(np.uint32),
    "uint32": np.dtype(np.uint32),
    "float": np.dtype(np.float32),
    "float32": np.dtype(np.float32),
    "double": np.dtype(np.float64),
    "float64": np.dtype(np.float64),
}

FIELD_TAGS: Dict[str, FieldTag] = {
    "x": FieldTag.POSITION_X,
    "y": FieldTag.POSITION_Y,
    "z": FieldTag.POSITION_Z,
    "nx": FieldTag.NORMAL_X,
    "ny": FieldTag.NORMAL_Y,
    "nz": FieldTag.NORMAL_Z,
    "red": FieldTag.COLOR_R,
    "green": FieldTag.COLOR_G,
    "blue": FieldTag.COLOR_B,
    "alpha": FieldTag.ALPHA,
    "u": FieldTag.TEXCOORD_U,
    "s": FieldTag.TEXCOORD_U,
    "texture_u": FieldTag.TEXCOORD_U,
    "v": FieldTag.TEXCOORD_V,
    "t": FieldTag.TEXCOORD_V,
    "texture_v": FieldTag.TEXCOORD_V,
}

NORMAL_TAGS = {FieldTag.NORMAL_X, FieldTag.NORMAL_Y, FieldTag.NORMAL_Z}
COLOR_TAGS = {FieldTag.COLOR_R, FieldTag.COLOR_G, FieldTag.COLOR_B, FieldTag.ALPHA}
TEXCOORD_TAGS = {FieldTag.TEXCOORD_U, FieldTag.TEXCOORD_V}

FACE_INDEX_NAMES = {"vertex_indices", "vertex_index"}


def resolve_tag(name: str) -> FieldTag:
    """Map a vertex property name to its attribute tag"""
    return FIELD_TAGS.get(name, FieldTag.UNKNOWN)


def scalar_dtype(type_name: Optional[str]) -> np.dtype:
    """Look up the numpy dtype of a PLY scalar type name"""
    try:
        return SCALAR_TYPES[type_name]
    except KeyError:
        raise PlyFormatError(f"Unsupported PLY data type: {type_name}") from None


def _read_header_line(stream: BinaryIO) -> Optional[str]:
    raw = stream.readline()
    if not raw:
        return None
    line = raw.decode("ascii", errors="replace").rstrip("\n")
    if line.endswith("\r"):
        line = line[:-1]
    return line


def _parse_property(tokens: List[str], ordinal: int, line: str) -> PropertyDescriptor:
    if len(tokens) >= 2 and tokens[1] == "list":
        if len(tokens) < 5:
            raise PlyFormatError(f"Malformed list property line: {line!r}")
        return PropertyDescriptor(
            name=tokens[4],
            count_type=tokens[2],
            item_type=tokens[3],
            ordinal=ordinal,
        )

    if len(tokens) < 3:
        raise PlyFormatError(f"Malformed property line: {line!r}")
    return PropertyDescriptor(
        name=tokens[2],
        data_type=tokens[1],
        ordinal=ordinal,
        tag=resolve_tag(tokens[2]),
    )


def parse_header(stream: BinaryIO) -> PlyHeader:
    """
    Parse a PLY header from a binary stream

    Consumes lines up to and including `end_header`, leaving the stream
    positioned at the first payload byte.

    Args:
        stream: Binary stream positioned at the start of the file

    Returns:
        Parsed header

    Raises:
        PlyFormatError: unsupported format, malformed declarations, a face
            element without an index list, or no `end_header`
    """
    header = PlyHeader()
    current_element = ""
    ordinal = 0
    header_end = False

    while True:
        line = _read_header_line(stream)
        if line is None:
            break

        tokens = line.split()
        if not tokens:
            continue

        keyword = tokens[0]
        if keyword == "comment":
            header.comments.append(line[len("comment"):].strip())
            continue

        if keyword == "ply":
            continue

        if keyword == "format":
            if len(tokens) < 2:
                raise PlyFormatError(f"Malformed format line: {line!r}")
            try:
                header.format = PlyFormat(tokens[1])
            except ValueError:
                raise PlyFormatError(f"Unsupported PLY format: {tokens[1]}") from None
            if len(tokens) > 2:
                header.version = tokens[2]

        elif keyword == "element":
            if len(tokens) < 3:
                raise PlyFormatError(f"Malformed element line: {line!r}")
            current_element = tokens[1]
            ordinal = 0
            try:
                count = int(tokens[2])
            except ValueError:
                raise PlyFormatError(f"Invalid element count: {line!r}") from None
            if count < 0:
                raise PlyFormatError(f"Negative element count: {line!r}")
            header.elements.append(ElementSchema(name=current_element, count=count))

            if current_element == "vertex":
                header.vertex_count = count
            elif current_element == "face":
                header.face_count = count
            else:
                logger.debug(f"Ignoring element '{current_element}' ({count} records)")

        elif keyword == "property":
            if current_element not in ("vertex", "face"):
                continue
            prop = _parse_property(tokens, ordinal, line)
            ordinal += 1
            header.elements[-1].properties.append(prop)

            if current_element == "vertex":
                header.vertex_properties.append(prop)
                if prop.tag in NORMAL_TAGS:
                    header.declares_normals = True
                elif prop.tag in COLOR_TAGS:
                    header.declares_colors = True
                elif prop.tag in TEXCOORD_TAGS:
                    header.declares_texcoords = True
            else:
                header.face_properties.append(prop)
                if prop.is_list and prop.name in FACE_INDEX_NAMES:
                    if header.face_index_property is not None:
                        raise PlyFormatError("Face element declares more than one vertex index list")
                    header.face_index_property = prop

        elif keyword == "end_header":
            header_end = True
            break

        else:
            logger.debug(f"Ignoring header line: {line!r}")

    if not header_end:
        raise PlyFormatError("Invalid PLY header: end_header not found")

    if header.face_count > 0 and header.face_index_property is None:
        raise PlyFormatError(
            "Face element declared without a 'vertex_indices' or 'vertex_index' list property"
        )

    return header
