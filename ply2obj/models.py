"""
Pydantic models for PLY schemas, decoded meshes and API request/response
"""
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class PlyFormat(str, Enum):
    """Payload encoding declared by the `format` header line"""
    ASCII = "ascii"
    BINARY_LITTLE_ENDIAN = "binary_little_endian"
    BINARY_BIG_ENDIAN = "binary_big_endian"

    @property
    def is_binary(self) -> bool:
        return self is not PlyFormat.ASCII


class FieldTag(str, Enum):
    """What a vertex property means once its name has been resolved"""
    POSITION_X = "position_x"
    POSITION_Y = "position_y"
    POSITION_Z = "position_z"
    NORMAL_X = "normal_x"
    NORMAL_Y = "normal_y"
    NORMAL_Z = "normal_z"
    COLOR_R = "color_r"
    COLOR_G = "color_g"
    COLOR_B = "color_b"
    ALPHA = "alpha"
    TEXCOORD_U = "texcoord_u"
    TEXCOORD_V = "texcoord_v"
    UNKNOWN = "unknown"


class PropertyDescriptor(BaseModel):
    """One property of one element, as declared in the header"""
    model_config = ConfigDict(frozen=True)

    name: str
    data_type: Optional[str] = None   # scalar type, None for list properties
    count_type: Optional[str] = None  # list length prefix type
    item_type: Optional[str] = None   # list item type
    ordinal: int                      # position within the element's property list
    tag: FieldTag = FieldTag.UNKNOWN

    @property
    def is_list(self) -> bool:
        return self.data_type is None


class ElementSchema(BaseModel):
    """An element declaration and its ordered properties"""
    name: str
    count: int = Field(ge=0)
    properties: List[PropertyDescriptor] = []


class PlyHeader(BaseModel):
    """Everything the payload decoder needs from the header"""
    format: PlyFormat = PlyFormat.ASCII
    version: str = "1.0"
    elements: List[ElementSchema] = []  # every declared element, in header order
    vertex_count: int = 0
    face_count: int = 0
    vertex_properties: List[PropertyDescriptor] = []
    face_properties: List[PropertyDescriptor] = []
    face_index_property: Optional[PropertyDescriptor] = None
    declares_normals: bool = False
    declares_colors: bool = False
    declares_texcoords: bool = False
    comments: List[str] = []


class Vertex(BaseModel):
    """Single decoded vertex; attributes carry their own presence flags"""
    position: Tuple[float, float, float]
    normal: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    color: Tuple[float, float, float] = (0.0, 0.0, 0.0)  # RGB 0-1 range
    tex_coord: Tuple[float, float] = (0.0, 0.0)
    has_normal: bool = False
    has_color: bool = False
    has_tex_coord: bool = False


class Triangle(BaseModel):
    """Zero-based vertex indices of one triangle"""
    v0: int
    v1: int
    v2: int


class Mesh(BaseModel):
    """
    Decoded mesh stored as per-attribute columns

    Row i of every vertex array belongs to vertex i. The mesh-level
    capability flags are derived from the per-vertex presence flags.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    positions: np.ndarray       # (N, 3) float32
    normals: np.ndarray         # (N, 3) float32
    colors: np.ndarray          # (N, 3) float32
    texcoords: np.ndarray       # (N, 2) float32
    vertex_has_normal: np.ndarray    # (N,) bool
    vertex_has_color: np.ndarray     # (N,) bool
    vertex_has_texcoord: np.ndarray  # (N,) bool
    triangles: np.ndarray       # (M, 3) int64

    @classmethod
    def allocate(cls, vertex_count: int) -> "Mesh":
        """Zero-filled mesh with room for vertex_count vertices and no triangles"""
        return cls(
            positions=np.zeros((vertex_count, 3), dtype=np.float32),
            normals=np.zeros((vertex_count, 3), dtype=np.float32),
            colors=np.zeros((vertex_count, 3), dtype=np.float32),
            texcoords=np.zeros((vertex_count, 2), dtype=np.float32),
            vertex_has_normal=np.zeros(vertex_count, dtype=bool),
            vertex_has_color=np.zeros(vertex_count, dtype=bool),
            vertex_has_texcoord=np.zeros(vertex_count, dtype=bool),
            triangles=np.zeros((0, 3), dtype=np.int64),
        )

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def has_normals(self) -> bool:
        return bool(self.vertex_has_normal.any())

    @property
    def has_colors(self) -> bool:
        return bool(self.vertex_has_color.any())

    @property
    def has_texcoords(self) -> bool:
        return bool(self.vertex_has_texcoord.any())

    def vertex(self, index: int) -> Vertex:
        return Vertex(
            position=tuple(float(c) for c in self.positions[index]),
            normal=tuple(float(c) for c in self.normals[index]),
            color=tuple(float(c) for c in self.colors[index]),
            tex_coord=tuple(float(c) for c in self.texcoords[index]),
            has_normal=bool(self.vertex_has_normal[index]),
            has_color=bool(self.vertex_has_color[index]),
            has_tex_coord=bool(self.vertex_has_texcoord[index]),
        )

    def triangle(self, index: int) -> Triangle:
        v0, v1, v2 = (int(i) for i in self.triangles[index])
        return Triangle(v0=v0, v1=v1, v2=v2)

    def iter_vertices(self) -> Iterator[Vertex]:
        for i in range(self.vertex_count):
            yield self.vertex(i)

    def iter_triangles(self) -> Iterator[Triangle]:
        for i in range(self.triangle_count):
            yield self.triangle(i)


class MeshData(BaseModel):
    """Single mesh in flat-array form for web viewers"""
    name: str
    vertices: List[float]   # Flat array: [x1,y1,z1, x2,y2,z2, ...]
    normals: List[float]    # Flat array: [nx1,ny1,nz1, ...], empty without normals
    colors: List[float]     # Flat array: [r1,g1,b1, ...] 0-1 range, empty without colors
    texcoords: List[float]  # Flat array: [u1,v1, ...], empty without texcoords
    indices: List[int]      # Triangle indices

    @classmethod
    def from_mesh(cls, mesh: Mesh, name: str = "Model") -> "MeshData":
        normals: List[float] = []
        if mesh.has_normals:
            # Vertices without their own normal point along +Z
            filled = np.where(mesh.vertex_has_normal[:, None], mesh.normals, np.float32([0.0, 0.0, 1.0]))
            normals = filled.ravel().tolist()

        return cls(
            name=name,
            vertices=mesh.positions.ravel().tolist(),
            normals=normals,
            colors=mesh.colors.ravel().tolist() if mesh.has_colors else [],
            texcoords=mesh.texcoords.ravel().tolist() if mesh.has_texcoords else [],
            indices=mesh.triangles.ravel().tolist(),
        )


class ConversionMetadata(BaseModel):
    """Metadata about the conversion"""
    vertexCount: int
    faceCount: int
    hasNormals: bool
    hasColors: bool
    hasTexCoords: bool
    format: str
    fileName: str
    readMs: Optional[float] = None
    writeMs: Optional[float] = None


class ConversionResponse(BaseModel):
    """Response from /convert endpoint"""
    success: bool
    meshes: List[MeshData]
    metadata: ConversionMetadata
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response"""
    success: bool = False
    error: str
    detail: Optional[str] = None
