"""
PLY to OBJ Converter
Reads PLY meshes/point clouds and writes them as OBJ documents
"""
import logging
import os
import tempfile
import time
from typing import Tuple

from .decoder import decode_ply
from .encoder import mesh_to_obj, write_obj
from .models import ConversionMetadata, Mesh, PlyHeader

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 3)


class PlyConverter:
    """
    Converts PLY files to OBJ
    """

    def read(self, file_path: str) -> Tuple[PlyHeader, Mesh]:
        """Decode a PLY file; the whole mesh is loaded before returning"""
        with open(file_path, "rb") as stream:
            return decode_ply(stream)

    def convert_file(self, input_path: str, output_path: str) -> ConversionMetadata:
        """
        Convert a PLY file to an OBJ file

        Args:
            input_path: Path to the PLY file
            output_path: Path of the OBJ file to write

        Returns:
            Conversion metadata (counts, capability flags, timings)
        """
        logger.info(f"Converting: {input_path} -> {output_path}")

        start = time.perf_counter()
        header, mesh = self.read(input_path)
        read_ms = _elapsed_ms(start)

        logger.info(
            f"Read {mesh.vertex_count} vertices, {mesh.triangle_count} triangles in {read_ms} ms"
        )

        # Only reached after a complete decode, so no partial output is written
        start = time.perf_counter()
        write_obj(mesh, output_path)
        write_ms = _elapsed_ms(start)

        logger.info(f"Wrote {output_path} in {write_ms} ms")

        return self._metadata(header, mesh, os.path.basename(input_path), read_ms, write_ms)

    def convert_bytes(self, file_content: bytes, file_name: str) -> Tuple[Mesh, str, ConversionMetadata]:
        """
        Convert PLY content held in memory

        Args:
            file_content: PLY file content as bytes
            file_name: Original file name

        Returns:
            Tuple of (mesh, OBJ document text, metadata)
        """
        # Write to temp file
        with tempfile.NamedTemporaryFile(suffix=".ply", delete=False) as tmp:
            tmp.write(file_content)
            tmp_path = tmp.name

        try:
            start = time.perf_counter()
            header, mesh = self.read(tmp_path)
            read_ms = _elapsed_ms(start)

            start = time.perf_counter()
            obj_text = mesh_to_obj(mesh)
            write_ms = _elapsed_ms(start)
        finally:
            # Clean up temp file
            os.unlink(tmp_path)

        return mesh, obj_text, self._metadata(header, mesh, file_name, read_ms, write_ms)

    def _metadata(self, header: PlyHeader, mesh: Mesh, file_name: str,
                  read_ms: float, write_ms: float) -> ConversionMetadata:
        return ConversionMetadata(
            vertexCount=mesh.vertex_count,
            faceCount=mesh.triangle_count,
            hasNormals=mesh.has_normals,
            hasColors=mesh.has_colors,
            hasTexCoords=mesh.has_texcoords,
            format=header.format.value,
            fileName=file_name,
            readMs=read_ms,
            writeMs=write_ms,
        )


def convert_ply_file(file_content: bytes, file_name: str) -> Tuple[Mesh, str, ConversionMetadata]:
    """
    Convenience function to convert PLY content from bytes

    Args:
        file_content: File content as bytes
        file_name: Original file name

    Returns:
        Tuple of (mesh, OBJ document text, metadata)
    """
    converter = PlyConverter()
    return converter.convert_bytes(file_content, file_name)
