"""
Command line entry point: ply2obj <input.ply> <output.obj>
"""
import argparse
import logging
import sys
from typing import List, Optional

from . import config
from .converter import PlyConverter
from .errors import PlyError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ply2obj",
        description="Convert a PLY mesh or point cloud to an OBJ file",
        epilog="Example: ply2obj model.ply model.obj",
    )
    parser.add_argument("input", help="input .ply file")
    parser.add_argument("output", help="output .obj file")
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="logging verbosity (default: %(default)s)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    # argparse prints usage and exits with status 2 on a wrong argument count
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    print(f"Converting: {args.input} -> {args.output}")

    try:
        metadata = PlyConverter().convert_file(args.input, args.output)
    except (PlyError, OSError) as e:
        logger.error(f"Conversion failed: {e}")
        print(f"Conversion failed: {e}", file=sys.stderr)
        return 1

    print(f"Read {metadata.vertexCount} vertices, {metadata.faceCount} triangles")
    if metadata.hasNormals:
        print("  File contains normals.")
    if metadata.hasColors:
        print("  File contains vertex colors.")
    if metadata.hasTexCoords:
        print("  File contains texture coordinates.")
    print(f"PLY read time: {metadata.readMs:.0f} ms")
    print(f"OBJ write time: {metadata.writeMs:.0f} ms")
    print(f"Done. OBJ written to {args.output}")
    print(f"Total time: {metadata.readMs + metadata.writeMs:.0f} ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
