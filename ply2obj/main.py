"""
FastAPI PLY Conversion Backend
Converts PLY files to OBJ documents or JSON mesh data for web viewing
"""
import logging
import os

from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from . import config
from .converter import convert_ply_file
from .errors import PlyFormatError, PlyReadError
from .models import ConversionResponse, ErrorResponse, MeshData

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title="PLY Conversion API",
    description="Convert PLY files to OBJ documents or JSON mesh data",
    version=VERSION
)

# CORS - Allow all origins for mobile app
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "PLY Conversion API",
        "version": VERSION,
        "supported_formats": sorted(config.SUPPORTED_EXTENSIONS)
    }


@app.get("/health")
async def health_check():
    """Health check for deployment platforms"""
    return {"status": "healthy"}


async def _read_upload(file: UploadFile) -> tuple[str, bytes]:
    """Validate an uploaded PLY file and return its name and content"""
    file_name = file.filename or "unknown.ply"
    ext = os.path.splitext(file_name.lower())[1]

    if ext not in config.SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format: {ext}. Supported: {', '.join(sorted(config.SUPPORTED_EXTENSIONS))}"
        )

    try:
        content = await file.read()
    except Exception as e:
        logger.error(f"Failed to read file: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to read file: {str(e)}")

    # Check file size
    if len(content) > config.MAX_FILE_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {config.MAX_FILE_SIZE // (1024*1024)} MB"
        )

    if len(content) == 0:
        raise HTTPException(
            status_code=400,
            detail="Empty file received"
        )

    return file_name, content


def _convert(file_name: str, content: bytes):
    """Run a conversion, mapping failures to HTTP errors"""
    try:
        logger.info(f"Converting file: {file_name} ({len(content)} bytes)")

        mesh, obj_text, metadata = convert_ply_file(content, file_name)

        logger.info(f"Conversion successful: {metadata.vertexCount} vertices, {metadata.faceCount} triangles")
        return mesh, obj_text, metadata

    except (PlyFormatError, ValueError) as e:
        # Format/validation errors
        logger.warning(f"Conversion validation error: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    except (PlyReadError, RuntimeError) as e:
        # Truncated or unreadable payload
        logger.error(f"Conversion runtime error: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        # Unexpected errors
        logger.exception(f"Unexpected conversion error: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Conversion failed: {str(e)}"
        )


@app.post("/convert", response_model=ConversionResponse)
async def convert_file(file: UploadFile = File(...)):
    """
    Convert a PLY file to JSON mesh data

    Accepts ASCII and binary (little/big endian) PLY files.
    Returns mesh data as JSON with vertices, normals, colors, texcoords and indices.
    """
    file_name, content = await _read_upload(file)
    mesh, _, metadata = await run_in_threadpool(_convert, file_name, content)

    name = os.path.splitext(os.path.basename(file_name))[0] or "Model"
    return ConversionResponse(
        success=True,
        meshes=[MeshData.from_mesh(mesh, name=name)],
        metadata=metadata
    )


@app.post("/convert/obj", response_class=PlainTextResponse)
async def convert_file_to_obj(file: UploadFile = File(...)):
    """
    Convert a PLY file to an OBJ document

    Returns the OBJ text as an attachment named after the uploaded file.
    """
    file_name, content = await _read_upload(file)
    _, obj_text, metadata = await run_in_threadpool(_convert, file_name, content)

    obj_name = os.path.splitext(os.path.basename(file_name))[0] + ".obj"
    return PlainTextResponse(
        obj_text,
        headers={
            "Content-Disposition": f'attachment; filename="{obj_name}"',
            "X-Vertex-Count": str(metadata.vertexCount),
            "X-Face-Count": str(metadata.faceCount),
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom error response format"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            success=False,
            error=exc.detail,
            detail=str(exc.detail)
        ).model_dump()
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
