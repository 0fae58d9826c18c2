"""
Runtime configuration read from the environment (and a local .env file)
"""
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))

LOG_LEVEL = os.getenv("PLY2OBJ_LOG_LEVEL", "INFO").upper()

# Uploads larger than this are rejected by the service
MAX_FILE_SIZE = int(os.getenv("PLY2OBJ_MAX_FILE_SIZE", 50 * 1024 * 1024))  # 50 MB

SUPPORTED_EXTENSIONS = {".ply"}
