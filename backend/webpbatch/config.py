"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Named conversion configs (<name>.json)
CONFIGS_DIR = Path(os.getenv("CONFIGS_DIR", str(BASE_DIR / "configs")))

# Converted files served by the HTTP API
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(BASE_DIR / "outputs")))

# Supported formats
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".tif", ".webp", ".avif"}
DEFAULT_SOURCE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff"]

# Encoding
DEFAULT_QUALITY = int(os.getenv("DEFAULT_QUALITY", "80"))
DEFAULT_TARGET_SIZE_KB = float(os.getenv("DEFAULT_TARGET_SIZE_KB", "200"))
ENCODE_EFFORT = int(os.getenv("ENCODE_EFFORT", "4"))  # WebP method 0-6

# Quality search (batch runs; the interactive API uses its own policy)
SEARCH_MAX_ITERATIONS = int(os.getenv("SEARCH_MAX_ITERATIONS", "5"))
SEARCH_SIZE_EPSILON_KB = float(os.getenv("SEARCH_SIZE_EPSILON_KB", "1.0"))

# Concurrency: one core is left for the coordinating process
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(max(1, (os.cpu_count() or 2) - 1))))

# Limits for the HTTP API
MAX_IMAGES_PER_UPLOAD = int(os.getenv("MAX_IMAGES_PER_UPLOAD", "10"))
MAX_IMAGE_SIZE_MB = int(os.getenv("MAX_IMAGE_SIZE_MB", "20"))
MAX_IMAGE_SIZE_BYTES = MAX_IMAGE_SIZE_MB * 1024 * 1024

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("webpbatch")
