import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

BASE_DIR = Path(__file__).resolve().parent

# Server
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
API_PREFIX = os.getenv("API_PREFIX", "/api/v1")
BASE_URL = os.getenv("BASE_URL", "http://localhost:3000")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", f"http://localhost:5173,https://localhost:5173,{FRONTEND_URL}"
    ).split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERSION = "1.0.0"

# Photo archive
PHOTOS_DIR = BASE_DIR / os.getenv("PHOTOS_DIR", "photos")
FILE_WRITE_TIMEOUT = float(os.getenv("FILE_WRITE_TIMEOUT", "10"))

# Cache
CACHE_DEFAULT_TTL = float(os.getenv("CACHE_TTL", "30"))
CACHE_CLEANUP_INTERVAL = float(os.getenv("CACHE_CLEANUP_INTERVAL", "60"))

# Challenge
CHALLENGE_CACHE_PREFIX = "challenge:"
CHALLENGE_GRACE_SECONDS = 10
CHALLENGE_NONCE_BYTES = 32
DEFAULT_POLYGON_COUNT = 7
MIN_POLYGON_COUNT = 5
MAX_POLYGON_COUNT = 10
DEFAULT_TTL_SECONDS = int(os.getenv("CHALLENGE_TTL", "30"))
MIN_TTL_SECONDS = 10
MAX_TTL_SECONDS = 120

# Polygon geometry (normalized canvas coordinates)
POLYGON_MIN_SIDES = 3
POLYGON_MAX_SIDES = 6
POLYGON_CENTER_RANGE = (0.15, 0.85)
POLYGON_RADIUS_RANGE = (0.08, 0.15)
POLYGON_IRREGULARITY = (0.8, 1.2)
POLYGON_OPACITY_RANGE = (0.4, 0.8)
POLYGON_DURATION_RANGE_MS = (1000, 3000)
POLYGON_DECIMALS = 3
POLYGON_COLORS = [
    "#FF5733",
    "#33FF57",
    "#3357FF",
    "#FF33F5",
    "#F5FF33",
    "#33FFF5",
    "#FF8C33",
    "#8C33FF",
]

# Capture
MAX_PHOTO_SIZE = 10 * 1024 * 1024
ALLOWED_MIME_TYPES = ["image/jpeg", "image/jpg", "image/png"]
MAX_MESSAGE_LENGTH = 500
PHOTO_ID_PREFIX = "photo_"
PHOTO_ID_HEX_CHARS = 16
