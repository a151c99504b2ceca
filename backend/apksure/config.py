# apksure/config.py

import os
import logging
from dotenv import load_dotenv
from pathlib import Path

# Explicitly load .env from backend root
BASE_DIR = Path(__file__).resolve().parent.parent  # backend/
env_path = BASE_DIR / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

DEBUG = _env_bool("APKSURE_DEBUG")

# User store
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'apksure.db'}").strip()

# Listening address
HOST = os.getenv("HOST", "127.0.0.1").strip()
PORT = int(os.getenv("PORT", "5000"))

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

# External analysis service
ANALYSIS_UPLOAD_URL = os.getenv("ANALYSIS_UPLOAD_URL", "https://fakeapk.onrender.com/upload").strip()
ANALYSIS_RESULT_URL = os.getenv("ANALYSIS_RESULT_URL", "https://fakeapk.onrender.com/result/").strip()
ANALYSIS_TIMEOUT = float(os.getenv("ANALYSIS_TIMEOUT", "60"))

ALLOWED_EXTENSIONS = (".apk",)
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

# Sessions
SESSION_TTL = int(os.getenv("SESSION_TTL", str(8 * 60 * 60)))

# Client-side polling
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "2.0"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "150"))
POLL_DEADLINE = float(os.getenv("POLL_DEADLINE", "300"))

API_BASE = os.getenv("APKSURE_API", f"http://127.0.0.1:{PORT}").strip().rstrip("/")
