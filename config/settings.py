import os
import re
import logging
from dotenv import load_dotenv

# --- Project paths ---
PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# .env lives at the project root; real environment variables win
ENV_PATH = os.path.join(PROJECT_DIR, ".env")
load_dotenv(dotenv_path=ENV_PATH, override=False)


# --- small helpers for env parsing ---
def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return int(v)
    except Exception:
        return default


def _env_float(name: str, default):
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except Exception:
        return default


def _env_list(name: str):
    """Parse comma/space separated env var into a list of strings, or None if missing/empty."""
    v = os.getenv(name)
    if not v:
        return None
    parts = [p.strip() for p in re.split(r"[,\s]+", v) if p.strip()]
    return parts or None


# --- API and Model Configuration ---
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

if not GOOGLE_API_KEY:
    logging.getLogger(__name__).warning(
        "GOOGLE_API_KEY not found (looked for .env at %s). Analysis and generation calls will fail.", ENV_PATH
    )

GEMINI_MODEL_NAME = os.getenv("GEMINI_MODEL_NAME", "gemini-2.5-pro")
# Per-stage overrides; both default to the shared model
ANALYSIS_MODEL_NAME = os.getenv("ANALYSIS_MODEL_NAME", GEMINI_MODEL_NAME)
GENERATION_MODEL_NAME = os.getenv("GENERATION_MODEL_NAME", GEMINI_MODEL_NAME)

# A whole-book analysis or a 100-question batch can take minutes
REQUEST_TIMEOUT_SEC = _env_float("REQUEST_TIMEOUT_SEC", 600.0)
GENERATION_TEMPERATURE = _env_float("GENERATION_TEMPERATURE", None)

# --- Logging Configuration ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # options: DEBUG, INFO, WARNING, ERROR
LOG_DIR = os.getenv("LOG_DIR", os.path.join(PROJECT_DIR, "logs"))

# --- Generation knobs ---
# Duplicate handling after a part batch comes back: "off" | "warn" | "drop"
DEDUP_POLICY = os.getenv("DEDUP_POLICY", "off")

# How many distinct topics from earlier parts are quoted back in a part prompt
PRIOR_TOPICS_IN_PROMPT = _env_int("PRIOR_TOPICS_IN_PROMPT", 40)

# Page images wider than this are downscaled before upload (0 disables)
IMAGE_MAX_WIDTH = _env_int("IMAGE_MAX_WIDTH", 2200)

# --- Upload limits (HTTP surface) ---
UPLOAD_MAX_FILES = _env_int("UPLOAD_MAX_FILES", 40)
UPLOAD_MAX_TOTAL_BYTES = _env_int("UPLOAD_MAX_TOTAL_BYTES", 100 * 1024 * 1024)
ACCEPTED_MIME_PREFIXES = _env_list("ACCEPTED_MIME_PREFIXES") or ["application/pdf", "image/"]

# --- Exports ---
EXPORT_FILE_PREFIX = os.getenv("EXPORT_FILE_PREFIX", "MathGenius")
PROCESSED_DATA_DIR = os.getenv("PROCESSED_DATA_DIR", os.path.join(PROJECT_DIR, "processed_data"))


if __name__ == "__main__":
    # Quick sanity check
    print(f"Project Directory: {PROJECT_DIR}")
    print(f"Looking for .env at: {ENV_PATH}")
    print(f"Google API Key Loaded: {'Yes' if GOOGLE_API_KEY else 'No - CHECK .env PATH AND CONTENT!'}")
    print(f"Analysis model: {ANALYSIS_MODEL_NAME}")
    print(f"Generation model: {GENERATION_MODEL_NAME}")
    print(f"Request timeout: {REQUEST_TIMEOUT_SEC}s")
    print(f"DEDUP_POLICY: {DEDUP_POLICY}")
    print(f"IMAGE_MAX_WIDTH: {IMAGE_MAX_WIDTH}")
    print(f"Log level: {LOG_LEVEL}")
    print(f"Processed data directory: {PROCESSED_DATA_DIR}")
