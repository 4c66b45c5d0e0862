"""
Configuration - env vars, constants, sandbox language table.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("examgrader")

# ============ DATABASE ============
MONGO_URL = os.environ.get("MONGO_URL", "mongodb://localhost:27017")
DB_NAME = os.environ.get("DB_NAME", "examgrader")

# ============ CODE EXECUTION SANDBOX ============
PISTON_API_URL = os.environ.get("PISTON_API_URL", "https://emkc.org/api/v2/piston").rstrip("/")
SANDBOX_RUN_TIMEOUT_MS = int(os.environ.get("SANDBOX_RUN_TIMEOUT_MS", "10000"))

# Job-wide cap on in-flight sandbox calls, shared by every coding question of one job
SANDBOX_MAX_CONCURRENCY = int(os.environ.get("SANDBOX_MAX_CONCURRENCY", "5"))

MAX_RETRIES = 2
INITIAL_RETRY_DELAY = 0.5  # seconds, doubled on every retry
MAX_CONCURRENT = 5  # test cases per batch

# Logical language -> (piston language, version). Keep in sync with the sandbox.
LANGUAGE_MAP = {
    "python": ("python", "3.10.0"),
    "javascript": ("javascript", "18.15.0"),
    "java": ("java", "15.0.2"),
    "cpp": ("c++", "10.2.0"),
    "c": ("c", "10.2.0"),
    "go": ("go", "1.16.2"),
    "rust": ("rust", "1.68.2"),
}
LANGUAGE_ALIASES = {"c++": "cpp"}

SOURCE_FILE_NAMES = {
    "python": "main.py",
    "javascript": "main.js",
    "java": "Main.java",
    "cpp": "main.cpp",
    "c": "main.c",
    "go": "main.go",
    "rust": "main.rs",
}

# ============ INTERACTIVE RUNNER LIMITS ============
MAX_CODE_LENGTH = 50000
MAX_TEST_CASES = 50
MIN_TIME_LIMIT = 1
MAX_TIME_LIMIT = 30
DEFAULT_TIME_LIMIT = 5
RATE_LIMIT_REQUESTS = 30
RATE_LIMIT_WINDOW = 60  # seconds

# ============ JOBS ============
STALE_JOB_TIMEOUT = int(os.environ.get("STALE_JOB_TIMEOUT", "900"))
STALE_JOB_SWEEP_INTERVAL = int(os.environ.get("STALE_JOB_SWEEP_INTERVAL", "60"))

# Shared secret for machine-to-machine calls; unset disables the check
SERVICE_API_KEY = os.environ.get("SERVICE_API_KEY")

if not SERVICE_API_KEY:
    logger.warning("⚠️ No SERVICE_API_KEY found - trigger endpoints are unauthenticated")


def get_cors_origins():
    """Comma separated CORS_ORIGINS, defaulting to any origin."""
    cors_origins_env = os.environ.get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]


def get_version_info():
    """Get deployment version information."""
    git_commit = os.environ.get("GIT_COMMIT_SHA")
    if not git_commit:
        try:
            if os.path.exists(".git_commit"):
                with open(".git_commit", "r") as f:
                    git_commit = f.read().strip()
        except OSError:
            pass

    if not git_commit:
        logger.warning("GIT_COMMIT_SHA not set and .git_commit not found. Build pipeline issue?")
        git_commit = "unknown"

    build_time = os.environ.get("BUILD_TIME", "unknown")
    env = os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development"))

    return {
        "git_commit": git_commit,
        "build_time": build_time,
        "environment": env
    }
