# bananary/core/config.py
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# ================== ENV ==================

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / "bananary/.env")

def env(*names: str, default: Optional[str] = None) -> str:
    for n in names:
        v = os.environ.get(n)
        if v is not None and str(v).strip() != "":
            return v
    if default is not None:
        return default
    raise KeyError(f"Missing required env var. Tried: {', '.join(names)}")


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}

# ================== JWT ==================

JWT_SECRET = os.environ.get("JWT_SECRET", "default_secret_key")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get("JWT_EXPIRATION_HOURS", "168"))

# ================== MODES ==================

# TEST_MODE echoes verification codes and allows manual order completion.
TEST_MODE = env_flag("TEST_MODE")
AUTO_COMPLETE_CREDIT_PURCHASES = env_flag("AUTO_COMPLETE_CREDIT_PURCHASES", "true")

CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ================== CREDITS ==================

SIGNUP_BONUS_CREDITS = int(os.environ.get("SIGNUP_BONUS_CREDITS", "100"))
IMAGE_GENERATION_COST = int(os.environ.get("IMAGE_GENERATION_COST", "50"))
ENHANCED_GENERATION_COST = int(os.environ.get("ENHANCED_GENERATION_COST", "100"))
VIDEO_GENERATION_COST = int(os.environ.get("VIDEO_GENERATION_COST", "50"))
CREDITS_PER_CURRENCY_UNIT = int(os.environ.get("CREDITS_PER_CURRENCY_UNIT", "80"))

# ================== PAYMENTS ==================

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "cny").strip().lower()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

# ================== GENERATIVE API ==================

GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://ai.juguang.chat/v1beta/models").rstrip("/")
GEMINI_REQUEST_TIMEOUT = float(os.getenv("GEMINI_REQUEST_TIMEOUT", "120"))
VIDEO_POLL_SECONDS = float(os.getenv("VIDEO_POLL_SECONDS", "10"))
VIDEO_TIMEOUT_SECONDS = int(os.getenv("VIDEO_TIMEOUT_SECONDS", "600"))


def get_gemini_api_key() -> str:
    """
    Lazy lookup: the server starts without a key.
    Only the generation endpoints require GEMINI_API_KEY.
    """
    key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if not key:
        raise RuntimeError("GEMINI_API_KEY not configured (.env).")
    return key

# ================== DATABASE ==================
# SQLite for local development and tests, MySQL in production

def get_database_url() -> str:
    """Get database URL - supports SQLite or MySQL."""
    database_url = os.environ.get("DATABASE_URL", "")
    if database_url:
        return database_url

    mysql_host = os.environ.get("MYSQL_HOST")
    if mysql_host:
        mysql_port = int(os.environ.get("MYSQL_PORT", "3306"))
        mysql_user = os.environ.get("MYSQL_USER", "root")
        mysql_password = os.environ.get("MYSQL_PASSWORD", "")
        mysql_db = os.environ.get("MYSQL_DB", "banana")
        return f"mysql+aiomysql://{mysql_user}:{mysql_password}@{mysql_host}:{mysql_port}/{mysql_db}?charset=utf8mb4"

    db_path = ROOT_DIR / "bananary" / "bananary.db"
    return f"sqlite+aiosqlite:///{db_path}"
