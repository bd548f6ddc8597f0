# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./jobboard.db")

# --- Browser automation API ---
GOBII_API_KEY = os.getenv("GOBII_API_KEY", "")
GOBII_API_URL = os.getenv("GOBII_API_URL", "https://gobii.ai/api/v1/tasks/browser-use/")
GOBII_WAIT_SECONDS = int(os.getenv("GOBII_WAIT_SECONDS", "120"))

# --- Public site ---
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "https://www.notcorporate.com").rstrip("/")
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")

# --- Scraping pipeline ---
SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", True)
TASK_TIMEOUT_MINUTES = int(os.getenv("TASK_TIMEOUT_MINUTES", "30"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
QUEUE_BATCH_SIZE = int(os.getenv("QUEUE_BATCH_SIZE", "3"))
POLL_INTERVAL_MINUTES = int(os.getenv("POLL_INTERVAL_MINUTES", "2"))
STUCK_JOB_MINUTES = int(os.getenv("STUCK_JOB_MINUTES", "15"))
MAX_BATCH_URLS = int(os.getenv("MAX_BATCH_URLS", "50"))
SUBMIT_DELAY_SECONDS = float(os.getenv("SUBMIT_DELAY_SECONDS", "2"))
MAX_BACKOFF_SECONDS = 300

# --- Job listings ---
JOB_EXPIRY_DAYS = int(os.getenv("JOB_EXPIRY_DAYS", "30"))
ADMIN_PAGE_SIZE = 50

# --- Accounts ---
SESSION_DAYS = int(os.getenv("SESSION_DAYS", "14"))
SESSION_COOKIE = "jb_session"
# comma-separated; these accounts are made admins when they sign up or sign in
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}

# --- Files ---
STATIC_DIR = os.getenv("STATIC_DIR", "static")
TEMPLATES_DIR = os.getenv("TEMPLATES_DIR", "templates")
LOGO_DIR = os.getenv("LOGO_DIR", os.path.join(STATIC_DIR, "logos"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
