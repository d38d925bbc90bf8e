from pathlib import Path
from typing import Optional
import os

# Defaults mirror what the LNReader app exports and what the operator expects
# to find next to the tool.
DEFAULT_DB_FILE = "Backup_pages.db"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/73.0.3683.103 Safari/537.36"
)


def get_db_file() -> str:
    return os.environ.get("IMAGE_RETRIEVER_DB", DEFAULT_DB_FILE)


def get_images_dir() -> Path:
    return Path(os.environ.get("IMAGE_RETRIEVER_IMAGES_DIR", "images"))


def get_log_path() -> Path:
    return Path(os.environ.get("IMAGE_RETRIEVER_LOG", "log.txt"))


def get_fetch_timeout() -> Optional[float]:
    """Seconds to wait on a single fetch, or None to use the transport default."""
    value = os.environ.get("IMAGE_RETRIEVER_TIMEOUT", "").strip()
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError:
        print(f"[WARN] Ignoring IMAGE_RETRIEVER_TIMEOUT={value!r}: not a number")
        return None
    return timeout if timeout > 0 else None


def get_user_agent() -> str:
    return os.environ.get("IMAGE_RETRIEVER_USER_AGENT", DEFAULT_USER_AGENT)
