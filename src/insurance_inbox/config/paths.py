from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env once, before anything reads the environment.
load_dotenv()

# Project root (independent of current working directory).
PROJECT_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_STATE_DIR = ".state"
DEFAULT_LOGS_DIR = "logs"


def resolve_dir(value: Optional[str], default: str) -> Path:
    """
    Turn a configured directory into an existing absolute path.
    Empty values fall back to `default`; relative paths hang off PROJECT_ROOT.
    """
    path = Path((value or "").strip() or default)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    path.mkdir(parents=True, exist_ok=True)
    return path
