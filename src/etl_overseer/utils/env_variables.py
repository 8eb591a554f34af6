#Environment driven settings for the target database and project paths, loaded once from .env.

import os
from pathlib import Path
from dotenv import load_dotenv

PROJECT_ROOT = os.getenv("PROJECT_ROOT", str(Path(__file__).resolve().parents[3]))

load_dotenv(dotenv_path=Path(PROJECT_ROOT) / ".env")

TARGET_HOST = os.getenv("TARGET_HOST", "localhost")
TARGET_PORT = int(os.getenv("TARGET_PORT", "3306"))
TARGET_USERNAME = os.getenv("TARGET_USERNAME", "root")
TARGET_PASSWORD = os.getenv("TARGET_PASSWORD", "")
TARGET_DATABASE = os.getenv("TARGET_DATABASE") or None

# Non-strict so out-of-range and malformed values are coerced with a warning instead of rejected.
TARGET_SQL_MODE = os.getenv("TARGET_SQL_MODE", "NO_ENGINE_SUBSTITUTION")

TARGET_CONNECT_TIMEOUT = int(os.getenv("TARGET_CONNECT_TIMEOUT", "10"))
TARGET_READ_TIMEOUT = int(os.getenv("TARGET_READ_TIMEOUT", "0")) or None
TARGET_WRITE_TIMEOUT = int(os.getenv("TARGET_WRITE_TIMEOUT", "0")) or None

LOGGING_CONFIG_PATH = os.getenv("ETL_LOGGING_CONFIG")
