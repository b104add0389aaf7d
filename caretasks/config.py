import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./caretasks.db")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Occurrence listing
# Longest window (in days) a single occurrence listing may cover
MAX_OCCURRENCE_WINDOW_DAYS = int(os.getenv("MAX_OCCURRENCE_WINDOW_DAYS", "366"))
