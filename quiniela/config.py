import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/quiniela.db")

# Admin access for the /admin endpoints (set in production)
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "change-me")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Tournament defaults
GROUP_STAGE_PHASE = os.getenv("GROUP_STAGE_PHASE", "group_stage")
THIRD_PLACE_QUOTA = int(os.getenv("THIRD_PLACE_QUOTA", "8"))  # best thirds that advance
