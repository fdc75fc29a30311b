"""Configuration for the Par for the Course scoring server."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'parcourse.db'}",
)

# Tournament director access. The master PIN unlocks every room and the player directory;
# each tournament also carries its own director PIN. Empty disables master access.
MASTER_DIRECTOR_PIN = os.getenv("MASTER_DIRECTOR_PIN", "")

# Player sessions (JWT)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
PLAYER_SESSION_DAYS = _parse_int(os.getenv("PLAYER_SESSION_DAYS"), 30)

# Game rules
MAX_HOLES = _parse_int(os.getenv("MAX_HOLES"), 18)
HANDICAP_PROVISIONAL_THRESHOLD = 5  # Fewer completed tournaments than this = provisional handicap

# Room codes: short, human-typed; I and O left out so they can't be misread as 1 and 0
ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ"

# Player directory codes: PC7001, PC7002, ...
PLAYER_CODE_PREFIX = "PC"
PLAYER_CODE_START = _parse_int(os.getenv("PLAYER_CODE_START"), 7000)

# Web
CORS_ORIGINS = _parse_list(os.getenv("CORS_ORIGINS", "*"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = _parse_int(os.getenv("API_PORT"), 8000)
API_RELOAD = os.getenv("API_RELOAD", "").lower() in ("1", "true", "yes")
