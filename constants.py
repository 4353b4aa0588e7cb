import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 10000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

VERSION = os.getenv("VERSION", "0.1.1")

# Comma separated list, "*" allows any origin
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]

SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", 600))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 60))
KEEPALIVE_INTERVAL_SECONDS = int(os.getenv("KEEPALIVE_INTERVAL_SECONDS", 20))

MAX_MEMBERS = 2

ROOM_ID_LENGTH = 6
MEMBER_ID_LENGTH = 8
