import os
import string

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ALLOW_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()]

# Rooms untouched for longer than this are evicted by the reaper
ROOM_IDLE_TIMEOUT_SECONDS = float(os.getenv("ROOM_IDLE_TIMEOUT_SECONDS", 24 * 60 * 60))
REAP_INTERVAL_SECONDS = float(os.getenv("REAP_INTERVAL_SECONDS", 12 * 60 * 60))

ACCESS_ID_LENGTH = int(os.getenv("ACCESS_ID_LENGTH", 12))
ACCESS_ID_ALPHABET = os.getenv("ACCESS_ID_ALPHABET", string.ascii_letters + string.digits)

# Query parameter carrying an access id at connect time
ACCESS_ID_QUERY_PARAM = "room"

HTTP_FALLBACK_TEXT = "Hello world!"

# Messages queued for one client before it is treated as stalled and closed
OUTBOX_MAX_MESSAGES = int(os.getenv("OUTBOX_MAX_MESSAGES", 1000))
# Close code sent to a client whose outbox overflowed (policy violation)
OUTBOX_OVERFLOW_CLOSE_CODE = 1008
