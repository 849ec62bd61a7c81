import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

HEARTBEAT_INTERVAL = float(os.getenv("HEARTBEAT_INTERVAL", 30))

RATE_LIMIT_WINDOW = float(os.getenv("RATE_LIMIT_WINDOW", 10))
RATE_LIMIT_MAX_MESSAGES = int(os.getenv("RATE_LIMIT_MAX_MESSAGES", 50))

HEALTH_BODY = "Focus Race Relay OK\n"
