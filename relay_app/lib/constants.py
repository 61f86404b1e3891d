"""Constants for the live transcription relay."""

import os

# App identification
APP_ID = os.getenv("APP_ID", "transcript_relay")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# Listener configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
SSL_KEYFILE = os.getenv("SSL_KEYFILE", "certs/key.pem")
SSL_CERTFILE = os.getenv("SSL_CERTFILE", "certs/cert.pem")
PUBLIC_DIR = os.getenv("PUBLIC_DIR", "public")

# Peer endpoints (the device firmware connects to /wsesp)
UI_WS_PATH = os.getenv("UI_WS_PATH", "/ws")
DEVICE_WS_PATH = os.getenv("DEVICE_WS_PATH", "/wsesp")

# Credential configuration
TOKEN_EXPIRES_IN_SECONDS = 60

# Connection timeouts (seconds)
TOKEN_TIMEOUT = 10
STREAM_CONNECT_TIMEOUT = 10
STREAM_PING_INTERVAL = 30
STREAM_PING_TIMEOUT = 10
STREAM_CLOSE_TIMEOUT = 2
SHUTDOWN_TIMEOUT = 5
