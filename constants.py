import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "relay")

# When true the chat sender receives its own message back from the server.
CHAT_ECHO_SENDER = os.getenv("CHAT_ECHO_SENDER", "false").lower() in ("1", "true", "yes", "on")
# 0 sends the whole history on join
CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", 0))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8000))
SSL_CERTFILE = os.getenv("SSL_CERTFILE", None)
SSL_KEYFILE = os.getenv("SSL_KEYFILE", None)
# seconds a closing connection gets to flush its queued frames
WRITER_FLUSH_TIMEOUT = float(os.getenv("WRITER_FLUSH_TIMEOUT", 5))
