import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "INFO")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from constants import HOST, PORT, SSL_CERTFILE, SSL_KEYFILE
from logging_config import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    ssl_options = {}
    if SSL_CERTFILE and SSL_KEYFILE:
        ssl_options = {"ssl_certfile": SSL_CERTFILE, "ssl_keyfile": SSL_KEYFILE}
    scheme = "wss" if ssl_options else "ws"
    logger.info(f"Starting RoomRelay server on {scheme}://{HOST}:{PORT}/ws")
    uvicorn.run("app:app", host=HOST, port=PORT, **ssl_options)
