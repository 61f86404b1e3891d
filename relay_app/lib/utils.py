"""Utility functions for the live transcription relay."""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def check_transcriber_env_vars() -> None:
    """Check that required AssemblyAI environment variables are set.

    Raises:
        ValueError: If required variables are missing
    """
    required_vars = ("ASSEMBLYAI_API_KEY",)
    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        raise ValueError(f"Missing AssemblyAI environment variables: {', '.join(missing_vars)}")


def is_transcriber_configured() -> bool:
    """Check if AssemblyAI is configured.

    Returns:
        True if the API key environment variable is set
    """
    return bool(os.getenv("ASSEMBLYAI_API_KEY"))


def get_ssl_options(keyfile: str, certfile: str) -> dict[str, str]:
    """Get uvicorn TLS options for the listener.

    Args:
        keyfile: Path to the PEM private key
        certfile: Path to the PEM certificate

    Returns:
        ssl_keyfile/ssl_certfile kwargs, or an empty dict to serve plain HTTP
    """
    if Path(keyfile).is_file() and Path(certfile).is_file():
        logger.info(
            "Serving with TLS",
            extra={"ssl_keyfile": keyfile, "ssl_certfile": certfile},
        )
        return {"ssl_keyfile": keyfile, "ssl_certfile": certfile}

    logger.warning(
        "TLS certificate not found, serving plain HTTP/WS",
        extra={"ssl_keyfile": keyfile, "ssl_certfile": certfile},
    )
    return {}
