"""FastAPI application for the live transcription relay."""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Constants read the environment at import time
load_dotenv()

import uvicorn  # noqa: E402
from fastapi import FastAPI, WebSocket  # noqa: E402
from fastapi.staticfiles import StaticFiles  # noqa: E402
from pydantic import ValidationError  # noqa: E402

from .constants import (  # noqa: E402
    APP_ID,
    APP_VERSION,
    DEVICE_WS_PATH,
    HOST,
    PORT,
    PUBLIC_DIR,
    SHUTDOWN_TIMEOUT,
    SSL_CERTFILE,
    SSL_KEYFILE,
    UI_WS_PATH,
)
from .livetypes import HealthResponse, PeerRole, UiCommand  # noqa: E402
from .peers import WebSocketPeer  # noqa: E402
from .protocols.assemblyai import StreamingConfig  # noqa: E402
from .service import SessionRelay  # noqa: E402
from .utils import (  # noqa: E402
    check_transcriber_env_vars,
    get_ssl_options,
    is_transcriber_configured,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Relay instance
relay = SessionRelay(StreamingConfig.from_env())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting live transcription relay",
        extra={
            "app_id": APP_ID,
            "version": APP_VERSION,
            "port": PORT,
            "sample_rate": relay.config.sample_rate,
        },
    )

    try:
        check_transcriber_env_vars()
    except ValueError as e:
        logger.warning(f"{e}. Every session start will fail until it is set.")

    await relay.start()

    yield

    # Shutdown
    logger.info("Shutting down live transcription relay")
    try:
        await asyncio.wait_for(relay.shutdown(), timeout=SHUTDOWN_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning("Timeout shutting down session relay")


# Create FastAPI app
app = FastAPI(
    title="Live Transcription Relay",
    description="Relays device audio to AssemblyAI streaming and transcripts back to the device and UI",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.get("/heartbeat")
async def heartbeat():
    """Liveness endpoint."""
    return {"status": "ok"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        transcriber_configured=is_transcriber_configured(),
        session_active=relay.session_active,
        device_connected=relay.registry.is_connected(PeerRole.DEVICE),
        ui_connected=relay.registry.is_connected(PeerRole.UI),
    )


@app.websocket(UI_WS_PATH)
async def ui_socket(websocket: WebSocket):
    """UI control channel: receives start/stop, sends session and transcript updates."""
    await websocket.accept()
    peer = WebSocketPeer(websocket, PeerRole.UI)
    relay.registry.register(PeerRole.UI, peer)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                logger.warning("Ignoring binary frame from UI")
                continue
            try:
                command = UiCommand.model_validate_json(raw)
            except ValidationError:
                logger.warning(
                    "Ignoring invalid UI message",
                    extra={"payload": raw[:200]},
                )
                continue
            relay.submit_command(command.type)
    finally:
        relay.registry.clear(PeerRole.UI, peer)


@app.websocket(DEVICE_WS_PATH)
async def device_socket(websocket: WebSocket):
    """Device channel: receives raw audio frames, sends start/text/stop."""
    await websocket.accept()
    peer = WebSocketPeer(websocket, PeerRole.DEVICE)
    relay.registry.register(PeerRole.DEVICE, peer)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            data = message.get("bytes")
            if data:
                relay.submit_audio(data)
            elif message.get("text") is not None:
                logger.debug("Ignoring text frame from device")
    finally:
        relay.registry.clear(PeerRole.DEVICE, peer)


# Static UI assets; mounted last so the WebSocket routes take precedence
if Path(PUBLIC_DIR).is_dir():
    app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=HOST,
        port=PORT,
        log_level="info",
        **get_ssl_options(SSL_KEYFILE, SSL_CERTFILE),
    )
