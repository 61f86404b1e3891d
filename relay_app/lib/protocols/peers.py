"""Outbound messages for the device and UI peers.

The device firmware only looks for the presence of the "start", "stop" and
"text" keys; the UI switches on "type".
"""


def device_start() -> dict:
    return {"start": True}


def device_text(text: str) -> dict:
    return {"text": text}


def device_stop() -> dict:
    return {"stop": True}


def ui_start() -> dict:
    return {"type": "start"}


def ui_transcript(text: str) -> dict:
    return {"type": "transcript", "text": text}


def ui_stop() -> dict:
    return {"type": "stop"}


def ui_error(message: str) -> dict:
    """Session-level failure reported to the UI (start failed, stream broke)."""
    return {"type": "error", "message": message}
