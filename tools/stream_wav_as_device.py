"""Stream a WAV file into the relay as if it were the capture device.

The device connects to the device endpoint, waits for {"start": true},
then sends raw 16-bit mono PCM in 50 ms chunks and shows every {"text": ...}
update until {"stop": true} arrives or the file ends.

Usage:
    python tools/stream_wav_as_device.py \
        --url ws://localhost:8000/wsesp \
        --audio /path/to/speech_16k_mono.wav

Flags:
    --ui-url ws://localhost:8000/ws   also act as the UI: send start, and stop at end of file
"""

import argparse
import asyncio
import json
import sys
import wave
from pathlib import Path
from typing import Optional

import websockets

CHUNK_MS = 50


def load_pcm(audio_path: Path) -> tuple[bytes, int]:
    """Read a 16-bit mono PCM WAV file."""
    with wave.open(str(audio_path), "rb") as wav:
        if wav.getsampwidth() != 2 or wav.getnchannels() != 1:
            raise ValueError(
                f"{audio_path.name}: expected 16-bit mono PCM, got "
                f"{wav.getsampwidth() * 8}-bit x{wav.getnchannels()}"
            )
        return wav.readframes(wav.getnframes()), wav.getframerate()


async def _send_ui_command(ui_url: str, command: str) -> None:
    async with websockets.connect(ui_url) as ui:
        await ui.send(json.dumps({"type": command}))


async def stream_wav(url: str, audio_path: Path, ui_url: Optional[str]) -> None:
    pcm, sample_rate = load_pcm(audio_path)
    chunk_bytes = sample_rate * 2 * CHUNK_MS // 1000
    print(f"[info] {audio_path.name}: {len(pcm) / (sample_rate * 2):.1f}s at {sample_rate}Hz")

    async with websockets.connect(url) as ws:
        started = asyncio.Event()
        stopped = asyncio.Event()

        async def receive() -> None:
            async for raw in ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if "start" in message:
                    print("[info] recording")
                    started.set()
                if "text" in message:
                    print(f"[text] {message['text']}")
                if "stop" in message:
                    print("[info] stopped")
                    stopped.set()
                    return

        receiver = asyncio.create_task(receive())

        if ui_url:
            await _send_ui_command(ui_url, "start")
        print("[info] waiting for start")
        await started.wait()

        for offset in range(0, len(pcm), chunk_bytes):
            if stopped.is_set():
                break
            await ws.send(pcm[offset:offset + chunk_bytes])
            await asyncio.sleep(CHUNK_MS / 1000)

        if ui_url and not stopped.is_set():
            await _send_ui_command(ui_url, "stop")
            try:
                await asyncio.wait_for(stopped.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                pass

        receiver.cancel()
        try:
            await receiver
        except asyncio.CancelledError:
            pass


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stream a WAV file into the relay as the device.")
    parser.add_argument("--url", required=True, help="Device WebSocket URL (e.g. ws://host:8000/wsesp).")
    parser.add_argument("--audio", required=True, help="Path to a 16-bit mono PCM WAV file.")
    parser.add_argument("--ui-url", default=None, help="UI WebSocket URL; when set, send start/stop too.")
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    try:
        asyncio.run(stream_wav(url=args.url, audio_path=Path(args.audio), ui_url=args.ui_url))
    except Exception as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
