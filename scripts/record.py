#!/usr/bin/env python3
"""
Punchline microphone recorder.

Captures one recording from the default input device, shows the elapsed
time and input level while recording, and uploads the result to the
ingest endpoint. Press Enter to stop. ``--list`` prints the owner's
existing records instead.
"""

import argparse
import logging
import sys
import threading

from punchline.client.api_client import APIError, PunchlineClient
from punchline.core.exceptions import AlreadyRecording, DeviceUnavailable
from punchline.core.utils import format_duration
from punchline.services.audio import RecordingSession

METER_WIDTH = 24


class LiveDisplay:
    """Single-line elapsed-time + level meter, redrawn from capture threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._elapsed = 0
        self._level = 0

    def on_tick(self, elapsed: int) -> None:
        with self._lock:
            self._elapsed = elapsed
            self._draw()

    def on_levels(self, levels: list[int]) -> None:
        with self._lock:
            self._level = max(levels) if levels else 0
            self._draw()

    def _draw(self) -> None:
        filled = self._level * METER_WIDTH // 255
        meter = "#" * filled + "." * (METER_WIDTH - filled)
        print(f"\r  Recording  {format_duration(self._elapsed)}  [{meter}]", end="", flush=True)


def print_result(result: dict) -> None:
    """Print the ingest response."""
    print(f"\n{'='*60}")
    print(f"Record: {result['recordId']}")
    print(f"{'='*60}")
    print(result["transcription"] or "(no speech detected)")

    top = result["emotions"]["topEmotions"]
    if top:
        print("\nEmotions:")
        for emotion in top:
            print(f"  {emotion['name']:20} {emotion['score']:.3f}")
    else:
        print("\nEmotions: (unavailable)")
    print()


def print_records(records: list[dict]) -> None:
    """Print an owner's records, newest first."""
    if not records:
        print("No recordings yet.")
        return
    for record in records:
        duration = record.get("durationSeconds")
        length = format_duration(duration) if duration is not None else "-:--"
        top = record["emotions"]["topEmotions"]
        mood = top[0]["name"] if top else ""
        print(f"  {record['createdAt'][:16]}  {length:>6}  {record['name'][:30]:30}  {mood}")


def record_and_upload(args) -> None:
    device = int(args.device) if args.device and args.device.isdigit() else args.device
    display = LiveDisplay()
    session = RecordingSession(
        sample_rate=args.sample_rate,
        device=device,
        on_tick=display.on_tick,
        on_levels=display.on_levels,
        level_interval=0.1,
    )

    try:
        session.start()
    except (DeviceUnavailable, AlreadyRecording) as exc:
        print(f"✗ {exc.detail}")
        sys.exit(1)

    display.on_tick(0)
    try:
        input()
    except KeyboardInterrupt:
        pass
    blob = session.stop()

    if blob is None or not blob.data:
        print("✗ Nothing was captured")
        sys.exit(1)

    print(f"Captured {format_duration(blob.duration_seconds)} ({blob.size} bytes)")
    if args.save:
        with open(args.save, "wb") as fh:
            fh.write(blob.data)

    print("Uploading...")
    with PunchlineClient(base_url=args.server) as client:
        try:
            result = client.ingest(blob, owner_id=args.user)
        except APIError as exc:
            print(f"✗ Upload failed: {exc.message}")
            sys.exit(1)

    print_result(result)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Record a journal entry and upload it to Punchline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--user",
        type=str,
        required=True,
        help="Owner identifier sent as userId",
    )

    parser.add_argument(
        "--server",
        type=str,
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )

    parser.add_argument(
        "--device",
        type=str,
        default=None,
        help="Input device index or name (default: system default)",
    )

    parser.add_argument(
        "--sample-rate",
        type=int,
        default=16000,
        help="Capture sample rate in Hz (default: 16000)",
    )

    parser.add_argument(
        "--save",
        type=str,
        default=None,
        help="Also write the captured WAV to this path",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List existing recordings and exit",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    if args.list:
        with PunchlineClient(base_url=args.server) as client:
            try:
                print_records(client.list_records(args.user))
            except APIError as exc:
                print(f"✗ {exc.message}")
                sys.exit(1)
        return

    record_and_upload(args)


if __name__ == "__main__":
    main()
