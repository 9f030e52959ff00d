"""
Terminal front end: a push-to-talk tutoring conversation in the console.

    realtime-tutor --language spanish --level 3-4 --topic "Ordering food"

Press Enter to start talking, Enter again to send the turn, q to quit.
Conversation text goes to stderr; stdout carries the JSONL event log.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from audio.bridge import AudioBridge
from config import AppConfig
from constants import DEFAULT_OPENING_MESSAGE, DEFAULT_VOICE
from errors import NotConnected, RealtimeClientError
from observability.logger import set_enabled
from orchestrator.reconnect import connect_with_retry
from session.connection import RealtimeConnection
from session.connection_status import ConnectionState
from session.credentials import CredentialFetcher
from session.instructions import PROFICIENCY_LEVELS, build_session_config
from session.listener import SessionListener
from session.session_config import SessionConfig
from session.transcript import TranscriptEntry


def _say(text: str) -> None:
    print(text, file=sys.stderr, flush=True)


class ConsoleListener(SessionListener):
    """Prints the conversation and plays AI audio through the bridge."""

    def __init__(self) -> None:
        self.transcript: list[TranscriptEntry] = []
        self._bridge: AudioBridge | None = None

    def attach_bridge(self, bridge: AudioBridge) -> None:
        self._bridge = bridge

    def on_connected(self) -> None:
        _say("[connected]")

    def on_disconnected(self) -> None:
        _say("[disconnected]")

    def on_error(self, error: RealtimeClientError) -> None:
        _say(f"[error] {error}")

    def on_audio_received(self, pcm_bytes: bytes) -> None:
        if self._bridge is not None:
            self._bridge.playback(pcm_bytes)

    def on_transcription_received(self, entry: TranscriptEntry) -> None:
        # Deltas are partial; print only completed text.
        if not entry.is_final:
            return
        self.transcript.append(entry)
        who = "you" if entry.is_user else "tutor"
        _say(f"{who}: {entry.text}")

    def on_state_changed(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTING:
            _say("[connecting...]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="realtime-tutor",
        description="Practice a language by voice with a realtime AI tutor.",
    )
    parser.add_argument("--language", default="spanish", help="Learning language")
    parser.add_argument(
        "--level",
        default="3-4",
        choices=list(PROFICIENCY_LEVELS),
        help="Class level",
    )
    parser.add_argument("--topic", default="Introduce yourself", help="Conversation topic")
    parser.add_argument(
        "--instructions",
        default=None,
        help="Use these instructions verbatim instead of the tutor template",
    )
    parser.add_argument("--voice", default=None, help="Override the voice")
    parser.add_argument(
        "--no-retry",
        action="store_true",
        help="Make a single connection attempt",
    )
    parser.add_argument(
        "--no-opening",
        action="store_true",
        help="Wait for the student to speak first",
    )
    return parser


def session_config_from_args(args: argparse.Namespace) -> SessionConfig:
    """
    Raises:
        ValueError if the tutor fields are invalid.
    """
    opening = None if args.no_opening else DEFAULT_OPENING_MESSAGE
    if args.instructions:
        return SessionConfig(
            instructions=args.instructions,
            voice=args.voice or DEFAULT_VOICE,
            opening_message=opening,
        )
    return build_session_config(
        args.language,
        args.level,
        args.topic,
        opening_message=opening,
        voice=args.voice,
    )


async def _push_to_talk(connection: RealtimeConnection, bridge: AudioBridge) -> None:
    loop = asyncio.get_running_loop()
    _say("Press Enter to talk, Enter again to send. Type q and Enter to quit.")

    while connection.is_open:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line or line.strip().lower() == "q":
            return
        try:
            if bridge.is_capturing:
                await bridge.stop_capture()
                _say("[sent]")
            elif await bridge.start_capture():
                _say("[listening... press Enter to send]")
        except NotConnected as e:
            _say(f"[error] {e}")
            return


async def run(args: argparse.Namespace, cfg: AppConfig) -> int:
    set_enabled(cfg.enable_json_logs)

    try:
        session_config = session_config_from_args(args)
    except ValueError as e:
        _say(f"[error] {e}")
        return 2

    listener = ConsoleListener()
    connection = RealtimeConnection(
        listener=listener,
        fetch_credential=CredentialFetcher(
            cfg.token_endpoint_url,
            model=cfg.realtime_model,
            timeout_s=cfg.credential_timeout_s,
        ),
        realtime_url=cfg.realtime_ws_url,
        connect_timeout_s=cfg.connect_timeout_s,
    )
    bridge = AudioBridge(
        connection=connection,
        input_device_index=cfg.input_device_index,
        output_device_index=cfg.output_device_index,
    )
    listener.attach_bridge(bridge)

    try:
        if args.no_retry:
            connected = await connection.connect(session_config)
        else:
            connected = await connect_with_retry(
                connection, session_config, cfg.max_connect_attempts
            )
        if not connected:
            return 1
        await _push_to_talk(connection, bridge)
    finally:
        await connection.disconnect()
        await bridge.close()

    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    cfg = AppConfig.load_from_env()
    try:
        return asyncio.run(run(args, cfg))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
